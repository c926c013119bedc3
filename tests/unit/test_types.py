# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Unit tests for element types and tensor descriptors."""

import ml_dtypes
import numpy as np
import pytest

from ndinfer.ndarray.types import DataType, TensorDescriptor, signature_key


@pytest.mark.parametrize(
    "data_type,numpy_dtype",
    [
        (DataType.FLOAT16, np.float16),
        (DataType.FLOAT32, np.float32),
        (DataType.FLOAT64, np.float64),
        (DataType.BFLOAT16, ml_dtypes.bfloat16),
        (DataType.INT8, np.int8),
        (DataType.UINT8, np.uint8),
        (DataType.INT32, np.int32),
        (DataType.INT64, np.int64),
        (DataType.BOOLEAN, np.bool_),
    ],
)
def test_numpy_dtype_mapping(data_type, numpy_dtype):
    assert data_type.numpy_dtype == np.dtype(numpy_dtype)
    assert DataType.from_numpy(numpy_dtype) is data_type


def test_of_accepts_names_and_dtypes():
    assert DataType.of("bfloat16") is DataType.BFLOAT16
    assert DataType.of(np.float32) is DataType.FLOAT32
    assert DataType.of(np.dtype("int64")) is DataType.INT64
    assert DataType.of(DataType.UINT8) is DataType.UINT8


def test_unsupported_dtype():
    with pytest.raises(TypeError, match="Unsupported dtype"):
        DataType.from_numpy(np.complex64)


def test_descriptor_normalizes_fields():
    desc = TensorDescriptor([1, 3, 224, 224], "float32", "data")
    assert desc.shape == (1, 3, 224, 224)
    assert desc.dtype is DataType.FLOAT32
    assert desc.size == 3 * 224 * 224
    assert desc.nbytes == desc.size * 4


def test_descriptor_scalar_and_empty():
    assert TensorDescriptor(()).size == 1
    assert TensorDescriptor((0, 4)).size == 0


def test_descriptor_rejects_negative_dims():
    with pytest.raises(ValueError, match="non-negative"):
        TensorDescriptor((1, -1))


def test_compatibility_ignores_name():
    a = TensorDescriptor((2, 3), DataType.FLOAT32, "a")
    b = TensorDescriptor((2, 3), DataType.FLOAT32, "b")
    assert a.is_compatible(b)
    assert not a.is_compatible(TensorDescriptor((2, 3), DataType.FLOAT16, "a"))
    assert not a.is_compatible(TensorDescriptor((3, 2), DataType.FLOAT32, "a"))


def test_signature_key():
    sig1 = (TensorDescriptor((1, 4), name="x"), TensorDescriptor((2,), "int32", "y"))
    sig2 = (TensorDescriptor((1, 4), name="data"), TensorDescriptor((2,), "int32"))
    assert signature_key(sig1) == signature_key(sig2)
    assert signature_key(sig1) != signature_key(sig1[:1])
    assert hash(signature_key(sig1)) == hash(signature_key(sig2))
