# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Unit tests for Factory scoping and NDArray lifetime."""

import ml_dtypes
import numpy as np
import pytest

from ndinfer.errors import UseAfterRelease
from ndinfer.ndarray import DataType, Factory, NDArray, NDList, TensorDescriptor


def _live(engine):
    return engine.memory_stats()["live_buffers"]


def test_create_is_zero_initialized(factory):
    array = factory.create(TensorDescriptor((2, 3), DataType.INT32, "x"))
    assert isinstance(array, NDArray)
    assert array.shape == (2, 3)
    assert array.dtype is DataType.INT32
    assert array.name == "x"
    np.testing.assert_array_equal(array.numpy(), np.zeros((2, 3), dtype=np.int32))


def test_from_numpy_round_trip(factory):
    data = np.arange(12, dtype=np.float32).reshape(3, 4)
    array = factory.from_numpy(data, name="data")
    assert array.descriptor == TensorDescriptor((3, 4), DataType.FLOAT32, "data")
    np.testing.assert_array_equal(array.numpy(), data)
    # numpy() returns a copy
    array.numpy()[0, 0] = 100
    assert array.numpy()[0, 0] == 0


def test_from_numpy_bfloat16(factory):
    data = np.array([1.5, -2.0, 0.25], dtype=ml_dtypes.bfloat16)
    array = factory.from_numpy(data)
    assert array.dtype is DataType.BFLOAT16
    np.testing.assert_array_equal(array.numpy(), data)


def test_set_casts_and_checks_size(factory):
    array = factory.zeros((2, 2))
    array.set([[1, 2], [3, 4]])
    np.testing.assert_array_equal(array.numpy(), np.array([[1, 2], [3, 4]], np.float32))
    array.set(np.ones(4, dtype=np.float64))
    assert array.numpy().dtype == np.float32
    with pytest.raises(ValueError, match="Cannot set 3 elements"):
        array.set([1, 2, 3])


def test_close_releases_every_tensor(engine, context):
    baseline = _live(engine)
    factory = Factory.new_base_factory(context)
    factory.zeros((4,))
    factory.zeros((8,))
    assert factory.num_arrays == 2
    assert _live(engine) == baseline + 2
    factory.close()
    assert factory.closed
    assert _live(engine) == baseline


def test_close_is_idempotent(engine, context):
    factory = Factory.new_base_factory(context)
    factory.zeros((4,))
    factory.close()
    factory.close()
    assert engine.memory_stats()["free_count"] == 1


def test_close_releases_children(engine, context):
    baseline = _live(engine)
    root = Factory.new_base_factory(context)
    child = root.new_sub_factory()
    grandchild = child.new_sub_factory()
    root.zeros((1,))
    child.zeros((2,))
    grandchild.zeros((3,))
    assert _live(engine) == baseline + 3

    root.close()
    assert child.closed and grandchild.closed
    assert _live(engine) == baseline


def test_closed_child_detaches_from_parent(engine, context):
    root = Factory.new_base_factory(context)
    child = root.new_sub_factory()
    array = child.zeros((2,))
    child.close()
    assert array.is_released
    # closing the parent does not release the child's tensors again
    root.close()
    assert engine.memory_stats()["free_count"] == 1


def test_tensor_closed_before_factory_is_freed_once(engine, context):
    factory = Factory.new_base_factory(context)
    early = factory.zeros((2,))
    factory.zeros((2,))
    early.close()
    assert factory.num_arrays == 1
    factory.close()
    assert engine.memory_stats()["free_count"] == 2


def test_use_after_release(factory):
    array = factory.from_numpy(np.ones(3, dtype=np.float32))
    factory.close()
    assert array.is_released
    with pytest.raises(UseAfterRelease):
        array.numpy()
    with pytest.raises(UseAfterRelease):
        array.set([1, 2, 3])
    with pytest.raises(UseAfterRelease):
        array.wait_to_read()
    with pytest.raises(UseAfterRelease):
        factory.zeros((1,))
    with pytest.raises(UseAfterRelease):
        factory.new_sub_factory()


def test_factory_context_manager(engine, context):
    baseline = _live(engine)
    with Factory.new_base_factory(context) as factory:
        factory.zeros((16,))
        assert _live(engine) == baseline + 1
    assert _live(engine) == baseline


def test_ndlist_validates_items(factory):
    a = factory.zeros((1, 4))
    b = factory.zeros((2,), DataType.INT64)
    ndlist = NDList([a, b])
    assert ndlist.descriptors() == (a.descriptor, b.descriptor)
    assert [x.shape for x in ndlist.numpy()] == [(1, 4), (2,)]
    with pytest.raises(TypeError, match="NDList items must be NDArray"):
        NDList([a, np.zeros(3)])
