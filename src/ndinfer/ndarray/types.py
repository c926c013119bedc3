# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Element types and tensor descriptors"""

import enum
from dataclasses import dataclass
from typing import Iterable, Tuple, Union

import ml_dtypes
import numpy as np

bfloat16 = np.dtype(ml_dtypes.bfloat16)


class DataType(enum.Enum):
    FLOAT16 = "float16"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    BFLOAT16 = "bfloat16"
    INT8 = "int8"
    UINT8 = "uint8"
    INT32 = "int32"
    INT64 = "int64"
    BOOLEAN = "bool"

    @property
    def numpy_dtype(self) -> np.dtype:
        if self is DataType.BFLOAT16:
            return bfloat16
        return np.dtype(self.value)

    @property
    def itemsize(self) -> int:
        return self.numpy_dtype.itemsize

    @classmethod
    def from_numpy(cls, dtype) -> "DataType":
        dtype = np.dtype(dtype)
        if dtype == bfloat16:
            return cls.BFLOAT16
        try:
            return cls(dtype.name)
        except ValueError:
            raise TypeError(f"Unsupported dtype: {dtype}") from None

    @classmethod
    def of(cls, dtype: Union["DataType", str, np.dtype, type]) -> "DataType":
        """Normalize a DataType, dtype name or numpy dtype into a DataType."""
        if isinstance(dtype, DataType):
            return dtype
        if isinstance(dtype, str):
            try:
                return cls(dtype)
            except ValueError:
                pass
        return cls.from_numpy(dtype)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TensorDescriptor:
    """Shape, element type and name of a tensor.

    Two descriptors are compatible when shape and dtype match; the name is
    informational only.
    """

    shape: Tuple[int, ...]
    dtype: DataType = DataType.FLOAT32
    name: str = ""

    def __post_init__(self):
        shape = tuple(int(d) for d in self.shape)
        for dim in shape:
            if dim < 0:
                raise ValueError(f"Shape dimensions must be non-negative, got {shape}")
        object.__setattr__(self, "shape", shape)
        object.__setattr__(self, "dtype", DataType.of(self.dtype))

    @property
    def size(self) -> int:
        """Number of elements"""
        return int(np.prod(self.shape)) if self.shape else 1

    @property
    def nbytes(self) -> int:
        return self.size * self.dtype.itemsize

    def is_compatible(self, other: "TensorDescriptor") -> bool:
        return self.shape == other.shape and self.dtype == other.dtype

    def key(self) -> Tuple[Tuple[int, ...], str]:
        return self.shape, self.dtype.value

    def __repr__(self) -> str:
        return f"TensorDescriptor(name={self.name!r}, shape={self.shape}, dtype={self.dtype})"


def signature_key(descriptors: Iterable[TensorDescriptor]) -> Tuple:
    """Hashable (shape, dtype) key of a descriptor sequence, names ignored."""
    return tuple(d.key() for d in descriptors)
