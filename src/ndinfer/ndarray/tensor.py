# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import ctypes
from typing import TYPE_CHECKING, Any, Tuple

import numpy as np

from ndinfer.errors import UseAfterRelease
from ndinfer.ndarray.types import DataType, TensorDescriptor

if TYPE_CHECKING:
    from ndinfer.ndarray.factory import Factory

try:
    import torch

    # Lookup table between torch and ndinfer dtypes
    # only support ml standard types
    torch_to_data_type = {
        torch.float16: DataType.FLOAT16,
        torch.float32: DataType.FLOAT32,
        torch.float64: DataType.FLOAT64,
        torch.bfloat16: DataType.BFLOAT16,
        torch.int8: DataType.INT8,
        torch.uint8: DataType.UINT8,
        torch.int32: DataType.INT32,
        torch.int64: DataType.INT64,
        torch.bool: DataType.BOOLEAN,
    }
    _TORCH_ENABLED = True

except ImportError:
    _TORCH_ENABLED = False


class NDArray:
    """A tensor whose storage lives in a native engine buffer.

    The tensor belongs to the Factory that created it and becomes invalid
    when that factory closes or when the tensor is closed directly.
    """

    def __init__(self, factory: "Factory", buffer: Any, descriptor: TensorDescriptor):
        self._factory = factory
        self._buffer = buffer
        self._descriptor = descriptor
        self._released = False

    @property
    def descriptor(self) -> TensorDescriptor:
        return self._descriptor

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._descriptor.shape

    @property
    def dtype(self) -> DataType:
        return self._descriptor.dtype

    @property
    def name(self) -> str:
        return self._descriptor.name

    @property
    def size(self) -> int:
        return self._descriptor.size

    @property
    def factory(self) -> "Factory":
        return self._factory

    @property
    def device_id(self) -> int:
        return self._factory.context.device_id

    @property
    def is_released(self) -> bool:
        return self._released

    @property
    def buffer(self) -> Any:
        """The native buffer, for engine calls."""
        self._check_live()
        return self._buffer

    def _check_live(self):
        if self._released:
            raise UseAfterRelease(
                f"Tensor '{self.name}' {self.shape} was used after its factory "
                f"released it"
            )

    def _engine(self):
        self._check_live()
        return self._factory.context.engine

    def set(self, data) -> "NDArray":
        """Copy host data into the tensor; the element count must match."""
        data = np.asarray(data)
        if data.size != self.size:
            raise ValueError(
                f"Cannot set {data.size} elements on tensor '{self.name}' "
                f"of shape {self.shape}"
            )
        self._engine().write(self._buffer, data.astype(self.dtype.numpy_dtype, copy=False))
        return self

    def wait_to_read(self) -> None:
        """Block until pending computation writing this tensor has completed."""
        self._engine().wait(self._buffer)

    def numpy(self) -> np.ndarray:
        """Copy the tensor contents to a host numpy array."""
        return self._engine().read(self._buffer)

    to_numpy = numpy

    def torch(self):
        if not _TORCH_ENABLED:
            raise ImportError("torch is not available")

        array = self.numpy()
        if self.dtype is DataType.BFLOAT16:
            # torch cannot import ml_dtypes arrays; reinterpret the 16-bit payload
            raw = torch.from_numpy(array.view(np.int16).copy())
            return raw.view(torch.bfloat16)
        return torch.from_numpy(array.copy())

    def close(self) -> None:
        """Release the tensor ahead of its factory."""
        if self._released:
            return
        self._factory._detach(self)
        self._release()

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        self._factory.context.engine.free(self._buffer)
        self._buffer = None

    def __repr__(self) -> str:
        state = ", released" if self._released else ""
        return (
            f"NDArray(name={self.name!r}, shape={self.shape}, dtype={self.dtype}, "
            f"device_id={self.device_id}{state})"
        )


def torch_to_numpy(tensor) -> Tuple[np.ndarray, DataType]:
    """Host numpy view of a torch tensor and its ndinfer dtype."""
    if not _TORCH_ENABLED:
        raise ImportError("torch is not available")

    tensor = tensor.detach().cpu().contiguous()
    data_type = torch_to_data_type[tensor.dtype]
    # Reads the contiguous host storage directly; torch has no buffer protocol
    c_array = (ctypes.c_ubyte * (tensor.numel() * tensor.element_size())).from_address(
        tensor.data_ptr()
    )
    raw = np.frombuffer(memoryview(c_array).cast("B"), dtype=np.uint8)
    array = raw.view(data_type.numpy_dtype)
    return array.reshape(tuple(tensor.shape)).copy(), data_type
