# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Scoped allocation arenas.

Factories form a tree. Every tensor is owned by the factory that created it;
closing a factory releases its tensors and the tensors of all descendant
factories, each exactly once.
"""

from typing import TYPE_CHECKING, List, Optional, Sequence

import numpy as np

from ndinfer.errors import UseAfterRelease
from ndinfer.logger import get_logger
from ndinfer.ndarray.tensor import NDArray, torch_to_numpy
from ndinfer.ndarray.types import DataType, TensorDescriptor

if TYPE_CHECKING:
    from ndinfer.context import Context

logger = get_logger()


class Factory:
    """A scoped owner of native tensor allocations."""

    def __init__(self, context: "Context", parent: Optional["Factory"] = None):
        self._context = context
        self._parent = parent
        self._children: List["Factory"] = []
        self._arrays: List[NDArray] = []
        self._closed = False

    @classmethod
    def new_base_factory(cls, context: "Context") -> "Factory":
        """Create a root factory for a context."""
        return cls(context)

    @property
    def context(self) -> "Context":
        return self._context

    @property
    def parent(self) -> Optional["Factory"]:
        return self._parent

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def num_arrays(self) -> int:
        """Live tensors owned directly by this factory."""
        return len(self._arrays)

    def _check_open(self):
        if self._closed:
            raise UseAfterRelease("Factory has been closed")

    def new_sub_factory(self) -> "Factory":
        """Create a child factory sharing this factory's context."""
        self._check_open()
        child = Factory(self._context, parent=self)
        self._children.append(child)
        return child

    def create(self, descriptor: TensorDescriptor) -> NDArray:
        """Allocate a zero-initialized tensor described by ``descriptor``."""
        self._check_open()
        buffer = self._context.engine.allocate(descriptor, self._context.device_id)
        array = NDArray(self, buffer, descriptor)
        self._arrays.append(array)
        return array

    def zeros(self, shape: Sequence[int], dtype=DataType.FLOAT32, name: str = "") -> NDArray:
        return self.create(TensorDescriptor(tuple(shape), dtype, name))

    def from_numpy(self, array, name: str = "") -> NDArray:
        """Allocate a tensor and copy a host array into it."""
        array = np.asarray(array)
        descriptor = TensorDescriptor(array.shape, DataType.from_numpy(array.dtype), name)
        return self.create(descriptor).set(array)

    def from_torch(self, tensor, name: str = "") -> NDArray:
        array, data_type = torch_to_numpy(tensor)
        return self.create(TensorDescriptor(array.shape, data_type, name)).set(array)

    def _detach(self, array: NDArray) -> None:
        self._arrays.remove(array)

    def _detach_child(self, child: "Factory") -> None:
        if child in self._children:
            self._children.remove(child)

    def close(self) -> None:
        """Release every tensor of this factory and its descendants.

        Closing twice is a no-op.
        """
        if self._closed:
            return
        self._closed = True
        for child in list(self._children):
            child.close()
        self._children.clear()
        arrays, self._arrays = self._arrays, []
        for array in arrays:
            array._release()
        if self._parent is not None:
            self._parent._detach_child(self)
        logger.debug(f"Factory closed, released {len(arrays)} tensor(s)")

    def __enter__(self) -> "Factory":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"arrays={len(self._arrays)}"
        return f"Factory({self._context!r}, {state}, children={len(self._children)})"
