# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from typing import Iterable, List, Tuple

import numpy as np

from ndinfer.ndarray.tensor import NDArray
from ndinfer.ndarray.types import TensorDescriptor


class NDList(list):
    """An ordered bundle of tensors, used for multi-input and multi-output calls."""

    def __init__(self, arrays: Iterable[NDArray] = ()):
        super().__init__(arrays)
        for item in self:
            if not isinstance(item, NDArray):
                raise TypeError(f"NDList items must be NDArray, got {type(item).__name__}")

    def descriptors(self) -> Tuple[TensorDescriptor, ...]:
        """Signature of the list: the descriptor of each element, in order."""
        return tuple(array.descriptor for array in self)

    def wait_to_read(self) -> None:
        for array in self:
            array.wait_to_read()

    def numpy(self) -> List[np.ndarray]:
        return [array.numpy() for array in self]

    def __repr__(self) -> str:
        return f"NDList({list.__repr__(self)})"
