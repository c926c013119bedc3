# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from .factory import Factory
from .ndlist import NDList
from .tensor import NDArray
from .types import DataType, TensorDescriptor

__all__ = [
    "DataType",
    "Factory",
    "NDArray",
    "NDList",
    "TensorDescriptor",
]
