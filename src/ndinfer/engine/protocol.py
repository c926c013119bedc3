# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Protocol definitions for native engines."""

from dataclasses import dataclass, field
from typing import Any, Dict, Protocol, Sequence, Tuple

import numpy as np

from ndinfer.ndarray.types import TensorDescriptor


@dataclass
class LoadedGraph:
    """Abstraction for a graph loaded onto a device.

    Attributes:
        graph_ref: The engine-specific graph reference
        name: Name of the model the graph belongs to
        input_names: Names of the data inputs, in binding order
        device_id: Device the graph was loaded onto
    """

    graph_ref: Any
    name: str
    input_names: Tuple[str, ...]
    device_id: int = 0


@dataclass
class BoundExecutor:
    """A graph specialized for one input signature.

    Attributes:
        executor_ref: The engine-specific executor reference
        graph: The LoadedGraph this executor was bound from
        input_descriptors: Signature the executor accepts
        output_descriptors: Descriptors of the tensors one execution produces
    """

    executor_ref: Any
    graph: LoadedGraph
    input_descriptors: Tuple[TensorDescriptor, ...]
    output_descriptors: Tuple[TensorDescriptor, ...] = field(default_factory=tuple)


class Engine(Protocol):
    """Protocol defining the interface of a native tensor engine.

    Buffers returned by ``allocate`` are opaque to callers; execution is
    asynchronous, and ``wait``/``read`` are the synchronization points.
    """

    name: str

    def device_count(self) -> int:
        """Return number of available devices."""
        ...

    def allocate(self, descriptor: TensorDescriptor, device_id: int = 0) -> Any:
        """Allocate a zero-initialized buffer for the descriptor on a device."""
        ...

    def free(self, buffer: Any) -> None:
        """Release a buffer. Freeing the same buffer twice is an error."""
        ...

    def write(self, buffer: Any, array: np.ndarray) -> None:
        """Copy host data into a buffer."""
        ...

    def read(self, buffer: Any) -> np.ndarray:
        """Copy a buffer to host memory, waiting for pending writes first."""
        ...

    def wait(self, buffer: Any) -> None:
        """Block until every pending execution writing the buffer completed."""
        ...

    def load_graph(
        self,
        name: str,
        symbol: Dict[str, Any],
        params: Dict[str, np.ndarray],
        device_id: int = 0,
    ) -> LoadedGraph:
        """Load a symbol graph and its parameters onto a device."""
        ...

    def unload_graph(self, graph: LoadedGraph) -> None:
        """Release a loaded graph."""
        ...

    def bind(
        self, graph: LoadedGraph, descriptors: Sequence[TensorDescriptor]
    ) -> BoundExecutor:
        """Specialize a loaded graph for an input signature.

        Raises ShapeMismatch when the graph cannot accept the signature.
        """
        ...

    def release_executor(self, executor: BoundExecutor) -> None:
        """Release a bound executor."""
        ...

    def execute(
        self,
        executor: BoundExecutor,
        inputs: Sequence[Any],
        outputs: Sequence[Any],
    ) -> None:
        """Submit one execution; outputs stay pending until waited on."""
        ...

    def memory_stats(self) -> Dict[str, int]:
        """Return allocation statistics."""
        ...

    def close(self) -> None:
        """Close the engine and release resources."""
        ...
