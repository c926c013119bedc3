# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Host-memory reference engine.

Buffers are numpy arrays and graphs are evaluated with the numpy operator
implementations. Executions are submitted to a worker pool so, like an
accelerator runtime, results are pending until ``wait`` or ``read``.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional, Sequence

import numpy as np

from ndinfer.engine.graph import SymbolGraph
from ndinfer.engine.protocol import BoundExecutor, LoadedGraph
from ndinfer.errors import EngineError, ShapeMismatch
from ndinfer.logger import get_logger
from ndinfer.ndarray.types import DataType, TensorDescriptor

logger = get_logger()


class NumpyBuffer:
    """A device buffer of the numpy engine."""

    __slots__ = ("array", "name", "device_id", "pending", "freed")

    def __init__(self, array: np.ndarray, name: str, device_id: int):
        self.array = array
        self.name = name
        self.device_id = device_id
        self.pending: Optional[Future] = None
        self.freed = False

    @property
    def nbytes(self) -> int:
        return 0 if self.array is None else self.array.nbytes

    def __repr__(self) -> str:
        state = "freed" if self.freed else f"shape={self.array.shape}"
        return f"NumpyBuffer(name={self.name!r}, device_id={self.device_id}, {state})"


class _GraphRef:
    __slots__ = ("graph", "params")

    def __init__(self, graph: SymbolGraph, params: Dict[str, np.ndarray]):
        self.graph = graph
        self.params = params


class NumpyEngine:
    """Engine implementation backed by numpy."""

    name = "numpy"

    def __init__(self, num_devices: int = 1, async_exec: bool = True, max_inflight: int = 4):
        if num_devices < 1:
            raise ValueError(f"num_devices must be positive, got {num_devices}")
        self._num_devices = num_devices
        self._pool = (
            ThreadPoolExecutor(max_workers=max_inflight, thread_name_prefix="ndinfer-exec")
            if async_exec
            else None
        )
        self._lock = threading.Lock()
        self._closed = False
        self._stats = {
            "allocation_count": 0,
            "free_count": 0,
            "live_buffers": 0,
            "used_bytes": 0,
            "bind_count": 0,
            "execute_count": 0,
        }
        logger.info(
            f"Numpy engine started (devices={num_devices}, async_exec={async_exec}, "
            f"max_inflight={max_inflight})"
        )

    def _check_open(self):
        if self._closed:
            raise EngineError("Engine is closed")

    def _check_device(self, device_id: int):
        if not 0 <= device_id < self._num_devices:
            raise EngineError(
                f"Device {device_id} is not available, "
                f"engine has {self._num_devices} device(s)"
            )

    @staticmethod
    def _check_live(buffer: NumpyBuffer):
        if buffer.freed:
            raise EngineError(f"Buffer '{buffer.name}' has been freed")

    def device_count(self) -> int:
        return self._num_devices

    # ------------------------------------------------------------------
    # buffers
    # ------------------------------------------------------------------
    def allocate(self, descriptor: TensorDescriptor, device_id: int = 0) -> NumpyBuffer:
        self._check_open()
        self._check_device(device_id)
        array = np.zeros(descriptor.shape, dtype=descriptor.dtype.numpy_dtype)
        buffer = NumpyBuffer(array, descriptor.name, device_id)
        with self._lock:
            self._stats["allocation_count"] += 1
            self._stats["live_buffers"] += 1
            self._stats["used_bytes"] += array.nbytes
        return buffer

    def free(self, buffer: NumpyBuffer) -> None:
        if buffer.freed:
            raise EngineError(f"Double free of buffer '{buffer.name}'")
        nbytes = buffer.nbytes
        buffer.freed = True
        buffer.array = None
        buffer.pending = None
        with self._lock:
            self._stats["free_count"] += 1
            self._stats["live_buffers"] -= 1
            self._stats["used_bytes"] -= nbytes

    def write(self, buffer: NumpyBuffer, array: np.ndarray) -> None:
        self._check_live(buffer)
        # A pending execution would overwrite the new contents
        self.wait(buffer)
        data = np.asarray(array)
        if data.size != buffer.array.size:
            raise ValueError(
                f"Cannot write {data.size} elements into buffer '{buffer.name}' "
                f"of shape {buffer.array.shape}"
            )
        np.copyto(buffer.array, data.reshape(buffer.array.shape), casting="unsafe")

    def read(self, buffer: NumpyBuffer) -> np.ndarray:
        self.wait(buffer)
        return buffer.array.copy()

    def wait(self, buffer: NumpyBuffer) -> None:
        self._check_live(buffer)
        pending = buffer.pending
        if pending is None:
            return
        try:
            pending.result()
        except Exception as e:
            raise EngineError(f"Execution writing '{buffer.name}' failed: {e}") from e
        buffer.pending = None

    # ------------------------------------------------------------------
    # graphs
    # ------------------------------------------------------------------
    def load_graph(
        self,
        name: str,
        symbol: Dict[str, Any],
        params: Dict[str, np.ndarray],
        device_id: int = 0,
    ) -> LoadedGraph:
        self._check_open()
        self._check_device(device_id)
        graph = symbol if isinstance(symbol, SymbolGraph) else SymbolGraph.from_dict(symbol)
        device_params = {k: np.array(v, copy=True) for k, v in params.items()}
        input_names = graph.data_names(device_params)
        logger.info(f"Loaded graph '{name}' on device {device_id}, inputs={input_names}")
        return LoadedGraph(
            graph_ref=_GraphRef(graph, device_params),
            name=name,
            input_names=input_names,
            device_id=device_id,
        )

    def unload_graph(self, graph: LoadedGraph) -> None:
        graph.graph_ref = None

    def bind(
        self, graph: LoadedGraph, descriptors: Sequence[TensorDescriptor]
    ) -> BoundExecutor:
        self._check_open()
        if graph.graph_ref is None:
            raise EngineError(f"Graph '{graph.name}' has been unloaded")
        if len(descriptors) != len(graph.input_names):
            raise ShapeMismatch(
                f"Graph '{graph.name}' expects {len(graph.input_names)} input(s) "
                f"{graph.input_names}, got {len(descriptors)}"
            )

        ref = graph.graph_ref
        named = tuple(
            TensorDescriptor(d.shape, d.dtype, name)
            for d, name in zip(descriptors, graph.input_names)
        )
        # Shape inference: run the graph once on zeros
        values = dict(ref.params)
        values.update(
            {d.name: np.zeros(d.shape, dtype=d.dtype.numpy_dtype) for d in named}
        )
        try:
            outputs = ref.graph.evaluate(self.name, values)
        except EngineError:
            raise
        except (ValueError, TypeError, IndexError) as e:
            raise ShapeMismatch(
                f"Graph '{graph.name}' cannot be bound to shapes "
                f"{[d.shape for d in named]}: {e}"
            ) from e

        output_descriptors = tuple(
            TensorDescriptor(out.shape, DataType.from_numpy(out.dtype), out_name)
            for out, out_name in zip(outputs, ref.graph.output_names())
        )
        with self._lock:
            self._stats["bind_count"] += 1
        logger.debug(f"Bound graph '{graph.name}': {named} -> {output_descriptors}")
        return BoundExecutor(
            executor_ref=ref,
            graph=graph,
            input_descriptors=named,
            output_descriptors=output_descriptors,
        )

    def release_executor(self, executor: BoundExecutor) -> None:
        executor.executor_ref = None

    def execute(
        self,
        executor: BoundExecutor,
        inputs: Sequence[NumpyBuffer],
        outputs: Sequence[NumpyBuffer],
    ) -> None:
        self._check_open()
        if executor.executor_ref is None:
            raise EngineError(f"Executor for '{executor.graph.name}' has been released")
        self._validate_io(executor, inputs, outputs)

        ref = executor.executor_ref
        names = [d.name for d in executor.input_descriptors]
        in_buffers = list(inputs)
        in_pending = [b.pending for b in in_buffers if b.pending is not None]
        in_arrays = [b.array for b in in_buffers]
        out_arrays = [b.array for b in outputs]

        def run():
            for fut in in_pending:
                fut.result()
            values = dict(ref.params)
            values.update(zip(names, in_arrays))
            results = ref.graph.evaluate(self.name, values)
            for dst, src in zip(out_arrays, results):
                np.copyto(dst, src, casting="unsafe")

        if self._pool is not None:
            future = self._pool.submit(run)
        else:
            future = Future()
            try:
                run()
            except Exception as e:
                future.set_exception(e)
            else:
                future.set_result(None)

        for buffer in outputs:
            buffer.pending = future
        with self._lock:
            self._stats["execute_count"] += 1

    def _validate_io(
        self,
        executor: BoundExecutor,
        inputs: Sequence[NumpyBuffer],
        outputs: Sequence[NumpyBuffer],
    ):
        expected_in = executor.input_descriptors
        expected_out = executor.output_descriptors
        if len(inputs) != len(expected_in) or len(outputs) != len(expected_out):
            raise EngineError(
                f"Executor expects {len(expected_in)} input(s) and "
                f"{len(expected_out)} output(s), got {len(inputs)} and {len(outputs)}"
            )
        device_id = executor.graph.device_id
        for kind, buffers, descriptors in (
            ("Input", inputs, expected_in),
            ("Output", outputs, expected_out),
        ):
            for buffer, desc in zip(buffers, descriptors):
                self._check_live(buffer)
                if buffer.device_id != device_id:
                    raise EngineError(
                        f"{kind} {desc.name}: expected graph and tensor on the same "
                        f"device, got graph device {device_id} and tensor device "
                        f"{buffer.device_id}"
                    )
                if buffer.array.shape != desc.shape:
                    raise EngineError(
                        f"{kind} {desc.name}: expected shape {desc.shape}, "
                        f"got {buffer.array.shape}"
                    )

    def memory_stats(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._stats)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._pool is not None:
            self._pool.shutdown(wait=True)
        logger.info("Numpy engine closed")
