# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Binding of a model graph to an engine for a given input signature."""

from typing import TYPE_CHECKING, Dict, Optional, Tuple

from ndinfer.config import REBIND_POLICIES
from ndinfer.engine import BoundExecutor
from ndinfer.errors import NDInferError, ShapeMismatch, UseAfterRelease
from ndinfer.logger import get_logger
from ndinfer.ndarray.factory import Factory
from ndinfer.ndarray.ndlist import NDList
from ndinfer.ndarray.types import TensorDescriptor, signature_key

if TYPE_CHECKING:
    from ndinfer.context import Context
    from ndinfer.model import Model

logger = get_logger()


def _format_signature(signature) -> str:
    return ", ".join(f"{d.shape}:{d.dtype}" for d in signature)


class Module:
    """A model graph loaded on a device and bound to an input signature.

    Executors are cached per (shape, dtype) signature, so switching back to
    a signature seen before does not bind again.
    """

    def __init__(self, context: "Context", model: "Model", rebind_policy: str = "rebind"):
        if model.closed:
            raise NDInferError(f"Model '{model.name}' is closed")
        if rebind_policy not in REBIND_POLICIES:
            raise ValueError(f"Invalid rebind_policy '{rebind_policy}'")
        self._context = context
        self._rebind_policy = rebind_policy
        self._graph = context.engine.load_graph(
            model.name, model.symbol, model.params, context.device_id
        )
        self._executors: Dict[Tuple, BoundExecutor] = {}
        self._executor: Optional[BoundExecutor] = None
        self._bound_signature: Optional[Tuple[TensorDescriptor, ...]] = None
        self._closed = False

    @property
    def bound_signature(self) -> Optional[Tuple[TensorDescriptor, ...]]:
        return self._bound_signature

    @property
    def executor(self) -> Optional[BoundExecutor]:
        return self._executor

    @property
    def num_bindings(self) -> int:
        """Number of distinct signatures bound so far."""
        return len(self._executors)

    @property
    def input_names(self) -> Tuple[str, ...]:
        return self._graph.input_names

    @property
    def closed(self) -> bool:
        return self._closed

    def rebind_if_needed(self, ndlist: NDList) -> None:
        signature = ndlist.descriptors()
        bound = self._bound_signature
        if bound is None:
            self._bind(signature)
        else:
            if len(bound) != len(signature):
                raise ShapeMismatch(
                    f"Unexpected input size: {len(signature)}, expected: {len(bound)}"
                )
            changed = [
                i for i, (old, new) in enumerate(zip(bound, signature))
                if not old.is_compatible(new)
            ]
            if changed:
                if self._rebind_policy == "strict":
                    raise ShapeMismatch(
                        f"Input signature changed at position(s) {changed}: "
                        f"[{_format_signature(signature)}], bound to "
                        f"[{_format_signature(bound)}]"
                    )
                logger.info(f"Rebinding module for [{_format_signature(signature)}]")
                self._bind(signature)
        self._bound_signature = signature

    def _bind(self, signature: Tuple[TensorDescriptor, ...]) -> None:
        key = signature_key(signature)
        executor = self._executors.get(key)
        if executor is None:
            # Raises ShapeMismatch when the graph rejects the signature
            executor = self._context.engine.bind(self._graph, signature)
            self._executors[key] = executor
        self._executor = executor

    def forward(self, ndlist: NDList, factory: Factory) -> NDList:
        """Submit one execution; the returned tensors are owned by ``factory``.

        The outputs are pending until ``wait_to_read`` is called on them.
        """
        if self._closed:
            raise UseAfterRelease("Module has been closed")
        self.rebind_if_needed(ndlist)
        executor = self._executor
        outputs = NDList(factory.create(d) for d in executor.output_descriptors)
        self._context.engine.execute(
            executor,
            [array.buffer for array in ndlist],
            [array.buffer for array in outputs],
        )
        return outputs

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for executor in self._executors.values():
            self._context.engine.release_executor(executor)
        self._executors.clear()
        self._executor = None
        self._context.engine.unload_graph(self._graph)
