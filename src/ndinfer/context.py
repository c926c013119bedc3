# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Execution context: the engine handle and device every factory is bound to."""

from typing import Optional

from ndinfer.config import NDInferConfig, get_config
from ndinfer.engine import Engine, create_engine


class Context:
    """An engine plus a device index.

    A context created with ``Context.create`` owns its engine and closes it
    on ``close()``; a context wrapping an existing engine leaves the engine
    to its owner.
    """

    def __init__(self, engine: Engine, device_id: int = 0, owns_engine: bool = False):
        if device_id < 0 or device_id >= engine.device_count():
            raise ValueError(
                f"Device {device_id} is not available, "
                f"engine '{engine.name}' has {engine.device_count()} device(s)"
            )
        self.engine = engine
        self.device_id = device_id
        self._owns_engine = owns_engine
        self._closed = False

    @classmethod
    def create(
        cls, device_id: Optional[int] = None, config: Optional[NDInferConfig] = None
    ) -> "Context":
        """Create a context with a new engine configured from ``config``."""
        config = config or get_config()
        engine = create_engine(
            config.engine,
            async_exec=config.async_exec,
            max_inflight=config.max_inflight,
        )
        device_id = config.device_id if device_id is None else device_id
        try:
            return cls(engine, device_id, owns_engine=True)
        except ValueError:
            engine.close()
            raise

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_engine:
            self.engine.close()

    def __enter__(self) -> "Context":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __eq__(self, other) -> bool:
        if not isinstance(other, Context):
            return NotImplemented
        return self.engine is other.engine and self.device_id == other.device_id

    def __hash__(self) -> int:
        return hash((id(self.engine), self.device_id))

    def __repr__(self) -> str:
        return f"Context(engine={self.engine.name}, device_id={self.device_id})"
