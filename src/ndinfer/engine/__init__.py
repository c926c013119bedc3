# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Engine abstraction and engine selection."""

from typing import Callable, Dict

from .protocol import BoundExecutor, Engine, LoadedGraph

_ENGINE_FACTORIES: Dict[str, Callable[..., Engine]] = {}


def register_engine(name: str, factory: Callable[..., Engine]) -> None:
    """Register an engine implementation under a name.

    Args:
        name: Name used by create_engine() and the ``engine`` config field
        factory: Callable returning a new Engine instance
    """
    _ENGINE_FACTORIES[name] = factory


def available_engines():
    return sorted(_ENGINE_FACTORIES)


def create_engine(name: str = "numpy", **kwargs) -> Engine:
    """Create a new engine instance.

    Engines are never shared implicitly: every call returns a fresh instance
    that the caller owns and must close.

    Args:
        name: Registered engine name
        **kwargs: Engine specific options

    Returns:
        Engine instance
    """
    if name not in _ENGINE_FACTORIES:
        raise ValueError(
            f"Unknown engine '{name}'. Available: {', '.join(available_engines())}"
        )
    return _ENGINE_FACTORIES[name](**kwargs)


def _create_numpy_engine(**kwargs) -> Engine:
    from .numpy_engine import NumpyEngine

    return NumpyEngine(**kwargs)


register_engine("numpy", _create_numpy_engine)

__all__ = [
    "BoundExecutor",
    "Engine",
    "LoadedGraph",
    "available_engines",
    "create_engine",
    "register_engine",
]
