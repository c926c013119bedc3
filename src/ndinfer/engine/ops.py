# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Graph operator registry and the numpy implementations of each operator.

Operators are looked up by the ``op`` name of a graph node. Attribute values
arrive as strings, the way they are stored in symbol files.
"""

import ast
from typing import Callable, Dict, List, Mapping

import numpy as np

from ndinfer.errors import EngineError

_OPS: Dict[str, "Op"] = {}


class Op:
    """Simple operation dispatcher.

    Usage::

        relu = Op('relu')

        @relu.impl('numpy')
        def _relu_numpy(inputs, attrs):
            ...

        outputs = get_op('relu')('numpy', inputs, attrs)
    """

    def __init__(self, name: str, *aliases: str):
        self.name = name
        self._impls: Dict[str, Callable] = {}
        for key in (name,) + aliases:
            _OPS[key] = self

    def impl(self, backend: str) -> Callable:
        """Decorator to register a backend implementation.

        Args:
            backend: Engine name the implementation belongs to.

        Returns:
            Decorator function.
        """

        def decorator(fn: Callable) -> Callable:
            self._impls[backend] = fn
            return fn

        return decorator

    def __call__(
        self, backend: str, inputs: List[np.ndarray], attrs: Mapping[str, str]
    ) -> np.ndarray:
        """Dispatch to the implementation registered for ``backend``."""
        if backend not in self._impls:
            available = ", ".join(self._impls.keys()) if self._impls else "none"
            raise EngineError(
                f"Operation '{self.name}' not implemented for engine '{backend}'."
                f" Available engines: {available}"
            )
        return self._impls[backend](inputs, attrs)

    def __repr__(self) -> str:
        backends = ", ".join(self._impls.keys()) if self._impls else "none"
        return f"Op('{self.name}', backends=[{backends}])"


def get_op(name: str) -> Op:
    if name not in _OPS:
        raise EngineError(f"Unknown operation '{name}'")
    return _OPS[name]


def registered_ops() -> List[str]:
    return sorted(_OPS)


def _attr_bool(attrs: Mapping[str, str], key: str, default: bool) -> bool:
    value = attrs.get(key)
    if value is None:
        return default
    return str(value).strip().lower() in ("true", "1")


def _attr_int(attrs: Mapping[str, str], key: str, default: int) -> int:
    value = attrs.get(key)
    return default if value is None else int(value)


def _attr_tuple(attrs: Mapping[str, str], key: str) -> tuple:
    value = attrs[key]
    parsed = ast.literal_eval(value) if isinstance(value, str) else value
    return tuple(parsed) if isinstance(parsed, (list, tuple)) else (parsed,)


# -----------------------------------------------------------------------------
# FullyConnected
# -----------------------------------------------------------------------------
fully_connected = Op("FullyConnected")


@fully_connected.impl("numpy")
def _fully_connected_numpy(inputs, attrs):
    no_bias = _attr_bool(attrs, "no_bias", False)
    x, weight = inputs[0], inputs[1]
    if _attr_bool(attrs, "flatten", True):
        x = x.reshape(x.shape[0], -1)
    if x.shape[-1] != weight.shape[1]:
        raise ValueError(
            f"FullyConnected: input features {x.shape[-1]} do not match "
            f"weight shape {weight.shape}"
        )
    out = x @ weight.T
    if not no_bias:
        out = out + inputs[2]
    return out


# -----------------------------------------------------------------------------
# activations
# -----------------------------------------------------------------------------
def _sigmoid(x):
    return 1.0 / (1.0 + np.exp(-x))


_ACTIVATIONS = {
    "relu": lambda x: np.maximum(x, 0),
    "sigmoid": _sigmoid,
    "tanh": np.tanh,
    "softrelu": lambda x: np.log1p(np.exp(x)),
}

activation = Op("Activation")


@activation.impl("numpy")
def _activation_numpy(inputs, attrs):
    act_type = attrs.get("act_type", "relu")
    if act_type not in _ACTIVATIONS:
        raise ValueError(f"Activation: unsupported act_type '{act_type}'")
    return _ACTIVATIONS[act_type](inputs[0])


def _register_activation(name):
    op = Op(name)
    op.impl("numpy")(lambda inputs, attrs: _ACTIVATIONS[name](inputs[0]))
    return op


relu = _register_activation("relu")
sigmoid = _register_activation("sigmoid")
tanh = _register_activation("tanh")

# -----------------------------------------------------------------------------
# shape manipulation
# -----------------------------------------------------------------------------
flatten = Op("Flatten", "flatten")


@flatten.impl("numpy")
def _flatten_numpy(inputs, attrs):
    x = inputs[0]
    return x.reshape(x.shape[0], -1)


reshape = Op("Reshape", "reshape")


@reshape.impl("numpy")
def _reshape_numpy(inputs, attrs):
    """Reshape where 0 copies the input dimension and -1 is inferred."""
    x = inputs[0]
    target = []
    for i, dim in enumerate(_attr_tuple(attrs, "shape")):
        if dim == 0:
            target.append(x.shape[i])
        else:
            target.append(int(dim))
    return x.reshape(target)


copy = Op("_copy", "identity")


@copy.impl("numpy")
def _copy_numpy(inputs, attrs):
    return inputs[0].copy()


# -----------------------------------------------------------------------------
# Pooling
# -----------------------------------------------------------------------------
pooling = Op("Pooling")


@pooling.impl("numpy")
def _pooling_numpy(inputs, attrs):
    if not _attr_bool(attrs, "global_pool", False):
        raise ValueError("Pooling: only global_pool=True is supported")
    x = inputs[0]
    axes = tuple(range(2, x.ndim))
    pool_type = attrs.get("pool_type", "max")
    if pool_type == "avg":
        return x.mean(axis=axes, keepdims=True)
    if pool_type == "max":
        return x.max(axis=axes, keepdims=True)
    raise ValueError(f"Pooling: unsupported pool_type '{pool_type}'")


# -----------------------------------------------------------------------------
# softmax
# -----------------------------------------------------------------------------
softmax = Op("softmax", "SoftmaxActivation", "SoftmaxOutput")


@softmax.impl("numpy")
def _softmax_numpy(inputs, attrs):
    # SoftmaxOutput carries a label input that inference ignores
    x = inputs[0]
    axis = _attr_int(attrs, "axis", -1)
    shifted = x - x.max(axis=axis, keepdims=True)
    exp = np.exp(shifted)
    return exp / exp.sum(axis=axis, keepdims=True)


# -----------------------------------------------------------------------------
# elementwise binary
# -----------------------------------------------------------------------------
elemwise_add = Op("elemwise_add", "broadcast_add")


@elemwise_add.impl("numpy")
def _elemwise_add_numpy(inputs, attrs):
    return np.add(inputs[0], inputs[1])


elemwise_mul = Op("elemwise_mul", "broadcast_mul")


@elemwise_mul.impl("numpy")
def _elemwise_mul_numpy(inputs, attrs):
    return np.multiply(inputs[0], inputs[1])
