# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Shared test utilities for ndinfer tests"""

from functools import partial

import numpy as np

from ndinfer.engine.graph import SymbolGraph
from ndinfer.engine.ops import Op
from ndinfer.model import Model
from ndinfer.ndarray import NDList
from ndinfer.translate import LambdaTranslator

# Constants for tolerance levels
CPU_RTOL = 1e-5
CPU_ATOL = 1e-6

cpu_assert_allclose = partial(np.testing.assert_allclose, rtol=CPU_RTOL, atol=CPU_ATOL)

SYNSET = [
    "tench",
    "goldfish",
    "great white shark",
    "tiger shark",
    "hammerhead",
    "electric ray",
    "stingray",
    "cock",
    "hen",
    "ostrich",
]


def _var(name):
    return {"op": "null", "name": name, "inputs": []}


def mlp_symbol(in_features=4, hidden=8, classes=3, batch=1):
    """data -> FullyConnected -> relu -> FullyConnected -> SoftmaxOutput."""
    return SymbolGraph.from_dict(
        {
            "nodes": [
                _var("data"),
                _var("fc1_weight"),
                _var("fc1_bias"),
                {
                    "op": "FullyConnected",
                    "name": "fc1",
                    "attrs": {"num_hidden": str(hidden)},
                    "inputs": [[0, 0, 0], [1, 0, 0], [2, 0, 0]],
                },
                {
                    "op": "Activation",
                    "name": "relu1",
                    "attrs": {"act_type": "relu"},
                    "inputs": [[3, 0, 0]],
                },
                _var("fc2_weight"),
                _var("fc2_bias"),
                {
                    "op": "FullyConnected",
                    "name": "fc2",
                    "attrs": {"num_hidden": str(classes)},
                    "inputs": [[4, 0, 0], [5, 0, 0], [6, 0, 0]],
                },
                _var("softmax_label"),
                {
                    "op": "SoftmaxOutput",
                    "name": "softmax",
                    "inputs": [[7, 0, 0], [8, 0, 0]],
                },
            ],
            "arg_nodes": [0, 1, 2, 5, 6, 8],
            "heads": [[9, 0, 0]],
            "inputs": [{"name": "data", "shape": [batch, in_features], "dtype": "float32"}],
        }
    )


def mlp_params(in_features=4, hidden=8, classes=3, seed=0):
    rng = np.random.default_rng(seed)
    return {
        "fc1_weight": rng.standard_normal((hidden, in_features)).astype(np.float32),
        "fc1_bias": rng.standard_normal(hidden).astype(np.float32),
        "fc2_weight": rng.standard_normal((classes, hidden)).astype(np.float32),
        "fc2_bias": rng.standard_normal(classes).astype(np.float32),
    }


def mlp_reference(x, params):
    x = x.reshape(x.shape[0], -1)
    h = np.maximum(x @ params["fc1_weight"].T + params["fc1_bias"], 0)
    logits = h @ params["fc2_weight"].T + params["fc2_bias"]
    return softmax_reference(logits)


def softmax_reference(logits):
    e = np.exp(logits - logits.max(axis=-1, keepdims=True))
    return e / e.sum(axis=-1, keepdims=True)


def classifier_symbol(channels=3, classes=10, image_size=224):
    """Global average pooling classifier over a (1, C, H, W) image."""
    return SymbolGraph.from_dict(
        {
            "nodes": [
                _var("data"),
                {
                    "op": "Pooling",
                    "name": "pool",
                    "attrs": {"global_pool": "True", "pool_type": "avg", "kernel": "(7, 7)"},
                    "inputs": [[0, 0, 0]],
                },
                {"op": "Flatten", "name": "flatten", "inputs": [[1, 0, 0]]},
                _var("fc_weight"),
                _var("fc_bias"),
                {
                    "op": "FullyConnected",
                    "name": "fc",
                    "attrs": {"num_hidden": str(classes)},
                    "inputs": [[2, 0, 0], [3, 0, 0], [4, 0, 0]],
                },
                {"op": "softmax", "name": "prob", "inputs": [[5, 0, 0]]},
            ],
            "arg_nodes": [0, 3, 4],
            "heads": [[6, 0, 0]],
            "inputs": [
                {
                    "name": "data",
                    "shape": [1, channels, image_size, image_size],
                    "dtype": "float32",
                }
            ],
        }
    )


def classifier_params(channels=3, classes=10, seed=1):
    rng = np.random.default_rng(seed)
    return {
        "fc_weight": (rng.standard_normal((classes, channels)) * 4).astype(np.float32),
        "fc_bias": rng.standard_normal(classes).astype(np.float32),
    }


def classifier_reference(image, params):
    pooled = image.reshape(image.shape[0], image.shape[1], -1).mean(axis=-1)
    return softmax_reference(pooled @ params["fc_weight"].T + params["fc_bias"])


def add_symbol():
    """Two data inputs added elementwise."""
    return SymbolGraph.from_dict(
        {
            "nodes": [
                _var("lhs"),
                _var("rhs"),
                {"op": "elemwise_add", "name": "add", "inputs": [[0, 0, 0], [1, 0, 0]]},
            ],
            "arg_nodes": [0, 1],
            "heads": [[2, 0, 0]],
        }
    )


def make_mlp_model(name="mlp", **kwargs):
    return Model(name, mlp_symbol(), mlp_params(), **kwargs)


def make_classifier_model(name="classifier", synset=SYNSET):
    return Model(name, classifier_symbol(), classifier_params(), synset=synset)


def numpy_translator():
    """Encodes a list of numpy arrays and decodes every output to numpy."""
    return LambdaTranslator(
        lambda ctx, arrays: NDList(ctx.factory.from_numpy(a) for a in arrays),
        lambda ctx, outputs: outputs.numpy(),
    )


# Fails at execution time only: binding runs the graph on zeros
device_fault = Op("_test_device_fault")


@device_fault.impl("numpy")
def _device_fault_numpy(inputs, attrs):
    if inputs[0].any():
        raise RuntimeError("device fault")
    return inputs[0].copy()


def faulting_symbol():
    return SymbolGraph.from_dict(
        {
            "nodes": [
                _var("data"),
                {"op": "_test_device_fault", "name": "fault", "inputs": [[0, 0, 0]]},
            ],
            "heads": [[1, 0, 0]],
            "inputs": [{"name": "data", "shape": [1, 4], "dtype": "float32"}],
        }
    )
