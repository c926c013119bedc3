# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Symbol graph: a topologically ordered node list loaded from JSON.

Format::

    {
      "nodes": [
        {"op": "null", "name": "data", "inputs": []},
        {"op": "null", "name": "fc_weight", "inputs": []},
        {"op": "FullyConnected", "name": "fc", "attrs": {"num_hidden": "10"},
         "inputs": [[0, 0, 0], [1, 0, 0]]}
      ],
      "arg_nodes": [0, 1],
      "heads": [[2, 0, 0]],
      "inputs": [{"name": "data", "shape": [1, 4], "dtype": "float32"}]
    }

Variables (``null`` nodes) that are not parameters are the data inputs. The
optional ``inputs`` list records default data descriptors.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from ndinfer.engine.ops import get_op
from ndinfer.errors import EngineError
from ndinfer.ndarray.types import TensorDescriptor


@dataclass
class Node:
    op: str
    name: str
    attrs: Dict[str, str] = field(default_factory=dict)
    inputs: List[Tuple[int, int]] = field(default_factory=list)

    @property
    def is_variable(self) -> bool:
        return self.op == "null"


class SymbolGraph:
    def __init__(
        self,
        nodes: List[Node],
        heads: List[Tuple[int, int]],
        input_descriptors: Optional[List[TensorDescriptor]] = None,
    ):
        self.nodes = nodes
        self.heads = heads
        self.input_descriptors = list(input_descriptors or [])
        self._validate()

    def _validate(self):
        for idx, node in enumerate(self.nodes):
            for src, _ in node.inputs:
                if src >= idx:
                    raise EngineError(
                        f"Node '{node.name}' consumes node {src}, which is not "
                        f"defined before it"
                    )
            if not node.is_variable:
                # Raises for unknown operators at load time
                get_op(node.op)
        for src, _ in self.heads:
            if src >= len(self.nodes):
                raise EngineError(f"Head references missing node {src}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SymbolGraph":
        nodes = []
        for raw in data["nodes"]:
            attrs = raw.get("attrs", raw.get("attr", raw.get("param", {}))) or {}
            nodes.append(
                Node(
                    op=raw["op"],
                    name=raw["name"],
                    attrs={k: str(v) for k, v in attrs.items()},
                    inputs=[(int(e[0]), int(e[1])) for e in raw.get("inputs", [])],
                )
            )
        heads = [(int(h[0]), int(h[1])) for h in data["heads"]]
        descriptors = [
            TensorDescriptor(
                shape=tuple(d["shape"]), dtype=d.get("dtype", "float32"), name=d["name"]
            )
            for d in data.get("inputs", [])
        ]
        return cls(nodes, heads, descriptors)

    @classmethod
    def from_json(cls, text: str) -> "SymbolGraph":
        return cls.from_dict(json.loads(text))

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "nodes": [
                {
                    "op": n.op,
                    "name": n.name,
                    "attrs": dict(n.attrs),
                    "inputs": [[src, out, 0] for src, out in n.inputs],
                }
                for n in self.nodes
            ],
            "arg_nodes": [i for i, n in enumerate(self.nodes) if n.is_variable],
            "heads": [[src, out, 0] for src, out in self.heads],
        }
        if self.input_descriptors:
            data["inputs"] = [
                {"name": d.name, "shape": list(d.shape), "dtype": d.dtype.value}
                for d in self.input_descriptors
            ]
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def variable_names(self) -> List[str]:
        return [n.name for n in self.nodes if n.is_variable]

    def data_names(self, param_names: Iterable[str]) -> Tuple[str, ...]:
        """Variables that are not bound by parameters, in node order.

        Training labels (``*_label``) are not inputs at inference time.
        """
        params = set(param_names)
        return tuple(
            name
            for name in self.variable_names()
            if name not in params and not name.endswith("_label")
        )

    def output_names(self) -> List[str]:
        return [f"{self.nodes[src].name}_output" for src, _ in self.heads]

    def evaluate(self, backend: str, values: Mapping[str, np.ndarray]) -> List[np.ndarray]:
        """Run every node in order and return the head outputs."""
        results: List[np.ndarray] = []
        for node in self.nodes:
            if node.is_variable:
                if node.name not in values and node.name.endswith("_label"):
                    results.append(None)
                    continue
                if node.name not in values:
                    raise EngineError(f"No value bound for variable '{node.name}'")
                results.append(values[node.name])
                continue
            args = [results[src] for src, _ in node.inputs]
            results.append(np.asarray(get_op(node.op)(backend, args, node.attrs)))
        return [results[src] for src, _ in self.heads]
