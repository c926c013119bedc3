# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ndinfer.engine.graph import SymbolGraph
from ndinfer.errors import NDInferError
from ndinfer.logger import get_logger
from ndinfer.metrics import Metrics
from ndinfer.ndarray.types import TensorDescriptor
from ndinfer.predictor import Predictor

if TYPE_CHECKING:
    from ndinfer.context import Context
    from ndinfer.translate import Translator

logger = get_logger()

SYNSET_FILE = "synset.txt"


def _symbol_path(prefix: Path) -> Path:
    return prefix.with_name(f"{prefix.name}-symbol.json")


def _params_path(prefix: Path) -> Path:
    return prefix.with_name(f"{prefix.name}.npz")


class Model:
    """A symbol graph, its parameters and the labels of its outputs.

    Models live in host memory; a Predictor loads the graph onto a device.
    """

    def __init__(
        self,
        name: str,
        symbol: SymbolGraph,
        params: Optional[Dict[str, np.ndarray]] = None,
        synset: Optional[Sequence[str]] = None,
        device_id: int = 0,
    ):
        self.name = name
        self.symbol = symbol
        self.params = dict(params or {})
        self.device_id = device_id
        self._synset = list(synset) if synset is not None else None
        self._data_descriptors: Tuple[TensorDescriptor, ...] = ()
        self._closed = False

    @classmethod
    def load_model(
        cls, path_prefix: Path | str, device_id: int = 0, name: Optional[str] = None
    ) -> "Model":
        """Load ``<prefix>-symbol.json``, ``<prefix>.npz`` and an optional synset.

        Args:
            path_prefix: Path prefix of the model files, e.g. ``models/mlp/mlp``
            device_id: Device predictors of this model run on by default
            name: Optional name for the model. If None, uses the prefix name

        Returns:
            Model: the loaded model
        """
        prefix = Path(path_prefix)
        if name is None:
            name = prefix.name

        symbol_file = _symbol_path(prefix)
        if not symbol_file.exists():
            raise FileNotFoundError(f"Model symbol file not found: {symbol_file}")
        logger.info(f"Loading model from: {prefix}")
        symbol = SymbolGraph.from_json(symbol_file.read_text())

        params = {}
        params_file = _params_path(prefix)
        if params_file.exists():
            with np.load(params_file) as data:
                params = {k: data[k] for k in data.files}

        synset = None
        synset_file = prefix.parent / SYNSET_FILE
        if synset_file.exists():
            synset = [
                line.strip() for line in synset_file.read_text().splitlines() if line.strip()
            ]

        return cls(name, symbol, params, synset, device_id=device_id)

    def save(self, path_prefix: Path | str) -> None:
        """Write the model in the layout load_model() reads."""
        prefix = Path(path_prefix)
        prefix.parent.mkdir(parents=True, exist_ok=True)
        symbol = self.symbol
        if self._data_descriptors:
            symbol = SymbolGraph(symbol.nodes, symbol.heads, list(self._data_descriptors))
        _symbol_path(prefix).write_text(symbol.to_json())
        np.savez(_params_path(prefix), **self.params)
        if self._synset is not None:
            (prefix.parent / SYNSET_FILE).write_text("\n".join(self._synset) + "\n")

    def _check_open(self):
        if self._closed:
            raise NDInferError(f"Model '{self.name}' is closed")

    def set_data_names(self, *descriptors: TensorDescriptor) -> None:
        """Declare the data inputs of the model, in binding order."""
        self._data_descriptors = tuple(descriptors)

    def describe_input(self) -> Tuple[TensorDescriptor, ...]:
        if self._data_descriptors:
            return self._data_descriptors
        if self.symbol.input_descriptors:
            return tuple(self.symbol.input_descriptors)
        raise ValueError(
            f"Input descriptors of model '{self.name}' are unknown, "
            f"call set_data_names() first"
        )

    @property
    def synset(self) -> List[str]:
        if self._synset is None:
            raise ValueError(f"Model '{self.name}' has no synset")
        return self._synset

    def get_synset(self) -> List[str]:
        return self.synset

    @property
    def closed(self) -> bool:
        return self._closed

    def new_predictor(
        self,
        translator: "Translator",
        context: Optional["Context"] = None,
        metrics: Optional[Metrics] = None,
        config=None,
    ) -> Predictor:
        """Create a predictor for this model.

        Without a context the predictor creates, and owns, a new one on the
        model's device.
        """
        self._check_open()
        return Predictor(self, translator, context, metrics=metrics, config=config)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.params = {}
        logger.info(f"Model '{self.name}' closed")

    def __enter__(self) -> "Model":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Model(name={self.name!r}, inputs={self.symbol.data_names(self.params)})"
