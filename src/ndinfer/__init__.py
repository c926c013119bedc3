# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""ndinfer: model inference with scoped native tensor allocation.

Primary exports:
- Model: symbol graph, parameters and synset loaded from disk
- Predictor: encode, forward and decode on a bound model
- Translator, TranslatorContext: codec between application objects and tensors
- Factory, NDArray, NDList: scoped tensor allocation
- Metrics: stage timings and percentiles
"""

from ndinfer.classification import Classification, TopKTranslator
from ndinfer.config import NDInferConfig, get_config, reset_config, set_config
from ndinfer.context import Context
from ndinfer.engine import Engine, available_engines, create_engine, register_engine
from ndinfer.errors import (
    ClosedPredictorError,
    EngineError,
    NDInferError,
    NoSamplesError,
    ShapeMismatch,
    TranslationError,
    UseAfterRelease,
)
from ndinfer.metrics import Metric, Metrics, MetricSummary
from ndinfer.model import Model
from ndinfer.module import Module
from ndinfer.ndarray import DataType, Factory, NDArray, NDList, TensorDescriptor
from ndinfer.predictor import Predictor, PredictorState
from ndinfer.translate import LambdaTranslator, Translator, TranslatorContext

__all__ = [
    # Inference
    "Model",
    "Module",
    "Predictor",
    "PredictorState",
    "Translator",
    "TranslatorContext",
    "LambdaTranslator",
    "Classification",
    "TopKTranslator",
    # Tensors
    "Context",
    "DataType",
    "Factory",
    "NDArray",
    "NDList",
    "TensorDescriptor",
    # Engines
    "Engine",
    "available_engines",
    "create_engine",
    "register_engine",
    # Metrics
    "Metric",
    "Metrics",
    "MetricSummary",
    # Configuration
    "NDInferConfig",
    "get_config",
    "reset_config",
    "set_config",
    # Errors
    "ClosedPredictorError",
    "EngineError",
    "NDInferError",
    "NoSamplesError",
    "ShapeMismatch",
    "TranslationError",
    "UseAfterRelease",
]
