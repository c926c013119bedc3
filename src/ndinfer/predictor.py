# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Predictor: encode, forward and decode one input on a bound model.

Sample accounting for ``predict``:
    - encode fails: no samples
    - forward fails: ``Preprocess`` and ``Postprocess``
    - decode fails or success: ``Preprocess``, ``Inference`` and ``Postprocess``

Samples are durations in nanoseconds (unit ``"nano"``).
"""

import time
from contextlib import ExitStack
from enum import Enum
from typing import TYPE_CHECKING, Generic, Optional, TypeVar

from ndinfer.config import NDInferConfig, get_config
from ndinfer.context import Context
from ndinfer.errors import ClosedPredictorError, NDInferError, TranslationError
from ndinfer.logger import get_logger
from ndinfer.metrics import Metrics
from ndinfer.module import Module
from ndinfer.ndarray.factory import Factory
from ndinfer.ndarray.ndlist import NDList
from ndinfer.translate import Translator, TranslatorContext

if TYPE_CHECKING:
    from ndinfer.model import Model

logger = get_logger()

I = TypeVar("I")
O = TypeVar("O")

PREPROCESS = "Preprocess"
INFERENCE = "Inference"
POSTPROCESS = "Postprocess"


class PredictorState(Enum):
    IDLE = "idle"
    ENCODING = "encoding"
    FORWARDING = "forwarding"
    DECODING = "decoding"
    CLOSED = "closed"


def _as_ndlist(encoded) -> NDList:
    if isinstance(encoded, NDList):
        return encoded
    if isinstance(encoded, (list, tuple)):
        try:
            return NDList(encoded)
        except TypeError as e:
            raise TranslationError(f"Translator encode() returned a non-tensor: {e}") from e
    raise TranslationError(
        f"Translator encode() must return an NDList, got {type(encoded).__name__}"
    )


class Predictor(Generic[I, O]):
    """Runs a translator and a bound model for one input at a time.

    A predictor is not safe for concurrent ``predict`` calls; create one per
    thread. Several predictors may share one Metrics instance.

    Args:
        model: Model to load
        translator: Codec between application objects and tensors
        context: Execution context. If None, the predictor creates, and owns,
            a context on the model's device
        metrics: Recorder for stage timings. If None, a new one is created;
            use ``set_metrics(None)`` to disable recording
        config: Configuration. If None, the process default is used
    """

    def __init__(
        self,
        model: "Model",
        translator: Translator[I, O],
        context: Optional[Context] = None,
        metrics: Optional[Metrics] = None,
        config: Optional[NDInferConfig] = None,
    ):
        self._config = config or get_config()
        self._owns_context = context is None
        if context is None:
            context = Context.create(device_id=model.device_id, config=self._config)
        self._model = model
        self._translator = translator
        self._context = context
        self._metrics = metrics if metrics is not None else Metrics()
        try:
            self._module = Module(context, model, self._config.rebind_policy)
        except Exception:
            if self._owns_context:
                context.close()
            raise
        self._factory = Factory.new_base_factory(context)
        self._state = PredictorState.IDLE
        logger.info(f"Created predictor for model '{model.name}' on {context}")

    @property
    def model(self) -> "Model":
        return self._model

    @property
    def context(self) -> Context:
        return self._context

    @property
    def factory(self) -> Factory:
        return self._factory

    @property
    def module(self) -> Module:
        return self._module

    @property
    def state(self) -> PredictorState:
        return self._state

    @property
    def metrics(self) -> Optional[Metrics]:
        return self._metrics

    def set_metrics(self, metrics: Optional[Metrics]) -> None:
        self._metrics = metrics

    def _record(self, name: str, begin: int, end: int) -> None:
        if self._metrics is not None:
            self._metrics.add(name, end - begin, "nano")

    def predict(self, input: I) -> O:
        """Run one input through encode, forward and decode."""
        if self._state is PredictorState.CLOSED:
            raise ClosedPredictorError("Predictor has been closed")

        begin = time.perf_counter_ns()
        preprocess_end = None
        postprocess_begin = None
        try:
            with ExitStack() as stack:
                input_ctx = stack.enter_context(self._new_context())
                output_ctx = stack.enter_context(self._new_context())

                self._state = PredictorState.ENCODING
                ndlist = self._encode(input_ctx, input)
                preprocess_end = time.perf_counter_ns()
                self._record(PREPROCESS, begin, preprocess_end)

                self._state = PredictorState.FORWARDING
                try:
                    result = self._module.forward(ndlist, output_ctx.factory)
                    result.wait_to_read()
                finally:
                    postprocess_begin = time.perf_counter_ns()
                self._record(INFERENCE, preprocess_end, postprocess_begin)

                self._state = PredictorState.DECODING
                output = self._decode(output_ctx, result)
        finally:
            if self._state is not PredictorState.CLOSED:
                self._state = PredictorState.IDLE
            if postprocess_begin is not None:
                self._record(POSTPROCESS, postprocess_begin, time.perf_counter_ns())
        return output

    def _new_context(self) -> TranslatorContext:
        return TranslatorContext(self._model, self._context, self._factory, self._metrics)

    def _encode(self, ctx: TranslatorContext, input: I) -> NDList:
        try:
            encoded = self._translator.encode(ctx, input)
        except NDInferError:
            raise
        except Exception as e:
            raise TranslationError(f"Failed to encode input: {e}") from e
        return _as_ndlist(encoded)

    def _decode(self, ctx: TranslatorContext, ndlist: NDList) -> O:
        try:
            return self._translator.decode(ctx, ndlist)
        except NDInferError:
            raise
        except Exception as e:
            raise TranslationError(f"Failed to decode output: {e}") from e

    def close(self) -> None:
        if self._state is PredictorState.CLOSED:
            return
        self._state = PredictorState.CLOSED
        self._module.close()
        self._factory.close()
        if self._owns_context:
            self._context.close()
        logger.info(f"Closed predictor for model '{self._model.name}'")

    def __enter__(self) -> "Predictor[I, O]":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
