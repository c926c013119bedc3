# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Translator protocol and the context translators run in."""

from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol, TypeVar

from ndinfer.ndarray.factory import Factory
from ndinfer.ndarray.ndlist import NDList

if TYPE_CHECKING:
    from ndinfer.context import Context
    from ndinfer.metrics import Metrics
    from ndinfer.model import Model

I = TypeVar("I", contravariant=True)
O = TypeVar("O", covariant=True)


class TranslatorContext:
    """Per-call view of the predictor handed to a translator.

    ``factory`` is scoped to the current call and released when the call
    ends. Tensors that must outlive the call belong in ``predictor_factory``.
    """

    def __init__(
        self,
        model: "Model",
        context: "Context",
        predictor_factory: Factory,
        metrics: Optional["Metrics"],
    ):
        self._model = model
        self._context = context
        self._predictor_factory = predictor_factory
        self._factory = predictor_factory.new_sub_factory()
        self._metrics = metrics

    @property
    def model(self) -> "Model":
        return self._model

    @property
    def context(self) -> "Context":
        return self._context

    @property
    def factory(self) -> Factory:
        return self._factory

    @property
    def predictor_factory(self) -> Factory:
        return self._predictor_factory

    @property
    def metrics(self) -> Optional["Metrics"]:
        return self._metrics

    def close(self) -> None:
        self._factory.close()

    def __enter__(self) -> "TranslatorContext":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class Translator(Protocol[I, O]):
    """Protocol for the codec between application objects and tensors.

    Both methods are synchronous. ``decode`` must not mutate the list it
    receives.
    """

    def encode(self, ctx: TranslatorContext, input: I) -> NDList:
        """Build the input tensors with ``ctx.factory``."""
        ...

    def decode(self, ctx: TranslatorContext, ndlist: NDList) -> O:
        """Read the output tensors and build the application result."""
        ...


class LambdaTranslator:
    """A translator assembled from two functions.

    Example:
        >>> translator = LambdaTranslator(
        ...     lambda ctx, x: NDList([ctx.factory.from_numpy(x)]),
        ...     lambda ctx, out: out[0].numpy(),
        ... )
    """

    def __init__(
        self,
        encode: Callable[[TranslatorContext, Any], NDList],
        decode: Callable[[TranslatorContext, NDList], Any],
    ):
        self._encode = encode
        self._decode = decode

    def encode(self, ctx: TranslatorContext, input: Any) -> NDList:
        return self._encode(ctx, input)

    def decode(self, ctx: TranslatorContext, ndlist: NDList) -> Any:
        return self._decode(ctx, ndlist)
