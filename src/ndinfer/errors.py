# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Canonical exception types for ndinfer.

Every error raised at an ndinfer API boundary derives from NDInferError so
callers can catch the whole taxonomy with a single except clause.
"""


class NDInferError(RuntimeError):
    pass


class TranslationError(NDInferError):
    """A translator failed to encode an input or decode an output."""


class ShapeMismatch(NDInferError, ValueError):
    """Input signature cannot be bound (arity change, strict shape change)."""


class UseAfterRelease(NDInferError):
    """A tensor or factory was used after its native resources were released."""


class ClosedPredictorError(NDInferError):
    """predict() was called on a closed predictor."""


class NoSamplesError(NDInferError, LookupError):
    """Statistics were requested for a metric with no recorded samples."""


class EngineError(NDInferError):
    """The native engine reported a failure."""


__all__ = [
    "ClosedPredictorError",
    "EngineError",
    "NDInferError",
    "NoSamplesError",
    "ShapeMismatch",
    "TranslationError",
    "UseAfterRelease",
]
