# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Top-K image classification translator."""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from ndinfer.ndarray.ndlist import NDList
from ndinfer.translate import TranslatorContext


@dataclass(frozen=True)
class Classification:
    class_name: str
    probability: float

    def __repr__(self) -> str:
        return f"class: {self.class_name}, probability: {self.probability:.5f}"


def topk(x: np.ndarray, k: int) -> Tuple[np.ndarray, np.ndarray]:
    """The k largest values of a 1-D array in descending order, with their indices."""
    k = min(k, x.shape[0])
    if k == 0:
        return x[:0], np.zeros(0, dtype=np.int64)
    # Partition at k-1 so k may equal the array size
    indices = np.argpartition(-x, k - 1)[:k]
    values = x[indices]
    order = np.argsort(-values, kind="stable")
    return values[order], indices[order]


class TopKTranslator:
    """Encodes an array into the model's first input and decodes the top-K classes.

    The first output row is read as class probabilities. Labels come from
    the model's synset; without one, the class index is used.
    """

    def __init__(self, top_k: int = 5):
        if top_k < 1:
            raise ValueError(f"top_k must be positive, got {top_k}")
        self.top_k = top_k

    def encode(self, ctx: TranslatorContext, input) -> NDList:
        descriptor = ctx.model.describe_input()[0]
        array = ctx.factory.create(descriptor)
        array.set(input)
        return NDList([array])

    def decode(self, ctx: TranslatorContext, ndlist: NDList) -> List[Classification]:
        output = ndlist[0].numpy()
        probabilities = output.reshape(output.shape[0], -1)[0] if output.ndim > 1 else output
        values, indices = topk(probabilities.astype(np.float64), self.top_k)

        try:
            synset = ctx.model.synset
        except ValueError:
            synset = None

        results = []
        for value, index in zip(values, indices):
            index = int(index)
            if synset is not None and index < len(synset):
                name = synset[index]
            else:
                name = str(index)
            results.append(Classification(name, float(value)))
        return results
