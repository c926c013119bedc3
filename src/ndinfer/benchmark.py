# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""CLI: run a classification model repeatedly and report latency percentiles."""

import argparse
import logging
import time
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np

from ndinfer.classification import TopKTranslator
from ndinfer.config import get_config
from ndinfer.logger import get_logger, set_log_level
from ndinfer.metrics import Metrics
from ndinfer.model import Model
from ndinfer.ndarray.types import DataType, TensorDescriptor
from ndinfer.predictor import INFERENCE

logger = get_logger()

DEFAULT_SHAPE = (1, 3, 224, 224)


def _parse_shape(value: str) -> Tuple[int, ...]:
    try:
        shape = tuple(int(dim) for dim in value.split(",") if dim.strip())
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid shape '{value}', expected e.g. 1,3,224,224")
    if not shape or any(dim <= 0 for dim in shape):
        raise argparse.ArgumentTypeError(f"Invalid shape '{value}'")
    return shape


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ndinfer-benchmark",
        description="Run a classification model and report inference latency",
    )
    parser.add_argument("--model-dir", required=True, help="Directory holding the model files")
    parser.add_argument(
        "--model-name",
        required=True,
        help="Model prefix, reads <model-dir>/<model-name>-symbol.json",
    )
    parser.add_argument("--input", help="Input .npy file (default: random data)")
    parser.add_argument(
        "--shape",
        type=_parse_shape,
        default=None,
        help="Input shape, comma separated (default: from the model, else 1,3,224,224)",
    )
    parser.add_argument(
        "--iterations", type=int, default=10, help="Number of predictions (default: 10)"
    )
    parser.add_argument("--top-k", type=int, default=5, help="Classes to report (default: 5)")
    parser.add_argument("--device-id", type=int, default=None, help="Device index")
    parser.add_argument("--seed", type=int, default=0, help="Seed for random input")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    return parser


def _input_descriptor(model: Model, shape: Optional[Tuple[int, ...]]) -> TensorDescriptor:
    if shape is not None:
        return TensorDescriptor(shape, DataType.FLOAT32, "data")
    try:
        return model.describe_input()[0]
    except ValueError:
        return TensorDescriptor(DEFAULT_SHAPE, DataType.FLOAT32, "data")


def run(args) -> Metrics:
    config = get_config()
    if args.device_id is not None:
        config = config.with_overrides(device_id=args.device_id)

    prefix = Path(args.model_dir) / args.model_name
    model = Model.load_model(prefix, device_id=config.device_id)
    descriptor = _input_descriptor(model, args.shape)
    model.set_data_names(descriptor)

    if args.input:
        data = np.load(args.input)
    else:
        rng = np.random.default_rng(args.seed)
        data = rng.random(descriptor.shape, dtype=np.float32)

    metrics = Metrics()
    with model:
        begin = time.perf_counter()
        predictor = model.new_predictor(
            TopKTranslator(args.top_k), metrics=metrics, config=config
        )
        with predictor:
            # The first prediction includes binding the graph
            result = predictor.predict(data)
            logger.info(f"Bind and first prediction: {(time.perf_counter() - begin) * 1e3:.3f} ms")
            logger.info(f"Result: {result}")
            for _ in range(args.iterations - 1):
                predictor.predict(data)

    p50 = metrics.percentile(INFERENCE, 50).value / 1e6
    p90 = metrics.percentile(INFERENCE, 90).value / 1e6
    logger.info(f"Inference P50: {p50:.3f} ms, P90: {p90:.3f} ms")
    return metrics


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    if args.iterations < 1:
        parser.error("--iterations must be positive")
    if args.top_k < 1:
        parser.error("--top-k must be positive")
    set_log_level(getattr(logging, args.log_level))

    try:
        run(args)
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
