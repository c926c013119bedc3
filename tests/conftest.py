# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import numpy as np
import pytest
from utils import make_classifier_model, make_mlp_model

from ndinfer.config import NDInferConfig, reset_config
from ndinfer.context import Context
from ndinfer.engine.numpy_engine import NumpyEngine
from ndinfer.ndarray import Factory


@pytest.fixture(scope="function", autouse=True)
def init_per_function(monkeypatch):
    # keep the process default config independent of the caller's environment
    for name in (
        "NDINFER_ENGINE",
        "NDINFER_DEVICE_ID",
        "NDINFER_LOG_LEVEL",
        "NDINFER_ASYNC_EXEC",
        "NDINFER_MAX_INFLIGHT",
        "NDINFER_REBIND_POLICY",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    np.random.seed(42)
    yield
    reset_config()


@pytest.fixture(params=[True, False], ids=["async", "sync"])
def engine(request):
    engine = NumpyEngine(num_devices=2, async_exec=request.param)
    yield engine
    engine.close()


@pytest.fixture
def context(engine):
    return Context(engine)


@pytest.fixture
def factory(context):
    factory = Factory.new_base_factory(context)
    yield factory
    factory.close()


@pytest.fixture
def config():
    return NDInferConfig()


@pytest.fixture
def strict_config():
    return NDInferConfig(rebind_policy="strict")


@pytest.fixture
def mlp_model():
    model = make_mlp_model()
    yield model
    model.close()


@pytest.fixture
def classifier_model():
    model = make_classifier_model()
    yield model
    model.close()
