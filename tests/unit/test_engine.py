# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Unit tests for the numpy engine and engine selection."""

import numpy as np
import pytest
from utils import cpu_assert_allclose, faulting_symbol, mlp_params, mlp_reference, mlp_symbol

from ndinfer.context import Context
from ndinfer.engine import available_engines, create_engine
from ndinfer.engine.numpy_engine import NumpyEngine
from ndinfer.errors import EngineError, ShapeMismatch
from ndinfer.ndarray.types import DataType, TensorDescriptor


def _load_mlp(engine, device_id=0):
    return engine.load_graph("mlp", mlp_symbol(), mlp_params(), device_id)


def test_create_engine():
    assert "numpy" in available_engines()
    engine = create_engine("numpy", async_exec=False)
    try:
        assert isinstance(engine, NumpyEngine)
        assert engine.device_count() == 1
    finally:
        engine.close()
    with pytest.raises(ValueError, match="Unknown engine 'neuron'"):
        create_engine("neuron")


def test_buffer_lifecycle(engine):
    desc = TensorDescriptor((2, 2), DataType.FLOAT32, "x")
    buffer = engine.allocate(desc)
    assert engine.memory_stats()["live_buffers"] == 1
    assert engine.memory_stats()["used_bytes"] == 16
    engine.write(buffer, np.arange(4))
    np.testing.assert_array_equal(engine.read(buffer), [[0, 1], [2, 3]])

    engine.free(buffer)
    stats = engine.memory_stats()
    assert stats["live_buffers"] == 0
    assert stats["used_bytes"] == 0
    with pytest.raises(EngineError, match="Double free"):
        engine.free(buffer)
    with pytest.raises(EngineError, match="has been freed"):
        engine.read(buffer)


def test_write_size_mismatch(engine):
    buffer = engine.allocate(TensorDescriptor((3,)))
    with pytest.raises(ValueError, match="Cannot write 2 elements"):
        engine.write(buffer, np.zeros(2))


def test_invalid_device(engine):
    with pytest.raises(EngineError, match="Device 2 is not available"):
        engine.allocate(TensorDescriptor((1,)), device_id=2)
    with pytest.raises(ValueError, match="Device 5 is not available"):
        Context(engine, device_id=5)


def test_bind_infers_output_descriptors(engine):
    graph = _load_mlp(engine)
    assert graph.input_names == ("data",)
    executor = engine.bind(graph, [TensorDescriptor((2, 4))])
    assert executor.input_descriptors == (TensorDescriptor((2, 4), DataType.FLOAT32, "data"),)
    assert executor.output_descriptors == (
        TensorDescriptor((2, 3), DataType.FLOAT32, "softmax_output"),
    )
    assert engine.memory_stats()["bind_count"] == 1


def test_bind_rejects_signature(engine):
    graph = _load_mlp(engine)
    with pytest.raises(ShapeMismatch, match="expects 1 input"):
        engine.bind(graph, [TensorDescriptor((1, 4)), TensorDescriptor((1, 4))])
    with pytest.raises(ShapeMismatch, match="cannot be bound"):
        engine.bind(graph, [TensorDescriptor((1, 5))])


def test_execute(engine):
    params = mlp_params()
    graph = _load_mlp(engine)
    executor = engine.bind(graph, [TensorDescriptor((2, 4))])
    x = np.random.randn(2, 4).astype(np.float32)

    inp = engine.allocate(executor.input_descriptors[0])
    out = engine.allocate(executor.output_descriptors[0])
    engine.write(inp, x)
    engine.execute(executor, [inp], [out])
    engine.wait(out)
    cpu_assert_allclose(engine.read(out), mlp_reference(x, params))
    assert engine.memory_stats()["execute_count"] == 1


def test_execute_validates_io(engine):
    graph = _load_mlp(engine)
    executor = engine.bind(graph, [TensorDescriptor((1, 4))])
    inp = engine.allocate(TensorDescriptor((2, 4)))
    out = engine.allocate(executor.output_descriptors[0])
    with pytest.raises(EngineError, match="expected shape"):
        engine.execute(executor, [inp], [out])
    with pytest.raises(EngineError, match="1 input"):
        engine.execute(executor, [], [out])

    other_device = engine.allocate(TensorDescriptor((1, 4)), device_id=1)
    with pytest.raises(EngineError, match="same device"):
        engine.execute(executor, [other_device], [out])


def test_execution_failure_surfaces_on_wait(engine):
    graph = engine.load_graph("fault", faulting_symbol(), {}, 0)
    executor = engine.bind(graph, [TensorDescriptor((1, 4))])
    inp = engine.allocate(executor.input_descriptors[0])
    out = engine.allocate(executor.output_descriptors[0])
    engine.write(inp, np.ones(4))
    engine.execute(executor, [inp], [out])
    with pytest.raises(EngineError, match="device fault"):
        engine.wait(out)


def test_released_executor_and_unloaded_graph(engine):
    graph = _load_mlp(engine)
    executor = engine.bind(graph, [TensorDescriptor((1, 4))])
    inp = engine.allocate(executor.input_descriptors[0])
    out = engine.allocate(executor.output_descriptors[0])
    engine.release_executor(executor)
    with pytest.raises(EngineError, match="has been released"):
        engine.execute(executor, [inp], [out])
    engine.unload_graph(graph)
    with pytest.raises(EngineError, match="has been unloaded"):
        engine.bind(graph, [TensorDescriptor((1, 4))])


def test_closed_engine():
    engine = NumpyEngine()
    engine.close()
    engine.close()
    with pytest.raises(EngineError, match="Engine is closed"):
        engine.allocate(TensorDescriptor((1,)))


def test_context_owns_engine(config):
    context = Context.create(config=config.with_overrides(async_exec=False))
    engine = context.engine
    assert context.device_id == 0
    context.close()
    assert context.closed
    with pytest.raises(EngineError, match="Engine is closed"):
        engine.allocate(TensorDescriptor((1,)))


def test_context_does_not_close_shared_engine(engine):
    with Context(engine, device_id=1) as context:
        assert context == Context(engine, 1)
        assert context != Context(engine, 0)
    engine.allocate(TensorDescriptor((1,)))
