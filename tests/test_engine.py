"""TFLite engine adapter: asset loading, size check, forward pass."""

import numpy as np
import pytest

from inference.config import ModelConfig
from inference.engine import TFLiteEngine
from inference.errors import EngineError, ModelLoadError, PipelineErrorKind, TensorSizeError

TENSOR_BYTES = 224 * 224 * 3 * 4


def _loaded_engine(test_config, factory):
    engine = TFLiteEngine(test_config.model, interpreter_factory=factory)
    engine.load_model(test_config.model_path)
    return engine


def _red_tensor():
    tensor = np.zeros((224, 224, 3), dtype=np.float32)
    tensor[..., 0] = 255.0
    return tensor


class TestModelLoading:
    """Asset handling at startup"""

    def test_missing_asset_is_fatal(self, tmp_path, interpreter_factory, logger):
        engine = TFLiteEngine(ModelConfig(), interpreter_factory=interpreter_factory)
        with pytest.raises(ModelLoadError) as exc_info:
            engine.load_model(tmp_path / "nope.tflite")
        assert exc_info.value.kind is PipelineErrorKind.ASSET
        assert not engine.is_loaded
        assert interpreter_factory.created == []
        logger.info("✅ Missing model raises ModelLoadError")

    def test_thread_count_passed_to_interpreter(self, test_config, interpreter_factory, logger):
        engine = _loaded_engine(test_config, interpreter_factory)
        interp = interpreter_factory.last
        assert interp.num_threads == 5
        assert interp.model_path == str(test_config.model_path)
        assert interp.allocated
        assert engine.is_loaded
        logger.info("✅ Interpreter built with 5 threads and allocated")

    def test_factory_failure_wrapped(self, test_config, fake_factory):
        factory = fake_factory(error=ValueError("corrupt flatbuffer"))
        engine = TFLiteEngine(test_config.model, interpreter_factory=factory)
        with pytest.raises(ModelLoadError):
            engine.load_model(test_config.model_path)

    def test_input_shape_mismatch(self, test_config, fake_factory):
        factory = fake_factory(input_shape=(1, 128, 128, 3))
        engine = TFLiteEngine(test_config.model, interpreter_factory=factory)
        with pytest.raises(ModelLoadError):
            engine.load_model(test_config.model_path)
        assert not engine.is_loaded

    def test_invalid_thread_count(self):
        with pytest.raises(ValueError):
            TFLiteEngine(ModelConfig(thread_count=0))


class TestInputSizeCheck:
    """Byte length is verified before the interpreter is touched"""

    def test_expected_bytes(self):
        assert TFLiteEngine(ModelConfig()).expected_bytes == TENSOR_BYTES

    def test_short_tensor_rejected(self, test_config, interpreter_factory, logger):
        engine = _loaded_engine(test_config, interpreter_factory)
        interp = interpreter_factory.last

        with pytest.raises(TensorSizeError) as exc_info:
            engine.infer(b"\x00" * (TENSOR_BYTES - 4))

        err = exc_info.value
        assert err.expected_bytes == TENSOR_BYTES
        assert err.actual_bytes == TENSOR_BYTES - 4
        assert "must match the required count 602112" in str(err)
        assert interp.set_calls == 0
        assert interp.invoke_calls == 0
        logger.info("✅ Wrong-size tensor rejected without touching the engine")

    def test_normalised_shape_but_wrong_dtype_rejected(self, test_config, interpreter_factory):
        """float64 arrays have twice the bytes and are refused"""
        engine = _loaded_engine(test_config, interpreter_factory)
        with pytest.raises(TensorSizeError):
            engine.infer(np.zeros((224, 224, 3), dtype=np.float64))

    def test_size_checked_before_load_state(self):
        engine = TFLiteEngine(ModelConfig())
        with pytest.raises(TensorSizeError):
            engine.infer(b"\x00" * 12)

    def test_exact_size_without_model(self):
        engine = TFLiteEngine(ModelConfig())
        with pytest.raises(EngineError):
            engine.infer(b"\x00" * TENSOR_BYTES)


class TestForwardPass:
    """Running the interpreter"""

    def test_bytes_input_accepted(self, test_config, interpreter_factory, logger):
        engine = _loaded_engine(test_config, interpreter_factory)
        out = engine.infer(_red_tensor().tobytes())

        assert out.dtype == np.float32
        assert out.shape == (4,)
        assert out[0] == pytest.approx(1.0)
        assert interpreter_factory.last.invoke_calls == 1
        logger.info(f"✅ Forward pass output: {out}")

    def test_array_input_copied_into_slot(self, test_config, interpreter_factory):
        engine = _loaded_engine(test_config, interpreter_factory)
        tensor = _red_tensor()
        engine.infer(tensor)

        slot = interpreter_factory.last.last_input
        assert slot.shape == (1, 224, 224, 3)
        np.testing.assert_array_equal(slot[0], tensor)

    def test_invoke_failure_is_recoverable(self, test_config, interpreter_factory, logger):
        engine = _loaded_engine(test_config, interpreter_factory)
        interp = interpreter_factory.last

        interp.fail_invoke = True
        with pytest.raises(EngineError) as exc_info:
            engine.infer(_red_tensor())
        assert exc_info.value.kind is PipelineErrorKind.ENGINE

        interp.fail_invoke = False
        out = engine.infer(_red_tensor())
        assert out.size == 4
        logger.info("✅ Engine usable again after a failed invoke")

    def test_output_not_float32_aligned(self, test_config, fake_factory):
        factory = fake_factory(output=np.zeros(6, dtype=np.uint8))
        engine = _loaded_engine(test_config, factory)
        with pytest.raises(EngineError):
            engine.infer(_red_tensor())

    def test_output_bytes_reinterpreted_as_float32(self, test_config, fake_factory):
        raw = np.array([0.25, 0.5], dtype=np.float32).view(np.uint8)
        engine = _loaded_engine(test_config, fake_factory(output=raw))
        out = engine.infer(_red_tensor())
        np.testing.assert_array_equal(out, np.array([0.25, 0.5], dtype=np.float32))

    def test_close_unloads(self, test_config, interpreter_factory):
        engine = _loaded_engine(test_config, interpreter_factory)
        engine.close()
        assert not engine.is_loaded
        with pytest.raises(EngineError):
            engine.infer(_red_tensor())
