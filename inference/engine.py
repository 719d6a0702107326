"""
inference/engine.py

TFLite interpreter adapter.

Responsibilities:
  - load the bundled .tflite asset once (missing asset is fatal),
  - validate every input tensor's byte length BEFORE touching the engine,
  - run exactly one forward pass per call, one call at a time,
  - hand back the output slot reinterpreted as float32.

The interpreter is created through a factory so tests (and alternative
runtimes exposing the same API: allocate_tensors / get_input_details /
get_output_details / set_tensor / invoke / get_tensor) can be plugged in.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional, Union

import numpy as np

from .config import FLOAT32_BYTES, ModelConfig
from .errors import EngineError, ModelLoadError, TensorSizeError

logger = logging.getLogger(__name__)

TensorLike = Union[bytes, bytearray, memoryview, np.ndarray]
InterpreterFactory = Callable[[str, int], Any]


def tflite_interpreter_factory(model_path: str, num_threads: int) -> Any:
    """Create a tflite_runtime Interpreter for `model_path`."""
    try:
        from tflite_runtime.interpreter import Interpreter
    except ImportError as exc:
        raise ModelLoadError(
            "tflite-runtime is not installed; install the 'tflite' extra "
            "(pip install leafscan[tflite])"
        ) from exc
    return Interpreter(model_path=model_path, num_threads=num_threads)


def _tensor_bytes(tensor: TensorLike) -> bytes:
    if isinstance(tensor, np.ndarray):
        return np.ascontiguousarray(tensor).tobytes()
    if isinstance(tensor, (bytes, bytearray, memoryview)):
        return bytes(tensor)
    raise TypeError(f"Unsupported tensor type: {type(tensor).__name__}")


class TFLiteEngine:
    """
    Single-owner handle around one interpreter instance.

    All forward passes (live video, single photos, saliency tiles) go
    through `infer`, which holds a lock for the whole copy/invoke/read
    sequence. The interpreter is not safe for concurrent invocation.
    """

    def __init__(
        self,
        model_cfg: Optional[ModelConfig] = None,
        interpreter_factory: Optional[InterpreterFactory] = None,
    ) -> None:
        self.cfg = model_cfg or ModelConfig()
        self.cfg.validate()
        self._factory = interpreter_factory or tflite_interpreter_factory

        self._interpreter: Any = None
        self._input_index: int = 0
        self._output_index: int = 0
        self._input_shape: tuple = (1,) + tuple(self.cfg.input.shape)
        self._lock = threading.Lock()
        self.model_path: Optional[Path] = None

    @property
    def is_loaded(self) -> bool:
        return self._interpreter is not None

    @property
    def expected_bytes(self) -> int:
        return self.cfg.input.expected_bytes

    def load_model(self, path: Union[str, Path]) -> None:
        """
        Create the interpreter and allocate its tensors.

        Raises
        ------
        ModelLoadError
            Asset missing, interpreter creation / allocation failed, or
            the model's input tensor does not match the configured
            contract. The caller cannot proceed without a classifier.
        """
        path = Path(path)
        if not path.is_file():
            raise ModelLoadError(f"Model file not found: {path}")

        threads = int(self.cfg.thread_count)
        try:
            interpreter = self._factory(str(path), threads)
            interpreter.allocate_tensors()
            input_detail = interpreter.get_input_details()[0]
            output_detail = interpreter.get_output_details()[0]
        except ModelLoadError:
            raise
        except Exception as exc:
            raise ModelLoadError(f"Failed to load the model {path}: {exc}") from exc

        input_shape = tuple(int(d) for d in input_detail["shape"])
        if int(np.prod(input_shape)) != self.cfg.input.num_values:
            raise ModelLoadError(
                f"Model input shape {input_shape} does not match configured "
                f"{self.cfg.input.shape} ({self.cfg.input.num_values} values)"
            )

        with self._lock:
            self._interpreter = interpreter
            self._input_index = int(input_detail["index"])
            self._output_index = int(output_detail["index"])
            self._input_shape = input_shape
            self.model_path = path

        logger.info(
            "TFLite interpreter created and tensors allocated "
            "(model=%s, input=%s, output=%s, threads=%d)",
            path,
            input_shape,
            tuple(int(d) for d in output_detail["shape"]),
            threads,
        )

    def infer(self, tensor: TensorLike) -> np.ndarray:
        """
        Run one forward pass.

        Parameters
        ----------
        tensor :
            float32 input, either raw bytes or a numpy array. Its byte
            length must be width * height * channels * 4.

        Returns
        -------
        np.ndarray
            1-D float32 output vector (one score per class).

        Raises
        ------
        TensorSizeError
            Wrong byte length; the interpreter is not touched.
        EngineError
            Interpreter missing or copy / invoke / output read failed.
        """
        data = _tensor_bytes(tensor)
        expected = self.expected_bytes
        if len(data) != expected:
            err = TensorSizeError(expected, len(data))
            logger.warning("Failed to run inference: %s", err)
            raise err

        if self._interpreter is None:
            raise EngineError("Interpreter is not initialized.")

        with self._lock:
            try:
                values = np.frombuffer(data, dtype=np.float32).reshape(self._input_shape).copy()
                self._interpreter.set_tensor(self._input_index, values)
                self._interpreter.invoke()
                output = self._interpreter.get_tensor(self._output_index)
            except Exception as exc:
                logger.error("Failed to run inference: %s", exc)
                raise EngineError(f"Interpreter invocation failed: {exc}") from exc

        raw = np.asarray(output).tobytes()
        if len(raw) % FLOAT32_BYTES != 0:
            raise EngineError(
                f"Output tensor holds {len(raw)} bytes, not a whole number of float32 values"
            )
        return np.frombuffer(raw, dtype=np.float32).copy()

    def close(self) -> None:
        with self._lock:
            self._interpreter = None
