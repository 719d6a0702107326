"""Shared fixtures for the LeafScan test-suite."""

import logging
from pathlib import Path

import numpy as np
import pytest

from core.config import default_config
from inference.pipeline import LeafClassifier
from schemas import Frame

LABELS_TXT = "Healthy\n\nLeaf Blight\n   \nRust\nPowdery Mildew\n"


def channel_mean_scores(values: np.ndarray) -> np.ndarray:
    """
    Deterministic stand-in for a classifier: one score per colour channel
    (mean R, mean G, mean B scaled to 0..1) plus a constant 4th class.
    """
    flat = values.reshape(-1, values.shape[-1]).astype(np.float64)
    means = flat.mean(axis=0) / 255.0
    return np.array([means[0], means[1], means[2], 0.05], dtype=np.float32)


class FakeInterpreter:
    """Minimal object with the tflite Interpreter API used by TFLiteEngine."""

    def __init__(
        self,
        model_path,
        num_threads,
        score_fn=channel_mean_scores,
        input_shape=(1, 224, 224, 3),
        output=None,
    ):
        self.model_path = model_path
        self.num_threads = num_threads
        self.score_fn = score_fn
        self.input_shape = tuple(input_shape)
        self.fixed_output = output

        self.allocated = False
        self.fail_invoke = False
        self.set_calls = 0
        self.invoke_calls = 0
        self.last_input = None
        self._output = None

    def allocate_tensors(self):
        self.allocated = True

    def get_input_details(self):
        return [{"index": 0, "shape": np.array(self.input_shape), "dtype": np.float32}]

    def get_output_details(self):
        return [{"index": 1, "shape": np.array([1, 4]), "dtype": np.float32}]

    def set_tensor(self, index, value):
        assert index == 0
        self.set_calls += 1
        self.last_input = np.array(value, copy=True)

    def invoke(self):
        self.invoke_calls += 1
        if self.fail_invoke:
            raise RuntimeError("invoke failed")
        if self.fixed_output is not None:
            self._output = self.fixed_output
        else:
            self._output = self.score_fn(self.last_input).reshape(1, -1)

    def get_tensor(self, index):
        assert index == 1
        return self._output


class FakeInterpreterFactory:
    """
    Interpreter factory for TFLiteEngine. Records every interpreter it
    builds so tests can inspect calls; `error` makes creation fail.
    """

    def __init__(self, error=None, **interpreter_kwargs):
        self.error = error
        self.interpreter_kwargs = interpreter_kwargs
        self.created = []

    def __call__(self, model_path, num_threads):
        if self.error is not None:
            raise self.error
        interp = FakeInterpreter(model_path, num_threads, **self.interpreter_kwargs)
        self.created.append(interp)
        return interp

    @property
    def last(self):
        return self.created[-1]


@pytest.fixture
def logger():
    return logging.getLogger("leafscan.tests")


@pytest.fixture
def test_config(tmp_path):
    """Default config whose models_dir holds a dummy model and a label file."""
    cfg = default_config()
    models_dir = tmp_path / "models"
    models_dir.mkdir()
    cfg.paths.models_dir = str(models_dir)
    cfg.paths.logs_dir = str(tmp_path / "logs")
    cfg.paths.output_dir = str(tmp_path / "output")

    Path(cfg.model_path).write_bytes(b"TFL3-dummy")
    Path(cfg.labels_path).write_text(LABELS_TXT, encoding="utf-8")
    return cfg


@pytest.fixture
def fake_factory():
    """The factory class, for tests that need custom interpreter behaviour."""
    return FakeInterpreterFactory


@pytest.fixture
def interpreter_factory():
    return FakeInterpreterFactory()


@pytest.fixture
def classifier(test_config, interpreter_factory):
    clf = LeafClassifier.from_config(test_config, interpreter_factory=interpreter_factory)
    clf.load_model()
    clf.load_labels()
    yield clf
    clf.close()


@pytest.fixture
def make_frame():
    """make_frame(color, width, height, pixel_format, ts) -> uniform Frame."""

    def _make(color=(0, 0, 255), width=300, height=300, pixel_format="BGR", ts=0.0, frame_id=0):
        channels = len(pixel_format)
        img = np.zeros((height, width, channels), dtype=np.uint8)
        img[:, :] = color[:channels] if len(color) >= channels else tuple(color) + (255,)
        return Frame(frame_id=frame_id, ts=ts, image=img, pixel_format=pixel_format)

    return _make
