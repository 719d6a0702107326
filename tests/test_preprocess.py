"""Tensor preprocessor: centre-third crop, 224x224 resize, raw RGB floats."""

import numpy as np
import pytest

from inference.config import InputSpec
from inference.errors import PipelineErrorKind, PreprocessError
from inference.preprocess import TensorPreprocessor, image_to_tensor, resize_to_input
from schemas import CropRect, Frame


class TestCenteredThirdCrop:
    """Crop geometry"""

    def test_crop_300x450(self, logger):
        rect = CropRect.centered_third(300, 450)
        assert (rect.x, rect.y, rect.width, rect.height) == (100, 150, 100, 150)
        logger.info("✅ 300x450 -> (100, 150, 100, 150)")

    def test_crop_1920x1080(self):
        rect = CropRect.centered_third(1920, 1080)
        assert rect.as_xyxy() == (640, 360, 1280, 720)

    def test_crop_uses_floor_division(self):
        rect = CropRect.centered_third(100, 50)
        assert (rect.x, rect.y, rect.width, rect.height) == (33, 17, 33, 16)

    def test_tiny_frame_gives_empty_crop(self):
        assert CropRect.centered_third(2, 2).is_empty


class TestTensorContract:
    """Shape, byte length and value range of the produced tensor"""

    def test_shape_and_byte_length(self, make_frame, logger):
        tensor = TensorPreprocessor().preprocess(make_frame(width=640, height=480))
        assert tensor.shape == (224, 224, 3)
        assert tensor.dtype == np.float32
        assert len(tensor.tobytes()) == 602112
        logger.info("✅ Tensor is 224x224x3 float32 (602112 bytes)")

    def test_values_are_not_normalised(self, make_frame, logger):
        """Uniform BGR (10, 20, 30) becomes R=30, G=20, B=10 in 0..255"""
        tensor = TensorPreprocessor().preprocess(make_frame(color=(10, 20, 30)))
        assert np.all(tensor[..., 0] == 30.0)
        assert np.all(tensor[..., 1] == 20.0)
        assert np.all(tensor[..., 2] == 10.0)
        logger.info("✅ Values kept in raw 0..255 range")

    def test_white_frame_reaches_255(self, make_frame):
        tensor = TensorPreprocessor().preprocess(make_frame(color=(255, 255, 255)))
        assert float(tensor.max()) == 255.0

    def test_pixel_formats_agree(self, make_frame, logger):
        """The same colour in BGRA, RGBA, BGR and RGB yields one tensor"""
        pre = TensorPreprocessor()
        bgra = pre.preprocess(make_frame(color=(10, 20, 30, 255), pixel_format="BGRA"))
        rgba = pre.preprocess(make_frame(color=(30, 20, 10, 255), pixel_format="RGBA"))
        bgr = pre.preprocess(make_frame(color=(10, 20, 30), pixel_format="BGR"))
        rgb = pre.preprocess(make_frame(color=(30, 20, 10), pixel_format="RGB"))

        for other in (rgba, bgr, rgb):
            np.testing.assert_array_equal(bgra, other)
        logger.info("✅ Channel order handled for every pixel format")

    def test_only_centre_third_is_used(self, logger):
        """Red border, green centre third: the tensor is pure green"""
        img = np.zeros((300, 300, 3), dtype=np.uint8)
        img[:, :] = (0, 0, 255)
        img[100:200, 100:200] = (0, 255, 0)
        frame = Frame(frame_id=1, ts=0.0, image=img, pixel_format="BGR")

        tensor = TensorPreprocessor().preprocess(frame)
        assert np.all(tensor[..., 0] == 0.0)
        assert np.all(tensor[..., 1] == 255.0)
        assert np.all(tensor[..., 2] == 0.0)
        logger.info("✅ Border pixels never reach the model")

    def test_custom_input_spec(self, make_frame):
        spec = InputSpec(width=96, height=64, channels=3)
        tensor = TensorPreprocessor(spec).preprocess(make_frame())
        assert tensor.shape == (64, 96, 3)
        assert len(tensor.tobytes()) == spec.expected_bytes


class TestPaddedBuffers:
    """Camera buffers with row padding"""

    def test_from_buffer_strips_row_padding(self, logger):
        width, height, bpr = 3, 2, 16
        buf = bytearray(b"\xee" * (bpr * height))
        for row in range(height):
            for col in range(width):
                off = row * bpr + col * 4
                buf[off:off + 4] = bytes((10, 20, 30, 255))

        frame = Frame.from_buffer(bytes(buf), width, height, bpr, pixel_format="BGRA")
        assert frame.image.shape == (2, 3, 4)
        assert np.all(frame.image == np.array([10, 20, 30, 255], dtype=np.uint8))
        logger.info("✅ Row padding dropped")

    def test_padded_frame_preprocesses(self):
        width, height, bpr = 30, 30, 128
        buf = np.full(bpr * height, 200, dtype=np.uint8).tobytes()
        frame = Frame.from_buffer(buf, width, height, bpr, pixel_format="BGRA")
        tensor = TensorPreprocessor().preprocess(frame)
        assert np.all(tensor == 200.0)

    def test_row_stride_too_small(self):
        with pytest.raises(ValueError):
            Frame.from_buffer(b"\x00" * 64, 4, 4, 12)

    def test_short_buffer(self):
        with pytest.raises(ValueError):
            Frame.from_buffer(b"\x00" * 10, 4, 4, 16)

    def test_unpacked_format_rejected(self):
        with pytest.raises(ValueError):
            Frame.from_buffer(b"\x00" * 48, 4, 4, 12, pixel_format="BGR")


class TestPreprocessFailures:
    """Every failure is a PreprocessError, never a partial tensor"""

    def test_frame_too_small(self, make_frame, logger):
        with pytest.raises(PreprocessError) as exc_info:
            TensorPreprocessor().preprocess(make_frame(width=2, height=2))
        assert exc_info.value.kind is PipelineErrorKind.PREPROCESS
        logger.info("✅ 2x2 frame rejected")

    def test_three_pixel_frame_is_enough(self, make_frame):
        tensor = TensorPreprocessor().preprocess(make_frame(width=3, height=3))
        assert tensor.shape == (224, 224, 3)

    def test_channel_mismatch(self):
        img = np.zeros((60, 60, 3), dtype=np.uint8)
        frame = Frame(frame_id=0, ts=0.0, image=img, pixel_format="BGRA")
        with pytest.raises(PreprocessError):
            TensorPreprocessor().preprocess(frame)

    def test_float_pixels_rejected(self):
        img = np.zeros((60, 60, 3), dtype=np.float32)
        frame = Frame(frame_id=0, ts=0.0, image=img, pixel_format="BGR")
        with pytest.raises(PreprocessError):
            TensorPreprocessor().preprocess(frame)

    def test_unknown_pixel_format(self):
        img = np.zeros((60, 60, 3), dtype=np.uint8)
        frame = Frame(frame_id=0, ts=0.0, image=img, pixel_format="YUV")
        with pytest.raises(PreprocessError):
            TensorPreprocessor().preprocess(frame)

    def test_image_to_tensor_wrong_size(self):
        with pytest.raises(PreprocessError):
            image_to_tensor(np.zeros((100, 100, 4), dtype=np.uint8))


class TestCropCallback:
    """Crop rectangle side channel"""

    def test_callback_receives_crop_and_frame_size(self, make_frame, logger):
        seen = []
        pre = TensorPreprocessor(on_crop=lambda rect, size: seen.append((rect, size)))
        pre.preprocess(make_frame(width=300, height=450))

        assert seen == [(CropRect(100, 150, 100, 150), (300, 450))]
        logger.info("✅ Crop published to the overlay")

    def test_failing_callback_does_not_break_preprocess(self, make_frame):
        def boom(rect, size):
            raise RuntimeError("overlay gone")

        tensor = TensorPreprocessor(on_crop=boom).preprocess(make_frame())
        assert tensor.shape == (224, 224, 3)

    def test_callback_not_called_on_failure(self, make_frame):
        seen = []
        pre = TensorPreprocessor(on_crop=lambda rect, size: seen.append(rect))
        with pytest.raises(PreprocessError):
            pre.preprocess(make_frame(width=2, height=2))
        assert seen == []


class TestWholeImageResize:
    """Full-frame resize used for heatmaps"""

    def test_resize_to_input_returns_rgba(self):
        img = np.zeros((50, 80, 3), dtype=np.uint8)
        img[:, :] = (1, 2, 3)
        out = resize_to_input(img, "BGR")
        assert out.shape == (224, 224, 4)
        assert tuple(out[0, 0, :3]) == (3, 2, 1)
