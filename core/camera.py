"""
core/camera.py

Webcam capture for the live runner.

A producer thread reads frames as fast as the driver delivers them and
keeps only the newest one in a one-slot queue; anything the main loop
did not pick up in time is thrown away. Frames are stamped with
time.perf_counter() right after capture, which is the clock the
FrameThrottle compares against.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Optional

import cv2

from schemas import Frame

logger = logging.getLogger(__name__)

# consecutive failed reads before we start complaining in the log
READ_FAILURE_WARN_AFTER = 30


def open_camera(index: int = 0, w: int = 1280, h: int = 720, fps: int = 30,
                buffersize: int = 1, backend: int = cv2.CAP_ANY) -> cv2.VideoCapture:
    """
    Open camera `index` and request resolution / rate.

    The driver is free to ignore w, h and fps; Frame.size reports what
    was actually delivered. buffersize=1 keeps OpenCV from queueing stale
    frames on its side.
    """
    cap = cv2.VideoCapture(index, backend)
    for prop, value in (
        (cv2.CAP_PROP_FRAME_WIDTH, w),
        (cv2.CAP_PROP_FRAME_HEIGHT, h),
        (cv2.CAP_PROP_FPS, fps),
        (cv2.CAP_PROP_BUFFERSIZE, buffersize),
    ):
        cap.set(prop, value)
    return cap


class CameraSource:
    """
    Latest-frame camera reader.

        with CameraSource(0) as src:
            frame = src.read_latest()

    or call start() / stop() explicitly. Frames are BGR.

    Attributes
    ----------
    discarded : int
        Frames replaced before the consumer read them.
    read_failures : int
        Total failed cap.read() calls.
    """

    def __init__(self, cam_index: int = 0, camera_id: str = "cam0", **kw) -> None:
        self.cap = open_camera(cam_index, **kw)
        if not self.cap.isOpened():
            raise RuntimeError(f"Camera {cam_index} not available")

        self.camera_id = camera_id
        self._slot: "queue.Queue[Frame]" = queue.Queue(maxsize=1)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._next_id = 0
        self.discarded = 0
        self.read_failures = 0

    def __enter__(self) -> "CameraSource":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    def _publish(self, frame: Frame) -> None:
        try:
            self._slot.get_nowait()
            self.discarded += 1
        except queue.Empty:
            pass
        self._slot.put_nowait(frame)

    def _producer(self) -> None:
        failures_in_row = 0
        while not self._stop.is_set():
            ok, img = self.cap.read()
            if not ok or img is None:
                self.read_failures += 1
                failures_in_row += 1
                if failures_in_row == READ_FAILURE_WARN_AFTER:
                    logger.warning(
                        "Camera %s: %d reads failed in a row", self.camera_id, failures_in_row
                    )
                time.sleep(0.005)
                continue
            failures_in_row = 0

            self._publish(Frame(
                frame_id=self._next_id,
                ts=time.perf_counter(),
                image=img,
                pixel_format="BGR",
                camera_id=self.camera_id,
            ))
            self._next_id += 1

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._producer, name="camera", daemon=True)
        self._thread.start()
        logger.info("Camera %s capture started", self.camera_id)

    def read_latest(self, timeout: float = 1.0) -> Optional[Frame]:
        """Newest frame, or None if nothing arrived within `timeout` seconds."""
        try:
            return self._slot.get(timeout=timeout)
        except queue.Empty:
            return None

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        self.cap.release()
        logger.info(
            "Camera %s released (%d frames, %d stale discarded, %d failed reads)",
            self.camera_id,
            self._next_id,
            self.discarded,
            self.read_failures,
        )
