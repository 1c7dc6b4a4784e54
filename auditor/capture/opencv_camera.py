"""
OpenCV-based camera adapter for webcam capture.

Works on both Windows and Linux platforms using OpenCV's VideoCapture.
"""

import platform
import time
import logging
from typing import Optional

import cv2

from auditor.capture.adapter import CameraAdapter, CaptureConfig
from auditor.capture.frame import Frame, FrameSource, FrameEncodingError

logger = logging.getLogger(__name__)


class OpenCVCameraAdapter(CameraAdapter):
    """Camera adapter using OpenCV VideoCapture for live webcam input."""

    def __init__(self, config: CaptureConfig):
        super().__init__(config)
        self._cap: Optional[cv2.VideoCapture] = None

    def initialize(self) -> bool:
        """
        Open the webcam using OpenCV.

        Returns:
            True if initialization successful
        """
        camera_index = self._config.camera_index
        try:
            # DirectShow opens much faster on Windows
            if platform.system() == "Windows":
                self._cap = cv2.VideoCapture(camera_index, cv2.CAP_DSHOW)
            else:
                self._cap = cv2.VideoCapture(camera_index)

            if not self._cap.isOpened():
                logger.error(f"Failed to open camera index {camera_index}")
                return False

            width, height = self._config.resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

            # Frames are sampled seconds apart; only the newest one matters
            self._cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

            actual_width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            actual_height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
            logger.info(f"Camera initialized: {actual_width}x{actual_height}")

            self._is_initialized = True
            self.reset_frame_count()
            return True

        except cv2.error as e:
            logger.error(f"Camera initialization error: {e}")
            return False

    def capture(self) -> Optional[Frame]:
        """
        Capture and encode the current webcam frame.

        Returns:
            Frame object if successful, None if capture failed
        """
        if not self._is_initialized or self._cap is None:
            logger.warning("Camera not initialized")
            return None

        ret, image = self._cap.read()
        timestamp = time.monotonic()

        if not ret or image is None:
            logger.warning("Frame capture failed")
            return None

        try:
            return Frame.from_image(
                image,
                timestamp=timestamp,
                sequence=self._increment_frame_count(),
                source=FrameSource.WEBCAM,
                jpeg_quality=self._config.jpeg_quality,
            )
        except FrameEncodingError as e:
            logger.error(f"Capture error: {e}")
            return None

    def release(self) -> None:
        """Release the webcam."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Camera released")
        self._is_initialized = False

    def is_healthy(self) -> bool:
        if not self._is_initialized or self._cap is None:
            return False
        return self._cap.isOpened()
