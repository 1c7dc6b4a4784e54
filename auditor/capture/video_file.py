"""
Video file adapter for auditing recorded footage.

The video "plays" in wall-clock time from initialize(); each capture grabs
the frame at the current playback position, so sampling every few seconds
behaves like watching the video live. Playback loops by default.
"""

import time
import logging
from typing import Callable, Optional
from pathlib import Path

import cv2

from auditor.capture.adapter import CameraAdapter, CaptureConfig
from auditor.capture.frame import Frame, FrameSource, FrameEncodingError

logger = logging.getLogger(__name__)


class VideoFileAdapter(CameraAdapter):
    """
    Camera adapter for video file playback.

    Supports common video formats via OpenCV (MP4, AVI, MKV, etc.).
    """

    def __init__(
        self,
        config: CaptureConfig,
        loop: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the video file adapter.

        Args:
            config: Capture configuration (must include video_path)
            loop: Whether to loop the video when it ends
            clock: Monotonic clock used for the playback position
        """
        super().__init__(config)
        self._cap: Optional[cv2.VideoCapture] = None
        self._loop = loop
        self._clock = clock
        self._video_fps: float = 30.0
        self._total_frames: int = 0
        self._started_at: float = 0.0

    def initialize(self) -> bool:
        """
        Open the video file and start the playback clock.

        Returns:
            True if initialization successful
        """
        video_path = self._config.video_path

        if video_path is None:
            logger.error("Video path not specified in config")
            return False

        path = Path(video_path)
        if not path.exists():
            logger.error(f"Video file not found: {video_path}")
            return False

        self._cap = cv2.VideoCapture(str(path))
        if not self._cap.isOpened():
            logger.error(f"Failed to open video file: {video_path}")
            return False

        self._video_fps = self._cap.get(cv2.CAP_PROP_FPS) or 30.0
        self._total_frames = int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT))
        width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))

        logger.info(
            f"Video opened: {path.name} ({width}x{height} @ {self._video_fps:.1f} FPS, "
            f"{self._total_frames} frames)"
        )

        self._is_initialized = True
        self._started_at = self._clock()
        self.reset_frame_count()
        return True

    def playback_position(self, elapsed_s: float) -> Optional[int]:
        """
        Frame index shown after elapsed_s seconds of playback.

        Returns:
            Frame index, or None when a non-looping video has ended
        """
        index = int(elapsed_s * self._video_fps)
        if self._total_frames <= 0:
            return index
        if index < self._total_frames:
            return index
        if self._loop:
            return index % self._total_frames
        return None

    def capture(self) -> Optional[Frame]:
        """
        Capture the frame at the current playback position.

        Returns:
            Frame object if successful, None if capture failed or video ended
        """
        if not self._is_initialized or self._cap is None:
            logger.warning("Video not initialized")
            return None

        now = self._clock()
        position = self.playback_position(now - self._started_at)
        if position is None:
            logger.info("Video playback complete")
            return None

        self._cap.set(cv2.CAP_PROP_POS_FRAMES, position)
        ret, image = self._cap.read()
        if not ret or image is None:
            logger.warning(f"Failed to read video frame {position}")
            return None

        try:
            return Frame.from_image(
                image,
                timestamp=now,
                sequence=self._increment_frame_count(),
                source=FrameSource.VIDEO_FILE,
                jpeg_quality=self._config.jpeg_quality,
            )
        except FrameEncodingError as e:
            logger.error(f"Video capture error: {e}")
            return None

    def release(self) -> None:
        """Release the video file."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Video file released")
        self._is_initialized = False

    def is_healthy(self) -> bool:
        if not self._is_initialized or self._cap is None:
            return False
        return self._cap.isOpened()

    @property
    def video_fps(self) -> float:
        """Get the native FPS of the video file."""
        return self._video_fps

    @property
    def total_frames(self) -> int:
        """Get total number of frames in the video."""
        return self._total_frames
