"""
Abstract camera adapter interface.

Defines the contract that all capture sources must implement.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple
from dataclasses import dataclass

from auditor.capture.frame import Frame, FrameSource, DEFAULT_JPEG_QUALITY


@dataclass
class CaptureConfig:
    """Configuration for frame capture."""
    resolution: Tuple[int, int] = (1280, 720)  # (width, height)
    source: FrameSource = FrameSource.WEBCAM
    video_path: Optional[str] = None
    camera_index: int = 0
    jpeg_quality: int = DEFAULT_JPEG_QUALITY


class CameraAdapter(ABC):
    """
    Abstract base class for capture sources.

    Capture is pull-based: the monitoring loop calls capture() on its own
    cadence and gets the most recent frame.
    """

    def __init__(self, config: CaptureConfig):
        """
        Initialize the camera adapter.

        Args:
            config: Capture configuration
        """
        self._config = config
        self._frame_count = 0
        self._is_initialized = False

    @property
    def config(self) -> CaptureConfig:
        return self._config

    @property
    def frame_count(self) -> int:
        """Get the number of frames captured."""
        return self._frame_count

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @abstractmethod
    def initialize(self) -> bool:
        """
        Open the camera/video source.

        Returns:
            True if initialization successful, False otherwise
        """

    @abstractmethod
    def capture(self) -> Optional[Frame]:
        """
        Capture a single frame.

        Returns:
            Frame object if successful, None if capture failed
        """

    @abstractmethod
    def release(self) -> None:
        """Release camera resources."""

    @abstractmethod
    def is_healthy(self) -> bool:
        """Check if the source is functioning properly."""

    def _increment_frame_count(self) -> int:
        """Increment and return the frame count."""
        count = self._frame_count
        self._frame_count += 1
        return count

    def reset_frame_count(self) -> None:
        """Reset the frame counter to zero."""
        self._frame_count = 0

    def __enter__(self) -> "CameraAdapter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
