"""
Camera adapter factory.

Creates the appropriate capture source based on configuration.
"""

import logging

from auditor.capture.adapter import CameraAdapter, CaptureConfig
from auditor.capture.frame import FrameSource
from auditor.capture.opencv_camera import OpenCVCameraAdapter
from auditor.capture.video_file import VideoFileAdapter

logger = logging.getLogger(__name__)


def create_camera_adapter(config: CaptureConfig, video_loop: bool = True) -> CameraAdapter:
    """
    Create the capture source for a configuration.

    Args:
        config: Capture configuration
        video_loop: Whether to loop video file playback

    Returns:
        CameraAdapter instance (not yet initialized)

    Raises:
        ValueError: If configuration is invalid
    """
    source = config.source

    if source == FrameSource.VIDEO_FILE:
        if config.video_path is None:
            raise ValueError("video_path required for VIDEO_FILE source")

        logger.info(f"Creating video file adapter: {config.video_path}")
        return VideoFileAdapter(config, loop=video_loop)

    if source == FrameSource.WEBCAM:
        logger.info(f"Creating OpenCV camera adapter (index {config.camera_index})")
        return OpenCVCameraAdapter(config)

    raise ValueError(f"Unknown frame source: {source}")
