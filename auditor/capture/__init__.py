"""Frame capture module for the Industrial Safety Auditor."""

from auditor.capture.adapter import CameraAdapter, CaptureConfig
from auditor.capture.frame import Frame, FrameSource, encode_jpeg
from auditor.capture.opencv_camera import OpenCVCameraAdapter
from auditor.capture.video_file import VideoFileAdapter
from auditor.capture.factory import create_camera_adapter

__all__ = [
    "CameraAdapter",
    "CaptureConfig",
    "Frame",
    "FrameSource",
    "encode_jpeg",
    "OpenCVCameraAdapter",
    "VideoFileAdapter",
    "create_camera_adapter",
]
