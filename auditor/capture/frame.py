"""
Frame data structure for the Industrial Safety Auditor.

A frame is an encoded JPEG payload plus capture metadata; the analysis
path never looks at pixels.
"""

from dataclasses import dataclass
from enum import Enum

import cv2
import numpy as np

DEFAULT_JPEG_QUALITY = 70


class FrameSource(Enum):
    """Frame source type."""
    WEBCAM = "webcam"     # USB webcam / integrated camera
    VIDEO_FILE = "video"  # Uploaded video file for audit


class FrameEncodingError(Exception):
    """An image could not be encoded as JPEG."""


def encode_jpeg(image: np.ndarray, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """
    Encode a BGR image as JPEG.

    Raises:
        FrameEncodingError: If OpenCV cannot encode the image
    """
    ok, buffer = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise FrameEncodingError(f"JPEG encoding failed for image of shape {image.shape}")
    return buffer.tobytes()


@dataclass(frozen=True)
class Frame:
    """
    A captured video frame ready for analysis.

    Attributes:
        payload: JPEG-encoded image bytes
        timestamp: Monotonic time of capture in seconds
        sequence: Frame counter (0-indexed)
        source: The type of source this frame came from
        width: Image width in pixels
        height: Image height in pixels
    """
    payload: bytes
    timestamp: float
    sequence: int
    source: FrameSource
    width: int
    height: int

    @classmethod
    def from_image(
        cls,
        image: np.ndarray,
        timestamp: float,
        sequence: int,
        source: FrameSource,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
    ) -> "Frame":
        """Encode a BGR image into a Frame."""
        return cls(
            payload=encode_jpeg(image, jpeg_quality),
            timestamp=timestamp,
            sequence=sequence,
            source=source,
            width=int(image.shape[1]),
            height=int(image.shape[0]),
        )

    def __repr__(self) -> str:
        return (
            f"Frame({self.width}x{self.height}, {len(self.payload)} bytes, "
            f"seq={self.sequence}, source={self.source.value}, ts={self.timestamp:.3f})"
        )
