"""Expose ORM models."""
from .video_call import CallStatus, VideoCall

__all__ = [
    "CallStatus",
    "VideoCall",
]
