"""
Capture Module.

Responsibilities:
- Webcam frame acquisition
- Latest-wins handoff of depth frames between tasks
"""

from .video_capture import VideoCapture
from .frame_slot import LatestFrameSlot
