"""
Latest-Frame Slot.

Single-slot handoff between the inference task and the actuation task:
- Publish atomically replaces the held frame
- Readers always get the newest complete frame
- Unread frames are dropped silently, never queued
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from loguru import logger

from pinart.core.contracts import DepthBuffer, FramePacket


class LatestFrameSlot:
    """
    Latest-wins cell holding one FramePacket.

    The producer and consumer may run at any relative rate. A consumer
    that is slower than the producer simply skips frames.
    """

    def __init__(self):
        self._packet: Optional[FramePacket] = None
        self._lock = threading.Lock()
        self._sequence = 0

        # Stats
        self._published = 0
        self._dropped = 0
        self._last_read_sequence: Optional[int] = None
        self._consumed = True

    def publish(
        self,
        buffer: DepthBuffer,
        source: str = "unknown",
        inference_time_ms: float = 0.0,
        timestamp_ms: Optional[float] = None,
    ) -> FramePacket:
        """
        Replace the current frame with a new depth buffer.

        Args:
            buffer: Depth buffer for the new frame
            source: Where the depth came from
            inference_time_ms: Time spent producing it
            timestamp_ms: Capture time (defaults to now)

        Returns:
            The published packet
        """
        if timestamp_ms is None:
            timestamp_ms = time.time() * 1000

        with self._lock:
            self._sequence += 1
            packet = FramePacket(
                sequence=self._sequence,
                timestamp_ms=timestamp_ms,
                buffer=buffer,
                source=source,
                inference_time_ms=inference_time_ms,
            )

            if not self._consumed:
                self._dropped += 1

            self._packet = packet
            self._published += 1
            self._consumed = False

        return packet

    def latest(self) -> Optional[FramePacket]:
        """
        Get the current frame without removing it.

        Returns:
            The newest packet, or None if nothing was published yet
        """
        with self._lock:
            packet = self._packet
            if packet is not None:
                self._consumed = True
                self._last_read_sequence = packet.sequence
            return packet

    def clear(self):
        """Drop the current frame."""
        with self._lock:
            self._packet = None
            self._consumed = True
            logger.debug("Frame slot cleared")

    @property
    def published_count(self) -> int:
        return self._published

    @property
    def dropped_count(self) -> int:
        """Frames replaced before anyone read them."""
        return self._dropped

    @property
    def last_read_sequence(self) -> Optional[int]:
        return self._last_read_sequence
