"""
Exceptions raised by the pin art core.

Only shape errors escape to callers. Empty frames are turned into
skipped passes by the actuation stage.
"""


class PinArtError(Exception):
    """Base class for all pin art errors."""


class DepthShapeError(PinArtError, ValueError):
    """Depth samples do not form a valid width x height buffer."""


class EmptyDepthError(PinArtError):
    """An operation needed depth samples but the buffer has none."""
