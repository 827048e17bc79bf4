"""
Render sink module.

Provides different consumers for pin heights (in-memory, OpenCV preview).

To add a new sink:
1. Create a new file in this directory
2. Implement a class inheriting from BasePinSink
3. Register a factory in SINKS dict below
"""
from .base import BasePinSink
from .pin_state import PinState
from .preview_window import PreviewWindow, depth_to_image

# Registry of available sinks; factories take (mapper, config)
SINKS = {
    "headless": lambda mapper, config: PinState(mapper.grid.pin_count),
    "opencv": lambda mapper, config: PreviewWindow(
        mapper,
        config.max_displacement,
        pin_radius=config.pin_radius,
    ),
}


def get_sink(name: str, mapper, config) -> BasePinSink:
    """Get a sink instance by name.

    Args:
        name: Sink type name (e.g., "opencv", "headless")
        mapper: Grid mapper shared with the actuation pass
        config: Configuration object

    Returns:
        Sink instance (call setup() before use)
    """
    if name not in SINKS:
        available = ", ".join(SINKS.keys())
        raise ValueError(f"Unknown sink '{name}'. Available: {available}")

    return SINKS[name](mapper, config)


def list_sinks() -> list:
    """List available sink names."""
    return list(SINKS.keys())


__all__ = ['BasePinSink', 'PinState', 'PreviewWindow', 'depth_to_image', 'SINKS', 'get_sink', 'list_sinks']
