"""
Configuration for the pin art display.

Settings come from three places, later ones winning:
1. Dataclass defaults (and the selected preset)
2. A YAML settings file (config/settings.yaml by default)
3. Command-line flags

To add a new preset:
1. Add entry to PRESETS dict with your settings
2. Optionally set as ACTIVE_PRESET default
"""
from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from loguru import logger

from pinart.core.contracts import GridSpec


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "settings.yaml"


# === QUALITY PRESETS ===
# Each preset trades pin density and model resolution for speed
PRESETS = {
    "QUALITY": {
        "grid_size": 120,        # Pins per row and column
        "input_size": 504,       # Model input resolution
    },
    "BALANCED": {
        "grid_size": 90,
        "input_size": 378,
    },
    "FAST": {
        "grid_size": 60,
        "input_size": 252,
    },
}

# Default preset
ACTIVE_PRESET = "QUALITY"


@dataclass
class Config:
    """Main configuration for the pin art pipeline.

    Attributes:
        preset: Quality preset name; sets rows, cols and input_size
        rows: Pin rows
        cols: Pins per row
        spacing: Pin pitch; hex spacing is derived from it
        pin_radius: Drawn pin radius
        max_displacement: Height of a fully raised pin
        border: Frame margin around the pin field
        input_size: Depth model input resolution
        model_id: Hugging Face depth model
        device: Inference device
        use_model: Load the neural model (False = placeholder depth only)
        camera_index: Webcam device index
        capture_width: Requested capture width
        capture_height: Requested capture height
        inference_interval_s: Minimum period of the inference task
        actuation_interval_s: Period of the actuation task
        sink: Output sink ("opencv" or "headless")
        mirror: Mirror the display horizontally
    """
    preset: str = ACTIVE_PRESET

    # Grid
    rows: int = field(default=120, init=False)
    cols: int = field(default=120, init=False)
    spacing: float = 0.2
    pin_radius: float = 0.12
    max_displacement: float = 10.0
    border: float = 2.0

    # Depth model
    input_size: int = field(default=504, init=False)
    model_id: str = "depth-anything/Depth-Anything-V2-Small-hf"
    device: str = "cpu"
    use_model: bool = True

    # Video
    camera_index: int = 0
    capture_width: int = 720
    capture_height: int = 720

    # Pipeline
    inference_interval_s: float = 0.05
    actuation_interval_s: float = 1 / 60
    sink: str = "opencv"
    mirror: bool = True

    def __post_init__(self):
        """Apply preset settings."""
        self.apply_preset(self.preset)

    def apply_preset(self, name: str):
        if name not in PRESETS:
            raise ValueError(f"Unknown preset '{name}'. Available: {', '.join(PRESETS)}")
        preset = PRESETS[name]
        self.preset = name
        self.rows = preset["grid_size"]
        self.cols = preset["grid_size"]
        self.input_size = preset["input_size"]

    def grid_spec(self) -> GridSpec:
        """Static hex grid for this session."""
        return GridSpec.hexagonal(self.rows, self.cols, self.spacing, border=self.border)


# YAML section -> {yaml key: Config attribute}
_YAML_FIELDS = {
    "grid": {
        "rows": "rows",
        "cols": "cols",
        "spacing": "spacing",
        "pin_radius": "pin_radius",
        "max_displacement": "max_displacement",
        "border": "border",
    },
    "depth": {
        "input_size": "input_size",
        "model_id": "model_id",
        "device": "device",
        "use_model": "use_model",
    },
    "video": {
        "device_index": "camera_index",
        "width": "capture_width",
        "height": "capture_height",
    },
    "pipeline": {
        "inference_interval_s": "inference_interval_s",
        "actuation_interval_s": "actuation_interval_s",
        "sink": "sink",
        "mirror": "mirror",
    },
}


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from a YAML file.

    Args:
        config_path: Settings file; falls back to config/settings.yaml

    Returns:
        Config with file values applied over the defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        if config_path:
            logger.warning(f"Config file {path} not found, using defaults")
        return Config()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    config = Config(preset=data.get("preset", ACTIVE_PRESET))

    for section, fields in _YAML_FIELDS.items():
        values = data.get(section) or {}
        for key, attr in fields.items():
            if key in values:
                setattr(config, attr, values[key])

    logger.info(f"Loaded config from {path}")
    return config


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Apply command-line flags over a loaded config.

    Only flags that were actually given (not None) override.
    """
    if getattr(args, "preset", None):
        config.apply_preset(args.preset)

    overrides = {
        "grid_size": ("rows", "cols"),
        "input_size": ("input_size",),
        "device": ("device",),
        "camera": ("camera_index",),
        "sink": ("sink",),
        "max_displacement": ("max_displacement",),
    }
    for arg_name, attrs in overrides.items():
        value = getattr(args, arg_name, None)
        if value is None:
            continue
        for attr in attrs:
            setattr(config, attr, value)

    if getattr(args, "no_model", False):
        config.use_model = False
    if getattr(args, "headless", False):
        config.sink = "headless"

    return config
