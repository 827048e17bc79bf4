#!/usr/bin/env python3
"""
Pin Art Depth Display

Main entry point: webcam -> monocular depth -> hexagonal pin field.

Usage:
    python main.py [--config CONFIG_PATH] [--preset PRESET] [--headless]

Keyboard Controls (preview window):
    +     - Increase model input size
    -     - Decrease model input size
    Q/ESC - Quit
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from pinart.capture.video_capture import VideoCapture
from pinart.config import PRESETS, Config, apply_overrides, load_config
from pinart.depth.depth_estimator import DepthEstimator
from pinart.grid.hex_grid import HexGridMapper
from pinart.pipeline.actuation import PinActuationPass
from pinart.pipeline.orchestrator import PinArtPipeline
from pinart.render import get_sink, list_sinks


# ============================================================
# LOGGING CONFIGURATION
# ============================================================

def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Configure logging."""
    logger.remove()  # Remove default handler

    # Console output with colors
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{module}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        colorize=True,
    )

    # File output
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {module}:{line} | {message}",
            rotation="10 MB",
            retention="7 days",
        )


# ============================================================
# APPLICATION
# ============================================================

def build_pipeline(config: Config) -> PinArtPipeline:
    """Wire capture, estimator, actuation and sink from a config."""
    grid = config.grid_spec()
    mapper = HexGridMapper(grid, mirror_x=config.mirror)

    sink = get_sink(config.sink, mapper, config)

    return PinArtPipeline(
        source=VideoCapture(
            device_index=config.camera_index,
            width=config.capture_width,
            height=config.capture_height,
        ),
        estimator=DepthEstimator(
            model_id=config.model_id,
            device=config.device,
            input_size=config.input_size,
            use_model=config.use_model,
        ),
        sink=sink,
        grid=grid,
        max_displacement=config.max_displacement,
        inference_interval_s=config.inference_interval_s,
        actuation_interval_s=config.actuation_interval_s,
        actuation=PinActuationPass(grid, config.max_displacement, mapper=mapper),
    )


# ============================================================
# ENTRY POINT
# ============================================================

def parse_args(argv=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Pin Art Depth Display - live depth as a hexagonal pin field",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file (default: config/settings.yaml)",
    )

    parser.add_argument(
        "--preset",
        choices=list(PRESETS.keys()),
        default=None,
        help="Quality preset",
    )

    parser.add_argument(
        "--grid-size",
        type=int,
        default=None,
        help="Pins per row and column",
    )

    parser.add_argument(
        "--input-size",
        type=int,
        default=None,
        help="Depth model input resolution",
    )

    parser.add_argument(
        "--max-displacement",
        type=float,
        default=None,
        help="Height of a fully raised pin",
    )

    parser.add_argument(
        "--device",
        type=str,
        default=None,
        help="Inference device, e.g. cpu or cuda",
    )

    parser.add_argument(
        "--camera",
        type=int,
        default=None,
        help="Video device index",
    )

    parser.add_argument(
        "--sink",
        choices=list_sinks(),
        default=None,
        help="Output sink",
    )

    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without display window",
    )

    parser.add_argument(
        "--no-model",
        action="store_true",
        help="Skip the neural model and use placeholder depth",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-file",
        type=str,
        default="logs/pinart.log",
        help="Log file path (default: logs/pinart.log)",
    )

    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    setup_logging(args.log_level, args.log_file)

    config = apply_overrides(load_config(args.config), args)
    logger.info(
        f"Starting pin art display: {config.rows}x{config.cols} pins, "
        f"input {config.input_size}px, sink={config.sink}"
    )

    pipeline = build_pipeline(config)
    pipeline.run()


if __name__ == "__main__":
    main()
