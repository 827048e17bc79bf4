"""
Pin Grid Module.

Responsibilities:
- Hexagonal pin layout and frame footprint
- Mapping pins to depth buffer coordinates
"""

from .hex_grid import HexGridMapper
