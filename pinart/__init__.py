"""
Pin Art Depth Display

Renders a live monocular depth estimate of a camera feed as a field of
movable pins, like a mechanical pin-art toy.

Pipeline per frame:
1. Capture an RGB frame
2. Estimate a dense relative depth map
3. Publish it as the latest depth buffer
4. Resample the depth field at every pin of a hexagonal grid
5. Normalize and scale into pin heights
6. Hand the heights to a render sink
"""

__version__ = "0.1.0"
__author__ = "Pin Art Display Team"
