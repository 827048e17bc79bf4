"""
Depth Module.

Responsibilities:
- Monocular depth estimation (model with placeholder fallback)
- Per-frame range normalization
- Quadratic resampling at continuous coordinates
"""

from .depth_estimator import DepthEstimator
from .normalizer import compute_range, normalize
from .resampler import lagrange, sample_quadratic
