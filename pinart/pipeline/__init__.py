"""
Pipeline Module.

Responsibilities:
- Per-frame depth to pin height pass
- Inference and actuation task orchestration
"""

from .actuation import PinActuationPass, pin_height
from .orchestrator import PinArtPipeline
