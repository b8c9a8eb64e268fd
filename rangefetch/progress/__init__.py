"""Resume state persistence for rangefetch."""

from .checkpoint_manager import CheckpointManager

__all__ = [
    "CheckpointManager"
]
