"""
Step catalog

The registry of step kinds and their built-in implementations.
"""

from .context import StepContext
from .registry import StepRegistry

__all__ = [
    "StepContext",
    "StepRegistry"
]
