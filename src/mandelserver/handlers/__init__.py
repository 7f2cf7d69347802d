"""
Request handling: the per-connection dispatcher and the movie generator it
calls for the dynamic route.
"""

from .dispatcher import RequestDispatcher
from .generator import (
    ContentGenerator,
    GenerationRequest,
    GenerationResult,
    MandelbrotGenerator,
)

__all__ = [
    "RequestDispatcher",
    "ContentGenerator",
    "GenerationRequest",
    "GenerationResult",
    "MandelbrotGenerator",
]
