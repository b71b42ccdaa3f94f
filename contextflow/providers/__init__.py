"""
Provider support for contextflow: the model registry and Anthropic
request building.
"""

from contextflow.providers.anthropic_adapter import (
    MAX_CACHE_BREAKPOINTS,
    apply_cache_breakpoints,
    build_request,
    build_system_blocks,
    cache_breakpoint_indices,
)
from contextflow.providers.models import (
    ANTHROPIC_MODELS,
    DEFAULT_MODEL_ID,
    ModelProfile,
    get_model_profile,
    resolve_model_profile,
)

__all__ = [
    "ANTHROPIC_MODELS",
    "DEFAULT_MODEL_ID",
    "MAX_CACHE_BREAKPOINTS",
    "ModelProfile",
    "apply_cache_breakpoints",
    "build_request",
    "build_system_blocks",
    "cache_breakpoint_indices",
    "get_model_profile",
    "resolve_model_profile",
]
