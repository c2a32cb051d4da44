from __future__ import annotations

from .cache import ANALYSIS_KINDS, analysis_key, invalidate_analyses

__all__ = ["ANALYSIS_KINDS", "analysis_key", "invalidate_analyses"]
