"""Application layer for AppGuard.

This package contains the scan pipeline stages (extraction, context,
filtering, scoring, decision, recommendations, result writing) and their
orchestration. Import :mod:`appguard.application.orchestrator` for the
wired pipeline.
"""
from __future__ import annotations

from .decision import decide
from .extractor import extract_archive
from .file import collect_files
from .filtering import filter_false_positives
from .recommendations import build_recommendations
from .scoring import assess

__all__ = [
    "assess",
    "build_recommendations",
    "collect_files",
    "decide",
    "extract_archive",
    "filter_false_positives",
]
