"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import TYPE_CHECKING

from wfreview.config import LintConfig

if TYPE_CHECKING:
    from wfreview.reviewer.engine import ReviewEngine

_config: LintConfig | None = None
_review_engine: ReviewEngine | None = None


def get_config() -> LintConfig:
    """FastAPI dependency: return the active LintConfig."""
    assert _config is not None, "LintConfig not initialised"
    return _config


def get_review_engine() -> ReviewEngine:
    """FastAPI dependency: return the shared ReviewEngine."""
    assert _review_engine is not None, "ReviewEngine not initialised"
    return _review_engine
