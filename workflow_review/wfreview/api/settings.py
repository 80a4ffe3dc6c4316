"""Settings API: read and update the active lint configuration."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, ValidationError

import wfreview.deps as deps
from wfreview.config import CasingPolicy, ConcurrencyGroupPattern, LintConfig
from wfreview.deps import get_config, get_review_engine
from wfreview.reviewer.engine import ReviewEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["settings"])


class LintSettingsUpdateRequest(BaseModel):
    casing_policy: CasingPolicy | None = None
    concurrency_group_pattern: ConcurrencyGroupPattern | None = None
    max_timeout_minutes: int | None = Field(None, ge=1)
    max_retention_days: int | None = Field(None, ge=1)
    max_inline_script_lines: int | None = Field(None, ge=1)
    runner_denylist_pattern: str | None = None
    exempt_runners: list[str] | None = None
    justification_pattern: str | None = None
    max_workers: int | None = Field(None, ge=1)


@router.get("/settings/lint", response_model=LintConfig)
async def get_lint_settings(
    config: LintConfig = Depends(get_config),
) -> LintConfig:
    """Return the active lint configuration."""
    return config


@router.put("/settings/lint", response_model=LintConfig)
async def update_lint_settings(
    body: LintSettingsUpdateRequest,
    engine: ReviewEngine = Depends(get_review_engine),
) -> LintConfig:
    """Update lint settings at runtime.

    Only provided fields are updated; omitted fields keep their current value.
    """
    update = body.model_dump(exclude_none=True)
    try:
        config = LintConfig.model_validate({**engine.config.model_dump(), **update})
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False),
        ) from e

    # Swap globally
    deps._config = config
    deps._review_engine = ReviewEngine(config, engine.rules)

    logger.info("Lint settings updated: %s", sorted(update))
    return config
