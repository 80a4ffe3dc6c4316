"""Lint configuration and option loading."""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

CasingPolicy = Literal["all_words_capitalized", "standard_title_case"]
ConcurrencyGroupPattern = Literal["head_ref_or_ref_name", "head_ref_or_ref"]


class LintConfig(BaseModel):
    """Recognized linter options. Read-only once constructed."""

    model_config = ConfigDict(frozen=True)

    casing_policy: CasingPolicy = "all_words_capitalized"
    concurrency_group_pattern: ConcurrencyGroupPattern = "head_ref_or_ref_name"
    max_timeout_minutes: int = Field(20, ge=1)
    max_retention_days: int = Field(3, ge=1)
    max_inline_script_lines: int = Field(10, ge=1)
    runner_denylist_pattern: str = r"-latest$"
    exempt_runners: tuple[str, ...] = ("ubuntu-slim",)
    justification_pattern: str = r"(?i)^(justif(ied|ication)|reviewed|safe)\b"
    max_workers: int | None = Field(None, ge=1)

    @field_validator("runner_denylist_pattern", "justification_pattern")
    @classmethod
    def _valid_regex(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regular expression: {e}") from e
        return value

    @property
    def runner_denylist(self) -> re.Pattern[str]:
        return re.compile(self.runner_denylist_pattern)

    @property
    def justification(self) -> re.Pattern[str]:
        return re.compile(self.justification_pattern)


_ENV_OPTIONS = {
    "casing_policy": "WFREVIEW_CASING_POLICY",
    "concurrency_group_pattern": "WFREVIEW_CONCURRENCY_GROUP_PATTERN",
    "max_timeout_minutes": "WFREVIEW_MAX_TIMEOUT_MINUTES",
    "max_retention_days": "WFREVIEW_MAX_RETENTION_DAYS",
    "max_inline_script_lines": "WFREVIEW_MAX_INLINE_SCRIPT_LINES",
    "runner_denylist_pattern": "WFREVIEW_RUNNER_DENYLIST_PATTERN",
    "justification_pattern": "WFREVIEW_JUSTIFICATION_PATTERN",
    "max_workers": "WFREVIEW_MAX_WORKERS",
}


def load_options() -> dict:
    """Load options from the options file or env fallback."""
    opts_path = os.environ.get("WFREVIEW_OPTIONS_PATH", "/data/options.json")
    if Path(opts_path).exists():
        return json.loads(Path(opts_path).read_text())

    options: dict = {
        key: os.environ[env] for key, env in _ENV_OPTIONS.items() if env in os.environ
    }
    if "WFREVIEW_EXEMPT_RUNNERS" in os.environ:
        options["exempt_runners"] = [
            r.strip() for r in os.environ["WFREVIEW_EXEMPT_RUNNERS"].split(",") if r.strip()
        ]
    return options


def load_config() -> LintConfig:
    """Build the active LintConfig from options; raises ValidationError on bad values."""
    options = load_options()
    config = LintConfig.model_validate(options)
    logger.info("Lint configuration: %s", config.model_dump())
    return config
