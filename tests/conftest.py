"""Shared test fixtures and configuration."""

import os
import sys
from pathlib import Path

# Add workflow_review/ to Python path so `from wfreview.xxx` imports work
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "workflow_review"))

import pytest

os.environ["WFREVIEW_DEV_MODE"] = "true"

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def ci_workflow_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "ci_workflow.yml"


@pytest.fixture
def clean_workflow_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "clean_workflow.yml"
