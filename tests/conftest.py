"""Shared fixtures for the GitFlow Studio tests."""

import os
from unittest.mock import Mock

import pytest

from gitflow_studio.models.config import StudioConfig
from gitflow_studio.models.worktree import (
    CommitSummary,
    StatusSnapshot,
    WorktreeCard,
    WorktreeRecord,
    WorktreeState,
)
from gitflow_studio.services.config_manager import ConfigManager

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture(autouse=True)
def _qt_application(qapp):
    """Services are QObjects; make sure a QApplication exists for every test."""
    yield qapp


@pytest.fixture
def config_manager(tmp_path):
    return ConfigManager(config_file=tmp_path / "settings.json", config=StudioConfig())


@pytest.fixture
def git_service():
    return Mock()


def make_record(path, head, branch=None, **kwargs):
    """Build a WorktreeRecord the way the porcelain parser would."""
    short = branch.removeprefix("refs/heads/") if branch else path.rsplit("/", 1)[-1]
    return WorktreeRecord(
        path=path,
        head=head,
        branch=branch,
        branch_short=short,
        is_detached=branch is None,
        **kwargs,
    )


def make_card(
    path,
    head="a" * 40,
    branch="refs/heads/feature",
    is_main=False,
    status=None,
    commit=None,
    state=WorktreeState.IDLE,
    **kwargs,
):
    record = make_record(path, head, branch, **kwargs)
    return WorktreeCard(
        record=record,
        status=status or StatusSnapshot(),
        last_commit=commit or CommitSummary(sha="b" * 40, date="2026-10-18T00:00:00Z"),
        state=state,
        is_main=is_main,
        display_name=record.branch_short,
    )
