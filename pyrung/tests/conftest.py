"""Configuration for pytest."""

import logging
import pytest

from pyrung.commands import CommandContext
from pyrung.tests.fakes import FakePlatform, FakeWorkspace, RecordingProgress

logger = logging.getLogger(__name__)


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def workspace() -> FakeWorkspace:
    return FakeWorkspace()


@pytest.fixture
def progress() -> RecordingProgress:
    return RecordingProgress()


@pytest.fixture
def command_ctx(tmp_path, workspace: FakeWorkspace, platform: FakePlatform,
                progress: RecordingProgress) -> CommandContext:
    """CommandContext over the fakes, with tracking files under tmp_path."""
    return CommandContext(
        workspace=workspace,
        platform=platform,
        remote="origin",
        default_branch="main",
        state_dir=str(tmp_path),
        progress=progress,
    )
