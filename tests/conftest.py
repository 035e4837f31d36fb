"""Pytest configuration and fixtures."""

import io
import shutil
import sys
import tempfile
from pathlib import Path

import pytest

from delivr.core import Command
from delivr.core.logs import LogSink, sanitize_filename
from delivr.notifications.channel import NotificationError, Notifier


class RecordingNotifier(Notifier):
    """In-memory notifier; fails the Nth send (1-based) when asked to."""

    name = "recording"

    def __init__(self, fail_on: set[int] | None = None):
        self.sent: list[str] = []
        self.embeds: list[dict] = []
        self.fail_on = fail_on or set()
        self.attempts = 0
        self.closed = False

    def send(self, text: str) -> None:
        self.attempts += 1
        if self.attempts in self.fail_on:
            raise NotificationError("HTTP 500", status_code=500)
        self.sent.append(text)

    def send_embed(self, title, description, fields=None, color=0) -> None:
        self.embeds.append(
            {"title": title, "description": description, "fields": fields, "color": color}
        )

    def close(self) -> None:
        self.closed = True


class MemoryWriter(io.StringIO):
    pass


class MemoryLogSink(LogSink):
    """Log sink that keeps each command's log in memory."""

    def __init__(self, directory: Path = Path("/tmp/delivr-test-logs")):
        self.directory = directory
        self.writers: dict[str, MemoryWriter] = {}

    def writer_for(self, command_name: str) -> MemoryWriter:
        key = sanitize_filename(command_name)
        return self.writers.setdefault(key, MemoryWriter())

    def path_for(self, command_name: str) -> Path:
        return self.directory / f"{sanitize_filename(command_name)}.log"

    def text(self, command_name: str) -> str:
        return self.writers[sanitize_filename(command_name)].getvalue()


def python_command(name: str, code: str, **kwargs) -> Command:
    """A command that runs a snippet with the current interpreter."""
    return Command(
        name=name,
        description=kwargs.pop("description", f"{name} description"),
        command=sys.executable,
        args=["-c", code],
        **kwargs,
    )


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test artifacts."""
    dirpath = tempfile.mkdtemp()
    yield Path(dirpath)
    shutil.rmtree(dirpath, ignore_errors=True)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def log_sink(temp_dir):
    return MemoryLogSink(temp_dir)


@pytest.fixture
def webhook_url():
    return "https://discord.com/api/webhooks/123456/abcdef"


@pytest.fixture
def sample_config_data(webhook_url):
    """Sample on-disk configuration using camelCase keys."""
    return {
        "workingDir": "/srv/app",
        "docker": {"host": "tcp://docker.local:2375"},
        "logs": {"directory": "./logs", "maxSize": 5, "compress": False},
        "discord": {"channelId": webhook_url},
        "commands": [
            {
                "name": "Deploy",
                "description": "Pull and restart",
                "command": "docker",
                "args": ["compose", "up", "-d"],
                "dir": "/srv/deploy",
                "envVars": ["COMPOSE_PROJECT_NAME=web"],
            },
            {"name": "Git Status", "command": "git", "args": ["status"]},
        ],
    }
