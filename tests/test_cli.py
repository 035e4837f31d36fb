"""CLI tests using click's CliRunner."""

import json
import os
import signal
import sys
import threading
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from delivr import __version__
from delivr.cli import (
    COMPLETED_MSG,
    STARTED_MSG,
    STOPPING_MSG,
    main,
    wait_for_shutdown_signal,
)
from delivr.core import CONFIG_ENV_VAR, default_config, load_config

from conftest import RecordingNotifier


@pytest.fixture
def cli_env(monkeypatch, temp_dir):
    monkeypatch.chdir(temp_dir)
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.setattr("delivr.core.DELIVR_HOME", temp_dir / "home")
    return temp_dir


@pytest.fixture
def fake_webhook():
    """Replace DiscordWebhook in the CLI with a recording notifier."""
    notifier = RecordingNotifier()
    with patch("delivr.cli.DiscordWebhook", return_value=notifier) as cls:
        yield notifier, cls


def _write_config(temp_dir, commands, webhook_url="https://discord.com/api/webhooks/1/abc"):
    data = {
        "discord": {"channelId": webhook_url},
        "logs": {"directory": str(temp_dir / "logs")},
        "commands": commands,
    }
    path = temp_dir / ".delivr.json"
    path.write_text(json.dumps(data))
    return path


def _py(name, code):
    return {"name": name, "description": f"{name} desc", "command": sys.executable, "args": ["-c", code]}


class TestInit:
    def test_init_writes_default_json(self, cli_env):
        result = CliRunner().invoke(main, ["--init"])
        assert result.exit_code == 0, result.output
        assert load_config(cli_env / "config.json").config == default_config()

    def test_init_custom_out_yaml(self, cli_env):
        result = CliRunner().invoke(main, ["--init", "--out", "sub/delivr.yml"])
        assert result.exit_code == 0, result.output
        assert load_config(cli_env / "sub" / "delivr.yml").config == default_config()

    def test_init_does_not_run_commands(self, cli_env, fake_webhook):
        _write_config(cli_env, [_py("a", "pass")])
        result = CliRunner().invoke(main, ["--init"])
        assert result.exit_code == 0
        fake_webhook[1].assert_not_called()

    def test_init_unwritable(self, cli_env):
        (cli_env / "blocker").write_text("x")
        result = CliRunner().invoke(main, ["--init", "--out", "blocker/config.json"])
        assert result.exit_code == 1
        assert "Failed to create default configuration" in result.output


class TestStartupErrors:
    def test_missing_config(self, cli_env):
        result = CliRunner().invoke(main, [])
        assert result.exit_code == 1
        assert "Failed to load configuration" in result.output

    def test_undecodable_config(self, cli_env):
        (cli_env / ".delivr.json").write_bytes(b"\xff\xfe")
        result = CliRunner().invoke(main, [])
        assert result.exit_code == 1
        assert "Failed to load configuration" in result.output

    def test_invalid_webhook(self, cli_env):
        _write_config(cli_env, [_py("a", "pass")], webhook_url="YOUR_DISCORD_WEBHOOK_URL_HERE")
        result = CliRunner().invoke(main, [])
        assert result.exit_code == 1
        assert "Failed to initialize Discord client" in result.output

    def test_logger_init_failure(self, cli_env, fake_webhook):
        (cli_env / "blocker").write_text("x")
        path = cli_env / "cfg.json"
        path.write_text(json.dumps({
            "discord": {"channelId": "https://discord.com/api/webhooks/1/abc"},
            "logs": {"directory": str(cli_env / "blocker" / "logs")},
            "commands": [],
        }))
        result = CliRunner().invoke(main, ["--config", str(path)])
        assert result.exit_code == 1
        assert "Failed to initialize logger" in result.output
        assert fake_webhook[0].closed


class TestRun:
    def test_runs_all_commands_and_exits_zero(self, cli_env, fake_webhook):
        notifier, cls = fake_webhook
        _write_config(cli_env, [_py("hello", "print('hello')"), _py("fails", "raise SystemExit(1)")])

        result = CliRunner().invoke(main, [])

        assert result.exit_code == 0, result.output
        cls.assert_called_once_with("https://discord.com/api/webhooks/1/abc")
        sent = notifier.sent
        assert sent[0] == STARTED_MSG
        assert sent[-1] == COMPLETED_MSG
        assert sum(m.startswith("🏃 Running command") for m in sent) == 2
        assert any(m.startswith("✅ Command **hello**") for m in sent)
        assert any(m.startswith("❌ Command **fails** failed") for m in sent)
        assert "❌ Error executing command 'fails': exit status 1" in sent
        assert notifier.closed
        assert len(list((cli_env / "logs").glob("*.log"))) == 2

    def test_explicit_config_flag(self, cli_env, fake_webhook):
        path = _write_config(cli_env, [_py("one", "pass")])
        moved = cli_env / "elsewhere.json"
        path.rename(moved)
        result = CliRunner().invoke(main, ["--config", str(moved)])
        assert result.exit_code == 0, result.output
        assert fake_webhook[0].sent[1].startswith("🏃 Running command: **one**")

    def test_env_config(self, cli_env, fake_webhook, monkeypatch):
        path = _write_config(cli_env, [_py("one", "pass")])
        moved = cli_env / "from-env.json"
        path.rename(moved)
        monkeypatch.setenv(CONFIG_ENV_VAR, str(moved))
        result = CliRunner().invoke(main, [])
        assert result.exit_code == 0, result.output

    def test_startup_notification_failure_is_not_fatal(self, cli_env):
        notifier = RecordingNotifier(fail_on={1})
        _write_config(cli_env, [_py("one", "pass")])
        with patch("delivr.cli.DiscordWebhook", return_value=notifier):
            result = CliRunner().invoke(main, [])
        assert result.exit_code == 0, result.output
        assert notifier.sent[0].startswith("🏃 Running command: **one**")

    def test_fail_fast_stops_and_exits_nonzero(self, cli_env, fake_webhook):
        notifier, _ = fake_webhook
        marker = cli_env / "third-ran"
        _write_config(cli_env, [
            _py("first", "pass"),
            _py("second", "raise SystemExit(2)"),
            _py("third", f"open({str(marker)!r}, 'w').close()"),
        ])

        result = CliRunner().invoke(main, ["--fail-fast"])

        assert result.exit_code == 1
        assert not marker.exists()
        assert "❌ command 'second' failed: exit status 2" in notifier.sent
        assert COMPLETED_MSG not in notifier.sent

    def test_daemon_waits_for_signal(self, cli_env, fake_webhook):
        notifier, _ = fake_webhook
        _write_config(cli_env, [_py("one", "pass")])
        with patch("delivr.cli.wait_for_shutdown_signal", return_value=signal.SIGTERM) as wait:
            result = CliRunner().invoke(main, ["--daemon"])

        assert result.exit_code == 0, result.output
        wait.assert_called_once()
        assert notifier.sent[-1] == STOPPING_MSG
        assert COMPLETED_MSG not in notifier.sent

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert __version__ in result.output


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signal delivery")
def test_wait_for_shutdown_signal_returns_signal():
    previous = signal.getsignal(signal.SIGTERM)
    timer = threading.Timer(0.2, os.kill, args=(os.getpid(), signal.SIGTERM))
    timer.start()
    try:
        assert wait_for_shutdown_signal() == signal.SIGTERM
    finally:
        timer.cancel()
    assert signal.getsignal(signal.SIGTERM) == previous
