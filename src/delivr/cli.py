"""
CLI — the entry point for delivr.

    delivr                     Run every configured command once, then exit
    delivr --daemon            Run the commands, then wait for SIGINT/SIGTERM
    delivr --config FILE       Use an explicit config file
    delivr --init [--out FILE] Write an example config and exit
    delivr --fail-fast         Stop at the first failing command
"""

from __future__ import annotations

import logging
import signal
import sys
import threading

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from delivr import __version__
from delivr.core import (
    ConfigError,
    Command,
    create_default_config,
    load_config,
)
from delivr.core.logs import CommandLogger
from delivr.core.runner import CommandError, CommandRunner
from delivr.notifications import (
    DiscordWebhook,
    InvalidWebhookError,
    NotificationError,
    Notifier,
)

console = Console()
logger = logging.getLogger("delivr")

STARTED_MSG = "🚀 Delivr service started"
COMPLETED_MSG = "✅ Delivr - all commands have been executed"
STOPPING_MSG = "🛑 Delivr service stopping"

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _fatal(message: str) -> None:
    console.print(f"[red]Error: {escape(message)}[/red]")
    sys.exit(1)


def _notify(notifier: Notifier, text: str, what: str) -> None:
    try:
        notifier.send(text)
    except NotificationError as exc:
        logger.warning("Could not send %s: %s", what, exc)


def wait_for_shutdown_signal() -> signal.Signals:
    """Block until SIGINT or SIGTERM arrives and return it."""
    received: list[int] = []
    stop = threading.Event()

    def _handler(signum, frame):
        received.append(signum)
        stop.set()

    previous = {sig: signal.signal(sig, _handler) for sig in SHUTDOWN_SIGNALS}
    try:
        while not stop.wait(0.5):
            pass
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    return signal.Signals(received[0])


def run_commands(
    runner: CommandRunner,
    notifier: Notifier,
    commands: list[Command],
) -> int:
    """Run every command, reporting failures without stopping. Returns the failure count."""
    failures = 0
    for cmd in commands:
        try:
            runner.execute(cmd)
        except (CommandError, NotificationError) as exc:
            failures += 1
            logger.error("Error executing command '%s': %s", cmd.name, exc)
            _notify(
                notifier,
                f"❌ Error executing command '{cmd.name}': {exc}",
                "error message",
            )
    return failures


@click.command()
@click.version_option(version=__version__)
@click.option("--daemon", is_flag=True, help="Keep running after the commands finish, until SIGINT/SIGTERM.")
@click.option(
    "--config",
    "config_path",
    default="",
    help="Path to the configuration file (default: .delivr.yml / .delivr.json here, or ~/.delivr/config.yml).",
)
@click.option("--init", "init_config", is_flag=True, help="Generate a default configuration file and exit.")
@click.option("--out", "out_path", default="config.json", show_default=True, help="Path for the file generated by --init.")
@click.option("--fail-fast", is_flag=True, help="Stop at the first failing command and exit non-zero.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(daemon, config_path, init_config, out_path, fail_fast, verbose) -> None:
    """delivr — run configured commands and report them to Discord."""
    _configure_logging(verbose)

    if init_config:
        logger.info("Generating default configuration file at: %s", out_path)
        try:
            create_default_config(out_path)
        except OSError as exc:
            _fatal(f"Failed to create default configuration: {exc}")
        logger.info(
            "Default configuration created successfully. "
            "Please edit %s with your Discord webhook URL.",
            out_path,
        )
        return

    logger.info("Starting Delivr - command runner with Discord integration")

    try:
        loaded = load_config(config_path or None)
    except ConfigError as exc:
        _fatal(f"Failed to load configuration: {exc}")
    cfg = loaded.config
    logger.info("Configuration loaded from: %s", loaded.path)

    try:
        notifier = DiscordWebhook(cfg.discord.channel_id)
    except InvalidWebhookError as exc:
        _fatal(f"Failed to initialize Discord client: {exc}")

    with notifier:
        _notify(notifier, STARTED_MSG, "startup message")

        try:
            cmd_logger = CommandLogger(cfg.logs)
        except OSError as exc:
            _fatal(f"Failed to initialize logger: {exc}")

        with cmd_logger:
            runner = CommandRunner(
                notifier,
                cmd_logger,
                working_dir=cfg.working_dir or "",
                docker_host=cfg.docker_host,
            )

            if fail_fast:
                try:
                    runner.execute_all(cfg.commands)
                except (CommandError, NotificationError) as exc:
                    logger.error("%s", exc)
                    _notify(notifier, f"❌ {exc}", "error message")
                    sys.exit(1)
            else:
                failures = run_commands(runner, notifier, cfg.commands)
                if failures:
                    logger.warning("%d of %d commands failed", failures, len(cfg.commands))

            if not daemon:
                _notify(notifier, COMPLETED_MSG, "completion message")
                logger.info("All commands executed, shutting down...")
                return

            logger.info("Running in daemon mode, press Ctrl+C to exit")
            sig = wait_for_shutdown_signal()
            logger.info("Received signal %s, shutting down...", sig.name)
            _notify(notifier, STOPPING_MSG, "shutdown message")

    logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
