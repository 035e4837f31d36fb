"""
CommandRunner — executes configured commands and reports each one.

For every command the runner announces the start, runs the process while
teeing its output into memory and the command's log file, writes a status
footer, and posts the result (with truncated output and the log path).
"""

from __future__ import annotations

import io
import logging
import os
import subprocess
import threading
import time
from datetime import datetime
from typing import IO, Iterable, Optional

from delivr.core import Command
from delivr.core.logs import LogSink, LogWriter
from delivr.notifications.channel import NotificationError, Notifier

logger = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 1500
TRUNCATED_SUFFIX = "... (truncated)"
SEPARATOR = "=" * 50


class CommandError(Exception):
    """A command could not be started or exited unsuccessfully."""

    def __init__(
        self,
        message: str,
        *,
        command_name: str = "",
        returncode: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.command_name = command_name
        self.returncode = returncode


def truncate_output(text: str, limit: int = MAX_OUTPUT_CHARS) -> str:
    if len(text) > limit:
        return text[:limit] + TRUNCATED_SUFFIX
    return text


def build_environment(
    command: Command, docker_host: str = ""
) -> Optional[dict[str, str]]:
    """
    Environment for the subprocess, or None to inherit unchanged.

    DOCKER_HOST is only injected for the ``docker`` executable. Entries from
    ``envVars`` are applied in order on top, so the last value for a key wins.
    """
    inject_docker = bool(docker_host) and command.command == "docker"
    if not inject_docker and not command.env_vars:
        return None

    env = dict(os.environ)
    if inject_docker:
        env["DOCKER_HOST"] = docker_host
    for entry in command.env_vars:
        key, sep, value = entry.partition("=")
        if not sep or not key:
            logger.warning(
                "Ignoring malformed envVars entry %r for command '%s'",
                entry, command.name,
            )
            continue
        env[key] = value
    return env


def _tee(stream: IO[str], buffer: io.StringIO, log_writer: LogWriter) -> None:
    for line in iter(stream.readline, ""):
        buffer.write(line)
        log_writer.write(line)
    stream.close()


class CommandRunner:
    """Runs commands sequentially, logging and notifying each one."""

    def __init__(
        self,
        notifier: Notifier,
        log_sink: LogSink,
        working_dir: str = "",
        docker_host: str = "",
    ) -> None:
        self.notifier = notifier
        self.log_sink = log_sink
        self.working_dir = working_dir or ""
        self.docker_host = docker_host or ""

    def resolve_working_dir(self, command: Command) -> str:
        return command.dir or self.working_dir or os.getcwd()

    def execute(self, command: Command) -> None:
        """
        Run one command and report it.

        Raises NotificationError if the start or result message cannot be
        delivered (the latter even when the command itself succeeded), and
        CommandError if the process could not start or exited non-zero.
        """
        started = time.monotonic()

        start_msg = f"🏃 Running command: **{command.name}**\n> {command.description}"
        try:
            self.notifier.send(start_msg)
        except NotificationError as exc:
            raise NotificationError(
                f"failed to send start message: {exc}",
                status_code=exc.status_code,
                body=exc.body,
            ) from exc

        argv = [command.command, *command.args]
        env = build_environment(command, self.docker_host)
        cwd = self.resolve_working_dir(command)
        log_writer = self.log_sink.writer_for(command.name)

        log_writer.write(
            f"\n\n{SEPARATOR}\n"
            f"Command: {command.name}\n"
            f"Description: {command.description}\n"
            f"Executed at: {datetime.now().astimezone().isoformat(timespec='seconds')}\n"
            f"Working Directory: {cwd}\n"
            f"Full Command: {command.command_line}\n"
            f"{SEPARATOR}\n\n"
        )

        logger.info("Running '%s': %s", command.name, command.command_line)
        stdout, stderr, error = self._run(command, argv, cwd, env, log_writer)

        if error is not None:
            log_writer.write(
                f"\n\n{SEPARATOR}\n"
                f"Command failed with error: {error}\n"
                f"{SEPARATOR}\n\n"
            )
        else:
            log_writer.write(
                f"\n\n{SEPARATOR}\n"
                f"Command completed successfully\n"
                f"{SEPARATOR}\n\n"
            )
        log_writer.flush()

        duration = f"{time.monotonic() - started:.2f} seconds"
        if error is not None:
            result = f"❌ Command **{command.name}** failed (took {duration})\n"
            if stderr:
                result += f"```\n{truncate_output(stderr)}\n```"
            else:
                result += f"Error: {error}"
        else:
            result = (
                f"✅ Command **{command.name}** completed successfully "
                f"(took {duration})\n"
            )
            if stdout:
                result += f"```\n{truncate_output(stdout)}\n```"

        log_path = self.log_sink.path_for(command.name)
        result += f"\n📄 Log file: `{log_path}`"

        try:
            self.notifier.send(result)
        except NotificationError as exc:
            raise NotificationError(
                f"failed to send result message: {exc}",
                status_code=exc.status_code,
                body=exc.body,
            ) from exc

        if error is not None:
            raise error

    def execute_all(self, commands: Iterable[Command]) -> None:
        """Run commands in order, stopping at the first failure."""
        for command in commands:
            try:
                self.execute(command)
            except CommandError as exc:
                raise CommandError(
                    f"command '{command.name}' failed: {exc}",
                    command_name=command.name,
                    returncode=exc.returncode,
                ) from exc
            except NotificationError as exc:
                raise NotificationError(
                    f"command '{command.name}' failed: {exc}",
                    status_code=exc.status_code,
                    body=exc.body,
                ) from exc

    def _run(
        self,
        command: Command,
        argv: list[str],
        cwd: str,
        env: Optional[dict[str, str]],
        log_writer: LogWriter,
    ) -> tuple[str, str, Optional[CommandError]]:
        stdout_buf = io.StringIO()
        stderr_buf = io.StringIO()

        try:
            proc = subprocess.Popen(
                argv,
                cwd=cwd,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            return "", "", CommandError(
                f"failed to start {command.command!r}: {exc}",
                command_name=command.name,
            )

        readers = [
            threading.Thread(
                target=_tee, args=(proc.stdout, stdout_buf, log_writer), daemon=True
            ),
            threading.Thread(
                target=_tee, args=(proc.stderr, stderr_buf, log_writer), daemon=True
            ),
        ]
        for reader in readers:
            reader.start()
        returncode = proc.wait()
        for reader in readers:
            reader.join()

        error = None
        if returncode != 0:
            error = CommandError(
                f"exit status {returncode}",
                command_name=command.name,
                returncode=returncode,
            )
        return stdout_buf.getvalue(), stderr_buf.getvalue(), error
