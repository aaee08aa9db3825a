"""
Verified invocation of external executables.

:meth:`Invoker.invoke` runs a command with a hard timeout and reports every
outcome (exit status, spawn failure, timeout) as an :class:`InvocationResult`
instead of raising.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .config import HookConfig
from .platform_profile import PlatformProfile

logger = logging.getLogger(__name__)

ON_WINDOWS = sys.platform == "win32"


def normalize_newlines(text: str) -> str:
    """Convert CRLF and lone CR line endings to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


@dataclass(frozen=True)
class InvocationResult:
    """Outcome of one process invocation."""

    exit_code: int
    stdout: bytes = b""
    stderr: bytes = b""
    timed_out: bool = False
    spawn_error: str | None = None
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        """Exited with status zero, was spawned, and finished in time."""
        return self.exit_code == 0 and self.spawn_error is None and not self.timed_out

    @property
    def stdout_text(self) -> str:
        return normalize_newlines(self.stdout.decode("utf-8", errors="replace"))

    @property
    def stderr_text(self) -> str:
        return normalize_newlines(self.stderr.decode("utf-8", errors="replace"))

    def describe_failure(self) -> str:
        """Short human-readable reason this invocation did not succeed."""
        if self.spawn_error:
            return f"could not start: {self.spawn_error}"
        if self.timed_out:
            return f"timed out after {self.duration_seconds:.1f}s"
        if self.exit_code != 0:
            detail = (self.stderr_text or self.stdout_text).strip().splitlines()
            suffix = f": {detail[0]}" if detail else ""
            return f"exited with status {self.exit_code}{suffix}"
        return ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "exit_code": self.exit_code,
            "stdout": self.stdout_text,
            "stderr": self.stderr_text,
            "timed_out": self.timed_out,
            "spawn_error": self.spawn_error,
            "duration_seconds": self.duration_seconds,
        }


class Invoker:
    """
    Runs executables according to a platform profile.

    The child's stdin is closed and its output captured. It gets a process
    group of its own so a timeout can kill the whole tree (the group on POSIX,
    ``taskkill /T`` on Windows).
    """

    def __init__(self, profile: PlatformProfile, config: HookConfig | None = None) -> None:
        self.profile = profile
        self.config = config or HookConfig()

    def invoke(
        self,
        path: str,
        args: Sequence[str] = (),
        cwd: str | os.PathLike[str] | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> InvocationResult:
        """
        Run ``path`` with ``args``.

        Args:
            path: Executable path or bare command name
            args: Arguments, passed through unmodified
            cwd: Working directory
            env: Variables merged over the current environment
            timeout: Seconds before the process is killed

        Returns:
            InvocationResult; this method does not raise for runtime failures
        """
        if timeout is None:
            timeout = self.config.timeouts.default

        started = time.monotonic()
        try:
            spec = self.profile.spawn_spec(path, list(args))
        except ValueError as e:
            return InvocationResult(exit_code=-1, spawn_error=str(e))

        child_env = None
        if env is not None:
            child_env = {**os.environ, **env}

        popen_kwargs: dict[str, Any] = {}
        if ON_WINDOWS:
            popen_kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            popen_kwargs["start_new_session"] = True

        logger.debug("spawning %r (shell=%s, timeout=%ss)", spec.args, spec.shell, timeout)
        try:
            proc = subprocess.Popen(
                spec.args,
                shell=spec.shell,
                cwd=cwd,
                env=child_env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                **popen_kwargs,
            )
        except (OSError, ValueError) as e:
            logger.debug("spawn of %s failed: %s", path, e)
            return InvocationResult(
                exit_code=-1,
                spawn_error=f"{type(e).__name__}: {e}",
                duration_seconds=time.monotonic() - started,
            )

        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            stdout, stderr = self._kill_and_drain(proc)
            logger.debug("%s timed out after %ss", path, timeout)
            return InvocationResult(
                exit_code=proc.returncode if proc.returncode is not None else -1,
                stdout=stdout,
                stderr=stderr,
                timed_out=True,
                duration_seconds=time.monotonic() - started,
            )

        result = InvocationResult(
            exit_code=proc.returncode,
            stdout=stdout or b"",
            stderr=stderr or b"",
            duration_seconds=time.monotonic() - started,
        )
        if not result.ok:
            logger.debug("%s %s", path, result.describe_failure())
        return result

    def _kill_and_drain(self, proc: subprocess.Popen[bytes]) -> tuple[bytes, bytes]:
        """Kill a timed-out child (and its descendants) and collect what it wrote."""
        self._kill_tree(proc)

        try:
            stdout, stderr = proc.communicate(timeout=self.config.timeouts.kill_grace)
        except subprocess.TimeoutExpired:
            # A grandchild outside the group still holds the pipes
            for stream in (proc.stdout, proc.stderr):
                if stream is not None:
                    stream.close()
            try:
                proc.wait(timeout=self.config.timeouts.kill_grace)
            except subprocess.TimeoutExpired:
                logger.warning("process %s did not exit after kill", proc.pid)
            return b"", b""
        return stdout or b"", stderr or b""

    def _kill_tree(self, proc: subprocess.Popen[bytes]) -> None:
        if not ON_WINDOWS:
            try:
                os.killpg(proc.pid, signal.SIGKILL)
                return
            except OSError as e:
                logger.debug("killpg %s failed: %s", proc.pid, e)
            proc.kill()
            return

        # cmd.exe sits between us and the tool, so kill the whole tree
        command = self.profile.tree_kill_command(proc.pid)
        if command is not None:
            try:
                done = subprocess.run(
                    command,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    timeout=self.config.timeouts.kill_grace,
                    check=False,
                )
                if done.returncode == 0:
                    return
                logger.debug("%s exited with status %s", command[0], done.returncode)
            except (OSError, subprocess.TimeoutExpired) as e:
                logger.debug("%s failed: %s", command[0], e)
        proc.kill()
