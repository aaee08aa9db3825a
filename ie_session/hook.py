"""
SessionStart hook pipeline.

Reads the host payload, propagates the session id, finds (or installs) the
``ie`` binary, initializes the project, and turns ``ie status`` into a
context-injection payload. Every path ends in output and exit code 0; the
hook never breaks session startup.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from . import messages
from .config import HookConfig
from .installer import Installer, NpmInstaller
from .invocation import InvocationResult, Invoker, normalize_newlines
from .platform_profile import PlatformProfile, detect_platform
from .resolver import ExecutableResolver, ResolvedExecutable

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
SESSION_ENV_VAR = "IE_SESSION_ID"
HOOK_EVENT_NAME = "SessionStart"

# Emoji, pictographs, dingbats and arrow blocks, plus the joiners and
# variation selectors that glue emoji sequences together
_SYMBOL_GLYPHS = re.compile(
    "["
    "\U0001f000-\U0001faff"
    "\u2190-\u21ff"
    "\u2300-\u23ff"
    "\u2600-\u27bf"
    "\u27f0-\u27ff"
    "\u2900-\u297f"
    "\u2b00-\u2bff"
    "\u200d\u20e3\ufe0e\ufe0f"
    "]+"
)
_HORIZONTAL_SPACE = re.compile(r"[ \t\f\v]+")
_BLANK_RUNS = re.compile(r"\n{3,}")


@dataclass
class HookOutcome:
    """What the hook process writes and how it exits."""

    stdout: str
    stderr: list[str] = field(default_factory=list)
    exit_code: int = 0


# =============================================================================
# Input
# =============================================================================


def parse_session_id(raw: str | None) -> str:
    """
    Extract a valid session id from the hook's stdin payload.

    Empty input, malformed JSON, a non-object payload, a non-string id or one
    outside ``[A-Za-z0-9_-]`` all yield an empty string.
    """
    if not raw or not raw.strip():
        return ""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        return ""
    if not isinstance(data, dict):
        return ""
    session_id = data.get("session_id")
    if not isinstance(session_id, str) or not SESSION_ID_PATTERN.fullmatch(session_id):
        return ""
    return session_id


def write_session_env(env_file: Path | None, session_id: str) -> bool:
    """Append ``export IE_SESSION_ID=...`` to the session env file."""
    if env_file is None or not session_id:
        return False
    if not SESSION_ID_PATTERN.fullmatch(session_id):
        return False
    try:
        with open(env_file, "a") as f:
            f.write(f'export {SESSION_ENV_VAR}="{session_id}"\n')
    except OSError as e:
        logger.warning("could not write %s: %s", env_file, e)
        return False
    return True


# =============================================================================
# Output
# =============================================================================


def sanitize_status_output(text: str) -> str:
    """
    Clean ``ie status`` output for injection.

    Strips emoji and arrow glyphs, collapses horizontal whitespace, trims
    each line, and squeezes runs of blank lines down to one.
    """
    text = _SYMBOL_GLYPHS.sub("", normalize_newlines(text))
    lines = [_HORIZONTAL_SPACE.sub(" ", line).strip() for line in text.split("\n")]
    return _BLANK_RUNS.sub("\n\n", "\n".join(lines)).strip()


def build_hook_output(context: str) -> dict[str, Any]:
    return {
        "hookSpecificOutput": {
            "hookEventName": HOOK_EVENT_NAME,
            "additionalContext": context,
        }
    }


def build_context(
    status_text: str,
    session_id: str = "",
    installed_path: str | None = None,
) -> str:
    """Assemble the text block relayed into the session."""
    parts = []
    if installed_path:
        parts.append(messages.JUST_INSTALLED_NOTICE.format(path=installed_path))
    if session_id:
        parts.append(f"Session: {session_id} ({SESSION_ENV_VAR})")
    if status_text:
        parts.append(status_text)
    parts.append(messages.TASK_REMINDER)
    return "\n\n".join(parts)


# =============================================================================
# Pipeline
# =============================================================================


class SessionHook:
    """
    One run of the SessionStart hook.

    Collaborators default to the real implementations for the detected
    platform; tests pass fakes.
    """

    def __init__(
        self,
        config: HookConfig,
        profile: PlatformProfile | None = None,
        invoker: Invoker | None = None,
        resolver: ExecutableResolver | None = None,
        installer: Installer | None = None,
    ) -> None:
        self.config = config
        self.profile = profile or detect_platform()
        self.invoker = invoker or Invoker(self.profile, config)
        self.resolver = resolver or ExecutableResolver(self.profile, self.invoker, config)
        self.installer = installer or NpmInstaller(self.invoker, config)
        self.stderr: list[str] = []

    def run(self, stdin_text: str | None) -> HookOutcome:
        session_id = parse_session_id(stdin_text)
        write_session_env(self.config.env_file, session_id)

        resolved, just_installed, install_state = self.locate_tool()
        if resolved is None:
            return HookOutcome(
                stdout=messages.unavailable_advisory(install_state),
                stderr=self.stderr,
            )

        self.ensure_project_initialized(resolved, session_id)
        status_text = self.collect_status(resolved, session_id)

        context = build_context(
            status_text,
            session_id=session_id,
            installed_path=resolved.path if just_installed else None,
        )
        return HookOutcome(stdout=json.dumps(build_hook_output(context)), stderr=self.stderr)

    def locate_tool(self) -> tuple[ResolvedExecutable | None, bool, str]:
        """
        Resolve the tool, installing it once if needed.

        Returns:
            (resolved executable or None, whether it was just installed,
            description of the install attempt for the advisory)
        """
        tool = self.config.tool
        resolved = self.resolver.resolve(tool.name)
        if resolved is not None:
            return resolved, False, ""

        if not self.config.auto_install:
            return None, False, "disabled"

        self.stderr.append(messages.INSTALL_BANNER)
        outcome = self.installer.install(tool.package)
        if outcome.skipped:
            return None, False, "skipped (npm not found)"
        if not outcome.success:
            self.stderr.append(f"Installation failed: {outcome.message}")
            return None, False, "failed"

        self.stderr.append(messages.INSTALL_SUCCESS_BANNER)
        resolved = self.resolver.resolve(tool.name)
        if resolved is None:
            logger.warning("installation succeeded but %s is not found or not working", tool.name)
            return None, False, f"succeeded but {tool.name} binary not found or not working"
        return resolved, True, ""

    def ensure_project_initialized(
        self, resolved: ResolvedExecutable, session_id: str = ""
    ) -> InvocationResult | None:
        """Run ``ie init`` when the project has no marker directory yet."""
        project_dir = self.config.project_dir
        if not project_dir.is_dir() or self.config.marker_path.exists():
            return None

        result = self.invoker.invoke(
            resolved.path,
            ["init"],
            cwd=project_dir,
            env={SESSION_ENV_VAR: session_id},
            timeout=self.config.timeouts.init,
        )
        if not result.ok:
            logger.warning("ie init failed: %s", result.describe_failure())
        return result

    def collect_status(self, resolved: ResolvedExecutable, session_id: str = "") -> str:
        """Run ``ie status`` and return its sanitized text (or a failure note)."""
        project_dir = self.config.project_dir
        result = self.invoker.invoke(
            resolved.path,
            ["status"],
            cwd=project_dir if project_dir.is_dir() else None,
            env={SESSION_ENV_VAR: session_id},
            timeout=self.config.timeouts.status,
        )
        if result.stderr_text.strip():
            self.stderr.append(result.stderr_text.rstrip())

        status_text = sanitize_status_output(result.stdout_text)
        if result.ok:
            return status_text

        note = f"Failed to run ie status: {result.describe_failure()}"
        logger.warning(note)
        return f"{status_text}\n\n{note}" if status_text else note


def run_hook(stdin_text: str | None, config: HookConfig, **collaborators: Any) -> HookOutcome:
    """
    Run the hook and never raise.

    Unexpected errors are logged and turned into the unavailable advisory.
    """
    try:
        return SessionHook(config, **collaborators).run(stdin_text)
    except Exception:
        logger.exception("session hook failed")
        return HookOutcome(stdout=messages.unavailable_advisory("skipped (hook error)"))
