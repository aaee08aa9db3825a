"""
Executable resolution for the intent-engine CLI.

The resolver walks a fixed list of search methods, most authoritative
first, and returns the first candidate that both exists and passes a
liveness check (``<tool> --version``). A candidate is never trusted on
existence alone, and a failing method only moves the search along.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .config import HookConfig
from .guessers import first_usable_guess
from .invocation import Invoker
from .platform_profile import PlatformKind, PlatformProfile

logger = logging.getLogger(__name__)


class CandidateSource(str, Enum):
    """Where a candidate path came from, in search priority order."""

    PATH = "path"
    PACKAGE_MANAGER_GLOBAL_BIN = "package_manager_global_bin"
    PLATFORM_WELL_KNOWN_DIR = "platform_well_known_dir"
    CROSS_ENVIRONMENT_BRIDGE_PATH = "cross_environment_bridge_path"


SEARCH_ORDER: tuple[CandidateSource, ...] = tuple(CandidateSource)


@dataclass(frozen=True)
class ResolutionCandidate:
    """A path under consideration, not yet verified."""

    path: str
    source: CandidateSource


@dataclass(frozen=True)
class ResolvedExecutable:
    """A candidate that passed verification."""

    path: str
    source: CandidateSource
    verified_at: datetime = field(default_factory=datetime.now)
    version: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "path": self.path,
            "source": self.source.value,
            "verified_at": self.verified_at.isoformat(),
            "version": self.version,
        }


def validate_tool_name(tool_name: str) -> str:
    """
    Check that ``tool_name`` is a bare command name.

    Raises:
        ValueError: If it is empty or contains a path separator
    """
    if not tool_name or not tool_name.strip():
        raise ValueError("tool name must not be empty")
    if any(sep in tool_name for sep in ("/", "\\")):
        raise ValueError(f"tool name must not contain path separators: {tool_name!r}")
    return tool_name


class ExecutableResolver:
    """
    Turns a tool name into a verified executable path.

    Search order:
    1. PATH lookup through the platform's which/where facility
    2. npm's global bin directory (``npm config get prefix``)
    3. Well-known install directories for the platform
    4. Windows filesystem paths seen from WSL (bridge paths)

    Results are not cached; each call probes again.
    """

    def __init__(
        self,
        profile: PlatformProfile,
        invoker: Invoker,
        config: HookConfig | None = None,
        environ: Mapping[str, str] | None = None,
        is_file: Callable[[str], bool] = os.path.isfile,
        is_dir: Callable[[str], bool] = os.path.isdir,
    ) -> None:
        self.profile = profile
        self.invoker = invoker
        self.config = config or HookConfig()
        self.environ = os.environ if environ is None else environ
        self.is_file = is_file
        self.is_dir = is_dir
        self.last_attempted: list[CandidateSource] = []
        self.last_skipped: list[CandidateSource] = []

    # =========================================================================
    # Public API
    # =========================================================================

    def resolve(self, tool_name: str) -> ResolvedExecutable | None:
        """
        Find a working executable for ``tool_name``.

        Returns:
            The first verified candidate, or None once every method is spent

        Raises:
            ValueError: If ``tool_name`` is not a bare command name
        """
        validate_tool_name(tool_name)
        self.last_attempted = []
        self.last_skipped = []
        seen: set[str] = set()

        for source in SEARCH_ORDER:
            if not self._applies(source):
                self.last_skipped.append(source)
                continue
            self.last_attempted.append(source)

            for candidate in self._safe_candidates(source, tool_name):
                if candidate.path in seen:
                    continue
                seen.add(candidate.path)

                resolved = self._check(candidate)
                if resolved is not None:
                    logger.debug("resolved %s via %s: %s", tool_name, source.value, resolved.path)
                    return resolved

        logger.debug("no working %s found (searched: %s)", tool_name, self.last_attempted)
        return None

    def verify(self, path: str) -> bool:
        """Liveness check: ``path --version`` must exit 0 within the timeout."""
        return self._run_version(path) is not None

    def candidates(self, source: CandidateSource, tool_name: str) -> list[ResolutionCandidate]:
        """All candidates one search method yields, unverified."""
        validate_tool_name(tool_name)
        return list(self._safe_candidates(source, tool_name))

    # =========================================================================
    # Verification
    # =========================================================================

    def _run_version(self, path: str) -> str | None:
        try:
            result = self.invoker.invoke(
                path,
                [self.config.tool.version_flag],
                timeout=self.config.timeouts.version_check,
            )
        except Exception as e:
            logger.debug("rejecting %s: version check raised %s", path, e)
            return None
        if not result.ok:
            logger.debug("rejecting %s: %s", path, result.describe_failure())
            return None
        lines = result.stdout_text.strip().splitlines()
        return lines[0].strip() if lines else ""

    def _check(self, candidate: ResolutionCandidate) -> ResolvedExecutable | None:
        try:
            exists = self.is_file(candidate.path)
        except OSError as e:
            logger.debug("cannot stat %s: %s", candidate.path, e)
            return None
        if not exists:
            logger.debug("no file at %s", candidate.path)
            return None

        version = self._run_version(candidate.path)
        if version is None:
            return None
        return ResolvedExecutable(path=candidate.path, source=candidate.source, version=version)

    # =========================================================================
    # Search methods
    # =========================================================================

    def _applies(self, source: CandidateSource) -> bool:
        if source == CandidateSource.CROSS_ENVIRONMENT_BRIDGE_PATH:
            return self.profile.kind == PlatformKind.WSL and self.profile.bridge_mount is not None
        if source == CandidateSource.PLATFORM_WELL_KNOWN_DIR:
            return bool(self.profile.well_known)
        return True

    def _safe_candidates(
        self, source: CandidateSource, tool_name: str
    ) -> Iterator[ResolutionCandidate]:
        generators: dict[CandidateSource, Callable[[str], Iterator[str]]] = {
            CandidateSource.PATH: self._from_path,
            CandidateSource.PACKAGE_MANAGER_GLOBAL_BIN: self._from_package_manager,
            CandidateSource.PLATFORM_WELL_KNOWN_DIR: self._from_well_known_dirs,
            CandidateSource.CROSS_ENVIRONMENT_BRIDGE_PATH: self._from_bridge,
        }
        try:
            for path in generators[source](tool_name):
                yield ResolutionCandidate(path=path, source=source)
        except Exception as e:
            logger.debug("search method %s failed: %s", source.value, e)

    def _from_path(self, tool_name: str) -> Iterator[str]:
        command = self.profile.lookup_command(tool_name)
        result = self.invoker.invoke(command[0], command[1:], timeout=self.config.timeouts.lookup)
        if not result.ok:
            return
        for line in result.stdout_text.splitlines():
            line = line.strip()
            if line:
                yield line
                return

    def _from_package_manager(self, tool_name: str) -> Iterator[str]:
        result = self.invoker.invoke(
            "npm",
            ["config", "get", "prefix"],
            timeout=self.config.timeouts.lookup,
        )
        if not result.ok:
            return
        prefix = result.stdout_text.strip().splitlines()
        if not prefix or not prefix[0].strip():
            return
        bin_dir = self.profile.package_bin_dir(prefix[0].strip())
        for name in self.profile.executable_names(tool_name):
            yield self.profile.join(bin_dir, name)

    def _from_well_known_dirs(self, tool_name: str) -> Iterator[str]:
        for directory in self.profile.well_known_dirs(self.environ):
            for name in self.profile.executable_names(tool_name):
                yield self.profile.join(directory, name)

    def _from_bridge(self, tool_name: str) -> Iterator[str]:
        mount = self.profile.bridge_mount
        if mount is None:
            return
        users_root = self.profile.join(mount, "Users")

        user = first_usable_guess(
            self.profile.username_providers,
            self.environ,
            accept=lambda name: self.is_dir(self.profile.join(users_root, name)),
        )
        if user is not None:
            home = self.profile.join(users_root, user)
            npm_dir = self.profile.join(home, "AppData", "Roaming", "npm")
            yield self.profile.join(npm_dir, tool_name)
            yield self.profile.join(npm_dir, f"{tool_name}.cmd")
            yield self.profile.join(home, ".cargo", "bin", f"{tool_name}.exe")
        else:
            logger.debug("no usable Windows user name under %s", users_root)

        yield self.profile.join(mount, "Program Files", "nodejs", f"{tool_name}.cmd")
