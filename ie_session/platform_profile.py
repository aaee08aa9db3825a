"""
Platform profiles for executable discovery and process dispatch.

All operating-system differences the resolver and invoker care about are
gathered in one frozen :class:`PlatformProfile`, chosen once at startup by
:func:`detect_platform`. Callers ask the profile instead of branching on
``sys.platform`` themselves.
"""

from __future__ import annotations

import logging
import os
import re
import shlex
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePath, PurePosixPath, PureWindowsPath

from .guessers import DEFAULT_USERNAME_PROVIDERS, EnvVarGuess, HomeBasenameGuess

logger = logging.getLogger(__name__)

# Characters that can never be passed through cmd.exe safely
_UNQUOTABLE_WINDOWS = ("\0", "\r", "\n")

_MNT_DRIVE = re.compile(r"^/mnt/([A-Za-z])(?:/(.*))?$")


class PlatformKind(str, Enum):
    """Operating-system family the hook is running on."""

    POSIX = "posix"
    WINDOWS = "windows"
    WSL = "wsl"


@dataclass(frozen=True)
class WellKnownDir:
    """
    A conventional install directory.

    ``variable`` names the environment variable holding the base directory;
    when it is None ``base`` is an absolute path. An unset variable makes
    the entry disappear from the search.
    """

    variable: str | None
    parts: tuple[str, ...] = ()
    base: str | None = None

    def resolve(self, environ: Mapping[str, str], flavor: type[PurePath]) -> str | None:
        root = environ.get(self.variable, "").strip() if self.variable else self.base
        if not root:
            return None
        return str(flavor(root, *self.parts))


@dataclass(frozen=True)
class SpawnSpec:
    """How to hand a command to :mod:`subprocess`."""

    args: list[str] | str
    shell: bool = False


def quote_posix_argument(arg: str) -> str:
    """Quote one argument for ``/bin/sh``."""
    return shlex.quote(arg)


def quote_windows_argument(arg: str) -> str:
    """
    Quote one argument for a command line run by ``cmd.exe``.

    The argument is always wrapped in double quotes. Embedded quotes are
    doubled so cmd.exe's own quote tracking stays in step with the
    program's argv parser (this also holds when a ``.cmd`` wrapper re-expands
    ``%*``), backslashes before a quote are doubled, and ``%`` is neutralised
    against variable expansion.

    Raises:
        ValueError: If the argument contains NUL or a line break
    """
    if any(c in arg for c in _UNQUOTABLE_WINDOWS):
        raise ValueError(f"argument cannot be passed through cmd.exe: {arg!r}")

    out = ['"']
    backslashes = 0
    for ch in arg:
        if ch == "\\":
            backslashes += 1
            continue
        if ch == '"':
            out.append("\\" * (backslashes * 2))
            out.append('""')
        elif ch == "%":
            out.append("\\" * backslashes)
            out.append("%%cd:~,%")
        else:
            out.append("\\" * backslashes)
            out.append(ch)
        backslashes = 0
    out.append("\\" * (backslashes * 2))
    out.append('"')
    return "".join(out)


def wsl_to_windows_path(path: str) -> str | None:
    """Translate ``/mnt/<drive>/...`` into ``<DRIVE>:\\...``; None if not a drive mount."""
    match = _MNT_DRIVE.match(path)
    if not match:
        return None
    drive, rest = match.group(1).upper(), match.group(2) or ""
    return f"{drive}:\\" + rest.replace("/", "\\")


@dataclass(frozen=True)
class PlatformProfile:
    """
    Capability record for one operating-system family.

    Attributes:
        kind: Platform family
        path_separator: Separator used in PATH-like variables
        executable_extensions: Suffixes tried, in order, when building a
            candidate file name from a tool name
        shell_extensions: Suffixes of wrapper scripts that must be run
            through a command shell
        always_shell: Route every invocation through the command shell
        well_known: Conventional install directories, most likely first
        bridge_mount: Mount point of the Windows system drive (WSL only)
        username_providers: Ordered guessers for the Windows user name
    """

    kind: PlatformKind
    path_separator: str
    executable_extensions: tuple[str, ...]
    shell_extensions: tuple[str, ...] = (".cmd", ".bat")
    always_shell: bool = False
    well_known: tuple[WellKnownDir, ...] = ()
    bridge_mount: str | None = None
    username_providers: tuple[EnvVarGuess | HomeBasenameGuess, ...] = field(
        default=DEFAULT_USERNAME_PROVIDERS
    )

    @property
    def is_windows(self) -> bool:
        return self.kind == PlatformKind.WINDOWS

    @property
    def flavor(self) -> type[PurePath]:
        """Pure path class matching this platform's path syntax."""
        return PureWindowsPath if self.is_windows else PurePosixPath

    def join(self, base: str, *parts: str) -> str:
        return str(self.flavor(base, *parts))

    def suffix(self, path: str) -> str:
        return self.flavor(path).suffix.lower()

    def requires_shell(self, path: str) -> bool:
        """True when ``path`` cannot be spawned directly."""
        return self.always_shell or self.suffix(path) in self.shell_extensions

    def executable_names(self, tool: str) -> tuple[str, ...]:
        return tuple(f"{tool}{ext}" for ext in self.executable_extensions)

    def lookup_command(self, tool: str) -> list[str]:
        """Command that prints the PATH location of ``tool``."""
        if self.is_windows:
            return ["where", tool]
        # Positional parameter keeps the tool name out of the script text
        return ["/bin/sh", "-c", 'command -v "$1"', "sh", tool]

    def tree_kill_command(self, pid: int) -> list[str] | None:
        """Command that kills ``pid`` and all its descendants, where one is needed."""
        if self.is_windows:
            return ["taskkill", "/F", "/T", "/PID", str(pid)]
        return None

    def package_bin_dir(self, prefix: str) -> str:
        """Global bin directory for an npm prefix."""
        if self.is_windows:
            return prefix
        return self.join(prefix, "bin")

    def well_known_dirs(self, environ: Mapping[str, str]) -> list[str]:
        """Resolve the well-known directories, skipping unset variables."""
        dirs = []
        for entry in self.well_known:
            resolved = entry.resolve(environ, self.flavor)
            if resolved is None:
                logger.debug("skipping well-known dir: $%s is not set", entry.variable)
                continue
            dirs.append(resolved)
        return dirs

    def quote_argument(self, arg: str) -> str:
        if self.is_windows:
            return quote_windows_argument(arg)
        return quote_posix_argument(arg)

    def command_line(self, argv: list[str]) -> str:
        """Join ``argv`` into one shell command line, quoting every element."""
        return " ".join(self.quote_argument(a) for a in argv)

    def spawn_spec(self, path: str, args: list[str]) -> SpawnSpec:
        """
        Decide how to spawn ``path`` with ``args``.

        Wrapper scripts and every command on native Windows go through the
        command shell; everything else is spawned directly.

        Raises:
            ValueError: If an argument cannot be quoted for the shell
        """
        argv = [path, *args]
        if not self.requires_shell(path):
            return SpawnSpec(argv)
        if self.is_windows:
            return SpawnSpec(self.command_line(argv), shell=True)
        if self.kind == PlatformKind.WSL:
            windows_path = wsl_to_windows_path(path)
            if windows_path is not None:
                return SpawnSpec(["cmd.exe", "/c", windows_path, *args])
        return SpawnSpec(["/bin/sh", "-c", self.command_line(argv)])


_WINDOWS_WELL_KNOWN = (
    WellKnownDir("APPDATA", ("npm",)),
    WellKnownDir("LOCALAPPDATA", ("npm",)),
    WellKnownDir("ProgramFiles", ("nodejs",)),
    WellKnownDir("ProgramFiles(x86)", ("nodejs",)),
    WellKnownDir("USERPROFILE", (".cargo", "bin")),
)

_POSIX_WELL_KNOWN = (
    WellKnownDir("HOME", (".cargo", "bin")),
    WellKnownDir("HOME", (".local", "bin")),
    WellKnownDir(None, base="/opt/homebrew/bin"),
    WellKnownDir(None, base="/usr/local/bin"),
)

POSIX = PlatformProfile(
    kind=PlatformKind.POSIX,
    path_separator=":",
    executable_extensions=("",),
    well_known=_POSIX_WELL_KNOWN,
)

WINDOWS = PlatformProfile(
    kind=PlatformKind.WINDOWS,
    path_separator=";",
    executable_extensions=(".cmd", ".exe"),
    always_shell=True,
    well_known=_WINDOWS_WELL_KNOWN,
)

WSL = PlatformProfile(
    kind=PlatformKind.WSL,
    path_separator=":",
    executable_extensions=("",),
    well_known=_POSIX_WELL_KNOWN,
    bridge_mount="/mnt/c",
)

PROFILES: dict[PlatformKind, PlatformProfile] = {
    PlatformKind.POSIX: POSIX,
    PlatformKind.WINDOWS: WINDOWS,
    PlatformKind.WSL: WSL,
}


def _read_kernel_release() -> str:
    for candidate in ("/proc/sys/kernel/osrelease", "/proc/version"):
        try:
            return Path(candidate).read_text(errors="replace")
        except OSError:
            continue
    return ""


def is_wsl(
    sys_platform: str | None = None,
    environ: Mapping[str, str] | None = None,
    read_kernel_release: Callable[[], str] = _read_kernel_release,
) -> bool:
    """Detect a Linux process running under the Windows Subsystem for Linux."""
    sys_platform = sys.platform if sys_platform is None else sys_platform
    if not sys_platform.startswith("linux"):
        return False
    environ = os.environ if environ is None else environ
    if environ.get("WSL_DISTRO_NAME"):
        return True
    try:
        return "microsoft" in read_kernel_release().lower()
    except OSError:
        return False


def detect_platform(
    sys_platform: str | None = None,
    environ: Mapping[str, str] | None = None,
    read_kernel_release: Callable[[], str] = _read_kernel_release,
) -> PlatformProfile:
    """Pick the profile for the running process."""
    sys_platform = sys.platform if sys_platform is None else sys_platform
    if sys_platform == "win32":
        return WINDOWS
    if is_wsl(sys_platform, environ, read_kernel_release):
        return WSL
    return POSIX
