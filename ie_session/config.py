"""
Configuration management for the intent-engine session hook.

Defaults live in dataclasses. A JSON file can override them, and the hook
environment (plus ``IE_HOOK_*`` keys from the project's ``.env``) is layered
on top by :meth:`HookConfig.from_env`.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

DEFAULT_CONFIG_PATH = Path.home() / ".claude" / "ie-hook-config.json"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _is_truthy(value: str | None) -> bool:
    return value is not None and value.strip().lower() in _TRUTHY


def _known_kwargs(cls: type, data: Mapping[str, Any]) -> dict[str, Any]:
    """Filter a mapping down to the dataclass fields of ``cls``."""
    known = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in known}


def _section(data: Mapping[str, Any], key: str, path: Path) -> Mapping[str, Any]:
    """A nested JSON object, or an empty one when the key is absent."""
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"{path}: '{key}' must be a JSON object")
    return value


@dataclass(frozen=True)
class ToolConfig:
    """Identity of the managed tool."""

    name: str = "ie"
    package: str = "@m3task/intent-engine"
    marker_dir: str = ".intent-engine"
    version_flag: str = "--version"


@dataclass(frozen=True)
class TimeoutConfig:
    """Subprocess timeouts in seconds."""

    version_check: float = 5.0
    lookup: float = 5.0
    init: float = 10.0
    status: float = 15.0
    install: float = 60.0
    default: float = 15.0
    # Time allowed for pipes to drain after a timed-out child is killed
    kill_grace: float = 2.0


@dataclass(frozen=True)
class HookConfig:
    """
    Complete hook configuration.

    Passed explicitly to the invoker, resolver, installer and hook so that no
    module keeps its own debug flag or reads the environment on its own.
    """

    project_dir: Path = field(default_factory=Path.cwd)
    env_file: Path | None = None
    debug: bool = False
    auto_install: bool = True
    tool: ToolConfig = field(default_factory=ToolConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)

    @property
    def marker_path(self) -> Path:
        """Directory whose presence means the project is initialized."""
        return self.project_dir / self.tool.marker_dir

    @classmethod
    def load(cls, path: Path | None = None) -> HookConfig:
        """Load configuration from a JSON file, falling back to defaults."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a JSON object")

        tool = _section(data, "tool", path)
        timeouts = _section(data, "timeouts", path)

        kwargs = _known_kwargs(cls, data)
        kwargs.pop("tool", None)
        kwargs.pop("timeouts", None)
        for key in ("project_dir", "env_file"):
            value = kwargs.get(key)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{path}: '{key}' must be a string")
        if kwargs.get("project_dir") is None:
            kwargs.pop("project_dir", None)
        else:
            kwargs["project_dir"] = Path(kwargs["project_dir"]).expanduser()
        if kwargs.get("env_file"):
            kwargs["env_file"] = Path(kwargs["env_file"]).expanduser()

        return cls(
            tool=ToolConfig(**_known_kwargs(ToolConfig, tool)),
            timeouts=TimeoutConfig(**_known_kwargs(TimeoutConfig, timeouts)),
            **kwargs,
        )

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        base: HookConfig | None = None,
        read_dotenv: bool = True,
    ) -> HookConfig:
        """
        Overlay hook environment variables on ``base``.

        Recognised variables:
        - CLAUDE_PROJECT_DIR: project root (defaults to the current directory)
        - CLAUDE_ENV_FILE: session-scoped env file receiving the session id
        - IE_HOOK_DEBUG: enable debug logging
        - IE_HOOK_NO_INSTALL: disable the automatic npm install

        ``IE_HOOK_*`` keys in ``<project_dir>/.env`` are honoured too, with
        the process environment taking precedence. Nothing is written back
        to ``os.environ``. Pass ``read_dotenv=False`` to skip the ``.env``
        file, e.g. when it could not be decoded.
        """
        env = dict(os.environ if environ is None else environ)
        config = base or cls()

        project_dir = env.get("CLAUDE_PROJECT_DIR") or str(config.project_dir)
        project_path = Path(project_dir)

        dotenv_file = project_path / ".env"
        if read_dotenv and dotenv_file.is_file():
            for key, value in dotenv_values(dotenv_file).items():
                if key.startswith("IE_HOOK_") and value is not None:
                    env.setdefault(key, value)

        env_file = env.get("CLAUDE_ENV_FILE")

        return replace(
            config,
            project_dir=project_path,
            env_file=Path(env_file) if env_file else config.env_file,
            debug=config.debug or _is_truthy(env.get("IE_HOOK_DEBUG")),
            auto_install=config.auto_install and not _is_truthy(env.get("IE_HOOK_NO_INSTALL")),
        )


def default_config() -> HookConfig:
    """Configuration from the default JSON file and the process environment."""
    return HookConfig.from_env(base=HookConfig.load())
