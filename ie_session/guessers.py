"""Ordered username guess providers for cross-environment bridge paths."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import PurePath

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnvVarGuess:
    """Take the username from a single environment variable."""

    variable: str

    @property
    def name(self) -> str:
        return f"env:{self.variable}"

    def guess(self, environ: Mapping[str, str]) -> str | None:
        value = environ.get(self.variable, "").strip()
        return value or None


@dataclass(frozen=True)
class HomeBasenameGuess:
    """Take the username from the last component of a home directory variable."""

    variable: str = "HOME"

    @property
    def name(self) -> str:
        return f"basename:{self.variable}"

    def guess(self, environ: Mapping[str, str]) -> str | None:
        value = environ.get(self.variable, "").strip().rstrip("/\\")
        if not value:
            return None
        return PurePath(value.replace("\\", "/")).name or None


# Explicit override first, then what Windows interop exports, then the Linux user
DEFAULT_USERNAME_PROVIDERS: tuple[EnvVarGuess | HomeBasenameGuess, ...] = (
    EnvVarGuess("IE_WINDOWS_USER"),
    EnvVarGuess("USERNAME"),
    EnvVarGuess("USER"),
    EnvVarGuess("LOGNAME"),
    HomeBasenameGuess("HOME"),
)


def is_plain_name(value: str) -> bool:
    """True when ``value`` can be used as a single path component."""
    return bool(value) and value not in (".", "..") and not any(c in value for c in "/\\:\0")


def first_usable_guess(
    providers: Sequence[EnvVarGuess | HomeBasenameGuess],
    environ: Mapping[str, str],
    accept: Callable[[str], bool] | None = None,
) -> str | None:
    """
    Walk ``providers`` in order and return the first acceptable guess.

    A guess is acceptable when it is a plain path component and, if given,
    ``accept`` returns True for it. Provider errors count as "no guess".
    """
    for provider in providers:
        try:
            value = provider.guess(environ)
        except Exception as e:
            logger.debug("username provider %s failed: %s", provider.name, e)
            continue
        if not value or not is_plain_name(value):
            continue
        try:
            if accept is not None and not accept(value):
                logger.debug("username guess %r from %s rejected", value, provider.name)
                continue
        except OSError as e:
            logger.debug("username guess %r check failed: %s", value, e)
            continue
        logger.debug("username guess %r from %s", value, provider.name)
        return value
    return None
