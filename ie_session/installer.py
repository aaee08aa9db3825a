"""Global package installation used when the tool cannot be found."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from .config import HookConfig
from .invocation import Invoker

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 300


@dataclass(frozen=True)
class InstallOutcome:
    """Result of an install attempt."""

    success: bool
    message: str = ""
    skipped: bool = False

    @classmethod
    def failed(cls, message: str) -> InstallOutcome:
        return cls(success=False, message=message[:MAX_MESSAGE_LENGTH])


class Installer(Protocol):
    """Installs a package globally so its executable lands on the system."""

    def available(self) -> bool:
        """Whether this installer can run at all."""
        ...

    def install(self, package: str) -> InstallOutcome:
        """Install ``package``; never raises."""
        ...


class NpmInstaller:
    """``npm install -g <package>``."""

    def __init__(self, invoker: Invoker, config: HookConfig | None = None) -> None:
        self.invoker = invoker
        self.config = config or HookConfig()

    def available(self) -> bool:
        command = self.invoker.profile.lookup_command("npm")
        result = self.invoker.invoke(command[0], command[1:], timeout=self.config.timeouts.lookup)
        return result.ok and bool(result.stdout_text.strip())

    def install(self, package: str) -> InstallOutcome:
        if not self.available():
            logger.warning("npm not found; cannot install %s", package)
            return InstallOutcome(success=False, message="npm not found", skipped=True)

        logger.debug("installing %s with npm", package)
        result = self.invoker.invoke(
            "npm",
            ["install", "-g", package],
            timeout=self.config.timeouts.install,
        )
        if result.ok:
            return InstallOutcome(success=True, message=f"{package} installed")

        if result.spawn_error or result.timed_out:
            reason = result.describe_failure()
        else:
            reason = result.stderr_text.strip() or result.stdout_text.strip() or "Unknown error"
        outcome = InstallOutcome.failed(reason)
        logger.warning("installing %s failed: %s", package, outcome.message)
        return outcome
