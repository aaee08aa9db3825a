"""
Pytest configuration and fixtures for ie-session-hook tests.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from hypothesis import Phase, Verbosity, settings

# Add project root to path so we can import the ie_session package
sys.path.insert(0, str(Path(__file__).parent.parent))

# -----------------------------------------------------------------------------
# Hypothesis Profiles for Test Performance
# -----------------------------------------------------------------------------
# Usage: HYPOTHESIS_PROFILE=fast pytest tests/
#
# Profiles:
#   fast   - 10 examples, minimal phases (quick iteration)
#   dev    - 50 examples, standard phases (default for local development)
#   ci     - 100 examples, all phases, no deadline (thorough CI testing)
# -----------------------------------------------------------------------------

settings.register_profile(
    "fast",
    max_examples=10,
    phases=[Phase.generate],
    verbosity=Verbosity.quiet,
    deadline=None,
)

settings.register_profile(
    "dev",
    max_examples=50,
    phases=[Phase.generate, Phase.target, Phase.shrink],
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.generate, Phase.target, Phase.shrink, Phase.explain],
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))

from ie_session.config import HookConfig, TimeoutConfig
from ie_session.installer import InstallOutcome
from ie_session.invocation import InvocationResult

# -----------------------------------------------------------------------------
# Fakes
# -----------------------------------------------------------------------------


@dataclass
class Call:
    path: str
    args: tuple[str, ...]
    cwd: object = None
    env: dict | None = None
    timeout: float | None = None


class FakeInvoker:
    """
    Invoker stand-in with scripted results.

    Responses are keyed by (path, args); a key with args=None matches any
    arguments for that path. Unscripted calls fail to spawn.
    """

    def __init__(self, profile):
        self.profile = profile
        self.calls: list[Call] = []
        self._responses: dict[tuple, InvocationResult] = {}

    def on(self, path, args=None, *, exit_code=0, stdout=b"", stderr=b"", timed_out=False,
           spawn_error=None):
        if isinstance(stdout, str):
            stdout = stdout.encode()
        if isinstance(stderr, str):
            stderr = stderr.encode()
        key = (path, tuple(args) if args is not None else None)
        self._responses[key] = InvocationResult(
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            timed_out=timed_out,
            spawn_error=spawn_error,
        )
        return self

    def on_lookup(self, tool, output):
        """Script the platform's PATH lookup for ``tool``."""
        command = self.profile.lookup_command(tool)
        return self.on(command[0], command[1:], stdout=output, exit_code=0 if output else 1)

    def on_version(self, path, version="ie 1.0.0", exit_code=0, **kwargs):
        return self.on(path, ["--version"], stdout=version, exit_code=exit_code, **kwargs)

    def invoke(self, path, args=(), cwd=None, env=None, timeout=None):
        args = tuple(args)
        self.calls.append(Call(path, args, cwd, dict(env) if env else None, timeout))
        for key in ((path, args), (path, None)):
            if key in self._responses:
                return self._responses[key]
        return InvocationResult(exit_code=-1, spawn_error="FileNotFoundError: not scripted")

    def paths_called(self):
        return [c.path for c in self.calls]

    def calls_with(self, *args):
        return [c for c in self.calls if c.args == tuple(args)]


@dataclass
class FakeInstaller:
    outcome: InstallOutcome = field(default_factory=lambda: InstallOutcome(success=True))
    on_install: object = None
    installed: list = field(default_factory=list)

    def available(self):
        return not self.outcome.skipped

    def install(self, package):
        self.installed.append(package)
        if self.on_install is not None:
            self.on_install()
        return self.outcome


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def fake_invoker():
    """Factory for a FakeInvoker bound to a platform profile."""
    return FakeInvoker


@pytest.fixture
def fake_installer():
    return FakeInstaller


@pytest.fixture
def fast_config(tmp_path):
    """Config with short timeouts rooted in a temporary project."""
    project = tmp_path / "project"
    project.mkdir()
    return HookConfig(
        project_dir=project,
        timeouts=TimeoutConfig(
            version_check=3.0,
            lookup=3.0,
            init=3.0,
            status=3.0,
            install=3.0,
            default=3.0,
            kill_grace=1.0,
        ),
    )


@pytest.fixture
def make_executable(tmp_path):
    """Write an executable script and return its path."""

    def _make(name, body, directory=None, mode=0o755):
        directory = Path(directory or tmp_path / "bin")
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text(body)
        path.chmod(mode)
        return path

    return _make


@pytest.fixture
def python_script():
    """Render a Python script body with a shebang for the running interpreter."""

    def _render(code):
        return f"#!{sys.executable}\n{code}\n"

    return _render


# Markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "hypothesis: property-based tests")
    config.addinivalue_line("markers", "slow: tests that take >1s")
    config.addinivalue_line("markers", "posix: requires a POSIX shell and process groups")
