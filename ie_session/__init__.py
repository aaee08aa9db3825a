"""Locate, verify and run the intent-engine CLI from an agent SessionStart hook."""

from .config import HookConfig, TimeoutConfig, ToolConfig
from .hook import HookOutcome, SessionHook, parse_session_id, run_hook, sanitize_status_output
from .invocation import InvocationResult, Invoker
from .platform_profile import PlatformKind, PlatformProfile, detect_platform
from .resolver import (
    CandidateSource,
    ExecutableResolver,
    ResolutionCandidate,
    ResolvedExecutable,
)

__version__ = "0.3.0"

__all__ = [
    "CandidateSource",
    "ExecutableResolver",
    "HookConfig",
    "HookOutcome",
    "InvocationResult",
    "Invoker",
    "PlatformKind",
    "PlatformProfile",
    "ResolutionCandidate",
    "ResolvedExecutable",
    "SessionHook",
    "TimeoutConfig",
    "ToolConfig",
    "detect_platform",
    "parse_session_id",
    "run_hook",
    "sanitize_status_output",
]
