"""Static texts relayed into the host session."""

from __future__ import annotations

MANUAL_INSTALL_METHODS = (
    "npm install -g @m3task/intent-engine",
    "cargo install intent-engine",
    "brew install wayfind/tap/intent-engine",
)

INSTALL_BANNER = """\
========================================
  Installing intent-engine...
  This may take a few seconds.
========================================"""

INSTALL_SUCCESS_BANNER = """\
========================================
  intent-engine installed successfully!
========================================"""

JUST_INSTALLED_NOTICE = """\
<system-reminder>
# intent-engine is now ready to use!

A cross-session task memory that replaces TodoWrite for persistent, hierarchical
task tracking. Both human and AI can track progress together across sessions.

Note: This session uses the full binary path ({path}).
Future sessions will use 'ie' directly.
</system-reminder>"""

TASK_REMINDER = """\
<system-reminder>
# Task Management with ie (replaces TodoWrite for persistent work)

## ie vs TodoWrite
  - TodoWrite: Single session, disposable tasks
  - ie: Cross-session, hierarchical, decision-tracking (human + AI collaboration)

## Task Status Lifecycle
  todo  - Planning phase, tasks can be rough (no spec required)
  doing - Execution phase, MUST have spec (goal + approach)
  done  - Completion, all children must be done first

## Core Commands
  ie status                        # Restore context at session start
  echo '{...}' | ie plan           # Create/update/complete tasks
  ie log decision "..."            # Record WHY you made choices
  ie log blocker "..."             # Record impediments
  ie search "query"                # Find tasks and events

## When Plans Change
  Re-run `ie plan` to update task names, descriptions, or relationships.
  This keeps human and AI synchronized on the current state.

## Key Rules
  - status:doing requires spec (description with goal + approach)
  - status:done requires all children complete first
  - parent_id:null creates independent root task (ignores current focus)
</system-reminder>"""


def unavailable_advisory(install_state: str) -> str:
    """
    Plain-text block emitted when no working binary could be found.

    Args:
        install_state: What happened to the automatic install, e.g. "failed"
    """
    methods = "\n".join(f"  {m}" for m in MANUAL_INSTALL_METHODS)
    return (
        "<system-reminder>\n"
        "intent-engine (ie) not available.\n\n"
        f"Auto-install {install_state}.\n\n"
        "Please install manually:\n"
        f"{methods}\n"
        "</system-reminder>"
    )
