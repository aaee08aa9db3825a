#!/usr/bin/env python3
"""SessionStart hook entry point.

Registered in the host's hook settings. Finds intent-engine, initializes the
project and injects `ie status` into the session. Always exits 0.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Kept in step with ie_session.messages.MANUAL_INSTALL_METHODS; the package
# may be the thing that failed to import
MANUAL_INSTALL_METHODS = (
    "npm install -g @m3task/intent-engine",
    "cargo install intent-engine",
    "brew install wayfind/tap/intent-engine",
)

try:
    from ie_session.cli import main

    main(sys.argv[1:])
except Exception as e:
    # Fail-open: don't block session startup
    methods = "\n".join(f"  {m}" for m in MANUAL_INSTALL_METHODS)
    print(
        "<system-reminder>\n"
        f"intent-engine session hook unavailable ({e}).\n\n"
        "If intent-engine (ie) is not installed, install it manually:\n"
        f"{methods}\n"
        "</system-reminder>"
    )
sys.exit(0)
