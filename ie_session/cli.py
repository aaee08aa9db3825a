"""Command-line entry point for the intent-engine SessionStart hook."""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import TextIO

from rich.console import Console
from rich.tree import Tree

from .config import HookConfig
from .hook import run_hook
from .invocation import Invoker
from .logging_setup import configure_logging
from .platform_profile import detect_platform
from .resolver import SEARCH_ORDER, ExecutableResolver


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ie-session-start",
        description="Locate intent-engine and inject its status into an agent session",
    )
    parser.add_argument(
        "--project-dir", type=Path, help="Project root (default: $CLAUDE_PROJECT_DIR or cwd)"
    )
    parser.add_argument("--tool", help="Tool name to resolve (default: ie)")
    parser.add_argument("--config", type=Path, help="JSON config file")
    parser.add_argument("--debug", action="store_true", help="Debug logging on stderr")
    parser.add_argument("--no-install", action="store_true", help="Never run npm install")
    parser.add_argument(
        "--resolve-only",
        action="store_true",
        help="Only resolve the tool and print where it was found",
    )
    return parser


def load_config(args: argparse.Namespace, fallback: bool = False) -> HookConfig:
    """
    Defaults <- JSON file <- environment <- command-line flags.

    With ``fallback`` the JSON file and the project .env are skipped, leaving
    defaults, process environment and flags.
    """
    base = HookConfig() if fallback else HookConfig.load(args.config)
    config = HookConfig.from_env(base=base, read_dotenv=not fallback)
    if args.project_dir is not None:
        config = replace(config, project_dir=args.project_dir)
    if args.tool:
        config = replace(config, tool=replace(config.tool, name=args.tool))
    if args.debug:
        config = replace(config, debug=True)
    if args.no_install:
        config = replace(config, auto_install=False)
    return config


def print_resolution(config: HookConfig, console: Console) -> int:
    profile = detect_platform()
    resolver = ExecutableResolver(profile, Invoker(profile, config), config)
    resolved = resolver.resolve(config.tool.name)

    tree = Tree(f"{config.tool.name} on {profile.kind.value}")
    for source in SEARCH_ORDER:
        if resolved is not None and source == resolved.source:
            status = f"found {resolved.path}"
        elif source in resolver.last_skipped:
            status = "not applicable"
        elif source in resolver.last_attempted:
            status = "no working candidate"
        else:
            status = "not searched"
        tree.add(f"{source.value}: {status}")
    console.print(tree)

    if resolved is None:
        console.print(f"{config.tool.name}: not found")
        return 1
    console.print(f"{config.tool.name} {resolved.version}".strip())
    return 0


def main(
    argv: list[str] | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr

    args = build_parser().parse_args(argv)
    try:
        config = load_config(args)
    except (OSError, ValueError) as e:
        print(f"ie-session-start: ignoring config: {e}", file=stderr)
        config = load_config(args, fallback=True)
    configure_logging(config.debug, Console(file=stderr))

    if args.resolve_only:
        return print_resolution(config, Console(file=stdout))

    try:
        stdin_text = "" if stdin.isatty() else stdin.read()
    except (OSError, ValueError):
        stdin_text = ""

    outcome = run_hook(stdin_text, config)
    for block in outcome.stderr:
        print(block, file=stderr)
    print(outcome.stdout, file=stdout)
    return outcome.exit_code


def run() -> None:
    sys.exit(main())
