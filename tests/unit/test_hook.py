"""
Unit tests for hook.py.

Tests cover:
- Session id parsing and propagation
- Status sanitization and context assembly
- Tool location with automatic install
- Project initialization and status collection
- Fail-open behaviour
"""

import json
from dataclasses import replace

import pytest

from ie_session import messages
from ie_session.hook import (
    HOOK_EVENT_NAME,
    SessionHook,
    build_context,
    build_hook_output,
    parse_session_id,
    run_hook,
    sanitize_status_output,
    write_session_env,
)
from ie_session.installer import InstallOutcome
from ie_session.platform_profile import POSIX
from ie_session.resolver import CandidateSource, ResolvedExecutable

IE = "/usr/local/bin/ie"


class StubResolver:
    """Returns queued results from successive resolve() calls."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    def resolve(self, tool_name):
        self.calls += 1
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0] if self.results else None


def found(path=IE):
    return ResolvedExecutable(path=path, source=CandidateSource.PATH, version="ie 1.0.0")


@pytest.fixture
def ie_invoker(fake_invoker):
    return (
        fake_invoker(POSIX)
        .on(IE, ["init"])
        .on(IE, ["status"], stdout="\U0001f4cb  3 tasks\n→ doing: write docs\n")
    )


def make_hook(config, invoker, resolver=None, installer=None):
    return SessionHook(
        config,
        profile=POSIX,
        invoker=invoker,
        resolver=resolver or StubResolver(found()),
        installer=installer,
    )


def context_of(outcome):
    data = json.loads(outcome.stdout)
    assert data["hookSpecificOutput"]["hookEventName"] == HOOK_EVENT_NAME
    return data["hookSpecificOutput"]["additionalContext"]


class TestParseSessionId:
    """Tests for parse_session_id."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ('{"session_id": "abc-123"}', "abc-123"),
            ('{"session_id": "A_b-9", "cwd": "/x"}', "A_b-9"),
            ('{"session_id": "abc;rm -rf"}', ""),
            ('{"session_id": "a b"}', ""),
            ('{"session_id": ""}', ""),
            ('{"session_id": 42}', ""),
            ('{"other": "x"}', ""),
            ('["abc"]', ""),
            ("not json", ""),
            ("", ""),
            ("   \n", ""),
            (None, ""),
        ],
    )
    def test_parse(self, raw, expected):
        assert parse_session_id(raw) == expected

    def test_newline_suffix_rejected(self):
        assert parse_session_id(json.dumps({"session_id": "abc\n"})) == ""


class TestWriteSessionEnv:
    """Tests for write_session_env."""

    def test_appends_export_line(self, tmp_path):
        env_file = tmp_path / "session.env"
        env_file.write_text("export OTHER=1\n")

        assert write_session_env(env_file, "s1")

        assert env_file.read_text() == 'export OTHER=1\nexport IE_SESSION_ID="s1"\n'

    def test_no_env_file(self):
        assert not write_session_env(None, "s1")

    def test_empty_session_id_writes_nothing(self, tmp_path):
        env_file = tmp_path / "session.env"

        assert not write_session_env(env_file, "")
        assert not env_file.exists()

    def test_invalid_session_id_writes_nothing(self, tmp_path):
        env_file = tmp_path / "session.env"

        assert not write_session_env(env_file, 'x"; rm -rf ~; "')
        assert not env_file.exists()

    def test_unwritable_target_returns_false(self, tmp_path):
        assert not write_session_env(tmp_path, "s1")


class TestSanitize:
    """Tests for sanitize_status_output."""

    def test_strips_emoji_and_arrows(self):
        text = "\U0001f4cb Tasks ✅ done → next ⚠️ warn"

        assert sanitize_status_output(text) == "Tasks done next warn"

    def test_collapses_horizontal_whitespace(self):
        assert sanitize_status_output("a \t  b\n   c   ") == "a b\nc"

    def test_squeezes_blank_lines(self):
        assert sanitize_status_output("a\n\n\n\n\nb") == "a\n\nb"

    def test_normalizes_line_endings(self):
        assert sanitize_status_output("a\r\nb\rc") == "a\nb\nc"

    def test_keeps_plain_text(self):
        assert sanitize_status_output("Focus: #12 write-docs (doing)") == (
            "Focus: #12 write-docs (doing)"
        )

    def test_emoji_only_lines_become_blank(self):
        assert sanitize_status_output("head\n\U0001f680\U0001f680\n\n\ntail") == "head\n\ntail"


class TestContext:
    """Tests for build_context / build_hook_output."""

    def test_order(self):
        context = build_context("3 tasks", session_id="s1", installed_path=IE)

        notice = context.index("intent-engine is now ready")
        session = context.index("Session: s1 (IE_SESSION_ID)")
        status = context.index("3 tasks")
        reminder = context.index("Task Management with ie")
        assert notice < session < status < reminder
        assert IE in context

    def test_minimal(self):
        assert build_context("") == messages.TASK_REMINDER

    def test_hook_output_shape(self):
        assert build_hook_output("ctx") == {
            "hookSpecificOutput": {"hookEventName": "SessionStart", "additionalContext": "ctx"}
        }


class TestSessionHookRun:
    """End-to-end runs with fake collaborators."""

    def test_happy_path(self, fast_config, ie_invoker, tmp_path):
        env_file = tmp_path / "session.env"
        config = replace(fast_config, env_file=env_file)

        outcome = make_hook(config, ie_invoker).run('{"session_id": "s1"}')

        assert outcome.exit_code == 0
        context = context_of(outcome)
        assert "Session: s1 (IE_SESSION_ID)" in context
        assert "3 tasks" in context
        assert "doing: write docs" in context
        assert "→" not in context
        assert "\U0001f4cb" not in context
        assert context.endswith(messages.TASK_REMINDER)
        assert env_file.read_text() == 'export IE_SESSION_ID="s1"\n'

    def test_init_runs_in_project_with_session_env(self, fast_config, ie_invoker):
        make_hook(fast_config, ie_invoker).run('{"session_id": "s1"}')

        (init,) = ie_invoker.calls_with("init")
        assert init.path == IE
        assert init.cwd == fast_config.project_dir
        assert init.env == {"IE_SESSION_ID": "s1"}
        assert init.timeout == fast_config.timeouts.init

    def test_status_gets_session_env(self, fast_config, ie_invoker):
        make_hook(fast_config, ie_invoker).run('{"session_id": "s1"}')

        (status,) = ie_invoker.calls_with("status")
        assert status.env == {"IE_SESSION_ID": "s1"}
        assert status.timeout == fast_config.timeouts.status

    def test_init_skipped_when_marker_exists(self, fast_config, ie_invoker):
        fast_config.marker_path.mkdir()

        make_hook(fast_config, ie_invoker).run("")

        assert ie_invoker.calls_with("init") == []
        assert len(ie_invoker.calls_with("status")) == 1

    def test_missing_project_dir_skips_init(self, fast_config, ie_invoker, tmp_path):
        config = replace(fast_config, project_dir=tmp_path / "nowhere")

        outcome = make_hook(config, ie_invoker).run("")

        assert ie_invoker.calls_with("init") == []
        (status,) = ie_invoker.calls_with("status")
        assert status.cwd is None
        assert "3 tasks" in context_of(outcome)

    def test_invalid_session_id_is_not_propagated(self, fast_config, ie_invoker, tmp_path):
        env_file = tmp_path / "session.env"
        config = replace(fast_config, env_file=env_file)

        outcome = make_hook(config, ie_invoker).run('{"session_id": "abc;rm -rf"}')

        assert not env_file.exists()
        assert "Session:" not in context_of(outcome)
        assert "3 tasks" in context_of(outcome)

    def test_init_failure_still_reports_status(self, fast_config, fake_invoker):
        invoker = (
            fake_invoker(POSIX)
            .on(IE, ["init"], exit_code=1, stderr="cannot init")
            .on(IE, ["status"], stdout="0 tasks")
        )

        outcome = make_hook(fast_config, invoker).run("")

        assert "0 tasks" in context_of(outcome)

    def test_status_failure_is_noted(self, fast_config, fake_invoker):
        invoker = (
            fake_invoker(POSIX)
            .on(IE, ["init"])
            .on(IE, ["status"], exit_code=2, stderr="database is locked\n")
        )
        hook = make_hook(fast_config, invoker)

        outcome = hook.run("")

        assert outcome.exit_code == 0
        assert "Failed to run ie status: exited with status 2: database is locked" in (
            context_of(outcome)
        )
        assert "database is locked" in outcome.stderr

    def test_status_stderr_is_forwarded(self, fast_config, fake_invoker):
        invoker = (
            fake_invoker(POSIX)
            .on(IE, ["init"])
            .on(IE, ["status"], stdout="1 task", stderr="warning: old schema\n")
        )

        outcome = make_hook(fast_config, invoker).run("")

        assert outcome.stderr == ["warning: old schema"]
        assert "Failed to run" not in context_of(outcome)


class TestLocateTool:
    """Tests for resolution with automatic install."""

    def test_found_without_install(self, fast_config, ie_invoker, fake_installer):
        installer = fake_installer()

        resolved, just_installed, state = make_hook(
            fast_config, ie_invoker, installer=installer
        ).locate_tool()

        assert resolved.path == IE
        assert not just_installed
        assert installer.installed == []

    def test_auto_install_disabled(self, fast_config, ie_invoker, fake_installer):
        installer = fake_installer()
        config = replace(fast_config, auto_install=False)

        outcome = make_hook(config, ie_invoker, StubResolver(None), installer).run("")

        assert installer.installed == []
        assert "Auto-install disabled." in outcome.stdout
        assert outcome.exit_code == 0

    def test_npm_missing(self, fast_config, ie_invoker, fake_installer):
        installer = fake_installer(
            InstallOutcome(success=False, message="npm not found", skipped=True)
        )

        outcome = make_hook(fast_config, ie_invoker, StubResolver(None), installer).run("")

        assert "Auto-install skipped (npm not found)." in outcome.stdout
        assert messages.INSTALL_BANNER in outcome.stderr
        for method in messages.MANUAL_INSTALL_METHODS:
            assert method in outcome.stdout

    def test_install_failure(self, fast_config, ie_invoker, fake_installer):
        installer = fake_installer(InstallOutcome.failed("npm ERR! EACCES"))

        outcome = make_hook(fast_config, ie_invoker, StubResolver(None), installer).run("")

        assert installer.installed == ["@m3task/intent-engine"]
        assert "Auto-install failed." in outcome.stdout
        assert "Installation failed: npm ERR! EACCES" in outcome.stderr
        assert ie_invoker.calls == []

    def test_install_then_found(self, fast_config, ie_invoker, fake_installer):
        resolver = StubResolver(None, found())

        outcome = make_hook(fast_config, ie_invoker, resolver, fake_installer()).run("")

        assert resolver.calls == 2
        context = context_of(outcome)
        assert "intent-engine is now ready to use!" in context
        assert f"full binary path ({IE})" in context
        assert messages.INSTALL_SUCCESS_BANNER in outcome.stderr

    def test_install_succeeds_but_still_missing(self, fast_config, ie_invoker, fake_installer):
        outcome = make_hook(fast_config, ie_invoker, StubResolver(None), fake_installer()).run("")

        assert "Auto-install succeeded but ie binary not found or not working." in outcome.stdout
        assert outcome.exit_code == 0

    def test_installs_configured_package(self, fast_config, ie_invoker, fake_installer):
        installer = fake_installer()
        config = replace(fast_config, tool=replace(fast_config.tool, package="@acme/ie"))

        make_hook(config, ie_invoker, StubResolver(None), installer).run("")

        assert installer.installed == ["@acme/ie"]


class TestFailOpen:
    """run_hook never raises."""

    def test_unexpected_error_becomes_advisory(self, fast_config, ie_invoker):
        class BrokenResolver:
            def resolve(self, tool_name):
                raise RuntimeError("boom")

        outcome = run_hook(
            "", fast_config, profile=POSIX, invoker=ie_invoker, resolver=BrokenResolver()
        )

        assert outcome.exit_code == 0
        assert "not available" in outcome.stdout
        assert "skipped (hook error)" in outcome.stdout

    def test_run_hook_happy_path(self, fast_config, ie_invoker):
        outcome = run_hook(
            '{"session_id": "s1"}',
            fast_config,
            profile=POSIX,
            invoker=ie_invoker,
            resolver=StubResolver(found()),
        )

        assert "3 tasks" in context_of(outcome)
