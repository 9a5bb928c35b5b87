"""Tests for CLI argument parsing, outputs and error reporting."""

import json
import logging

import pytest

from buildver import cli
from buildver.cli import (
    WorkflowCommandFormatter,
    build_parser,
    configure_logging,
    escape_command_data,
    main,
)

SHA = "699a10d86efd595503aa8c3ecfff753a7ed3cbd4"

ACTIONS_ENV = [
    "GITHUB_ACTIONS", "GITHUB_EVENT_NAME", "GITHUB_REF", "GITHUB_SHA",
    "GITHUB_REPOSITORY", "GITHUB_EVENT_PATH", "GITHUB_RUN_ID", "GITHUB_TOKEN",
    "GITHUB_API_URL", "GITHUB_OUTPUT", "GITHUB_ENV", "RUNNER_DEBUG",
    "INPUT_SET-ENV", "INPUT_MAJOR-VERSION",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate every test from a real Actions runner environment."""
    for name in ACTIONS_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(cli, "configure_logging", lambda *a, **kw: None)


class TestCLIParsing:
    """Verify argument parsing produces correct values."""

    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.event_name is None
        assert args.ref == ''
        assert args.sha is None
        assert args.repository is None
        assert args.default_branch is None
        assert args.major_version is None
        assert args.set_env is None
        assert args.api_url == 'https://api.github.com'
        assert not args.json_output
        assert not args.verbose

    def test_defaults_from_environment(self, monkeypatch):
        monkeypatch.setenv("GITHUB_EVENT_NAME", "push")
        monkeypatch.setenv("GITHUB_REF", "refs/heads/main")
        monkeypatch.setenv("GITHUB_SHA", SHA)
        monkeypatch.setenv("GITHUB_REPOSITORY", "owner/repo")
        monkeypatch.setenv("GITHUB_RUN_ID", "42")
        monkeypatch.setenv("INPUT_SET-ENV", "PROVIDER_VERSION")
        monkeypatch.setenv("INPUT_MAJOR-VERSION", "3")
        monkeypatch.setenv("RUNNER_DEBUG", "1")
        args = build_parser().parse_args([])
        assert args.event_name == "push"
        assert args.ref == "refs/heads/main"
        assert args.sha == SHA
        assert args.repository == "owner/repo"
        assert args.run_id == "42"
        assert args.set_env == "PROVIDER_VERSION"
        assert args.major_version == "3"
        assert args.verbose

    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("GITHUB_EVENT_NAME", "push")
        args = build_parser().parse_args(['--event-name', 'schedule'])
        assert args.event_name == 'schedule'

    def test_empty_environment_value_ignored(self, monkeypatch):
        monkeypatch.setenv("INPUT_SET-ENV", "")
        assert build_parser().parse_args([]).set_env is None

    def test_verbose_short(self):
        assert build_parser().parse_args(['-v']).verbose

    def test_json_output(self):
        assert build_parser().parse_args(['--json']).json_output


class TestMain:

    def test_tag_push_prints_version(self, host, capsys):
        main(['--event-name', 'push', '--ref', 'refs/tags/v1.2.3'], api=host)
        assert capsys.readouterr().out.strip() == "1.2.3"
        assert host.calls == []

    def test_writes_step_output_and_env(self, host, tmp_path, monkeypatch, capsys):
        output_file = tmp_path / "output"
        env_file = tmp_path / "env"
        monkeypatch.setenv("GITHUB_OUTPUT", str(output_file))
        monkeypatch.setenv("GITHUB_ENV", str(env_file))
        main(['--event-name', 'push', '--ref', 'refs/tags/v1.2.3',
              '--set-env', 'PROVIDER_VERSION'], api=host)
        assert output_file.read_text() == "version=1.2.3\n"
        assert env_file.read_text() == "PROVIDER_VERSION=1.2.3\n"

    def test_output_appends(self, host, tmp_path, monkeypatch):
        output_file = tmp_path / "output"
        output_file.write_text("other=value\n")
        monkeypatch.setenv("GITHUB_OUTPUT", str(output_file))
        main(['--event-name', 'push', '--ref', 'refs/tags/v2.0.0'], api=host)
        assert output_file.read_text() == "other=value\nversion=2.0.0\n"

    def test_set_env_without_github_env(self, host, capsys):
        main(['--event-name', 'push', '--ref', 'refs/tags/v1.0.0',
              '--set-env', 'X'], api=host)
        assert capsys.readouterr().out.strip() == "1.0.0"

    def test_push_with_event_payload(self, host, tmp_path, capsys):
        payload = {
            "repository": {"default_branch": "master"},
            "head_commit": {"message": "Tidy (#3)",
                            "timestamp": "2020-01-01T00:00:00Z"},
        }
        event_path = tmp_path / "event.json"
        event_path.write_text(json.dumps(payload))
        host.add_pull(3, labels=["needs-release/major"])
        main(['--event-name', 'push', '--ref', 'refs/heads/master',
              '--sha', SHA, '--repository', 'owner/repo',
              '--event-path', str(event_path)], api=host)
        assert capsys.readouterr().out.strip() == "2.0.0-alpha.1577836800"

    def test_pull_request_payload(self, host, tmp_path, capsys):
        payload = {"pull_request": {
            "base": {"ref": "main"}, "head": {"ref": "feature"},
            "labels": [{"name": "needs-release/patch"}],
        }}
        event_path = tmp_path / "event.json"
        event_path.write_text(json.dumps(payload))
        main(['--event-name', 'pull_request', '--ref', 'refs/pull/4/merge',
              '--sha', SHA, '--repository', 'owner/repo',
              '--event-path', str(event_path)], api=host)
        assert capsys.readouterr().out.strip() == "1.0.1-alpha.1577836800+699a10d"

    def test_missing_payload_file_warns(self, host, tmp_path, capsys, caplog):
        with caplog.at_level(logging.WARNING, logger="buildver.cli"):
            main(['--event-name', 'push', '--ref', 'refs/tags/v1.0.0',
                  '--event-path', str(tmp_path / "missing.json")], api=host)
        assert capsys.readouterr().out.strip() == "1.0.0"
        assert "Event payload not found" in caplog.text

    def test_broken_payload_file_warns(self, host, tmp_path, capsys, caplog):
        event_path = tmp_path / "event.json"
        event_path.write_text("{not json")
        with caplog.at_level(logging.WARNING, logger="buildver.cli"):
            main(['--event-name', 'push', '--ref', 'refs/tags/v1.0.0',
                  '--event-path', str(event_path)], api=host)
        assert capsys.readouterr().out.strip() == "1.0.0"
        assert "Could not parse event payload" in caplog.text

    def test_json_output(self, host, capsys):
        main(['--event-name', 'schedule', '--ref', 'refs/heads/main',
              '--sha', SHA, '--repository', 'owner/repo', '--json'], api=host)
        data = json.loads(capsys.readouterr().out)
        assert data['version'] == "1.1.0-alpha.1577836800+699a10d"
        assert data['scenario'] == "scheduled"
        assert data['sha'] == SHA

    def test_major_version_input(self, host, capsys, monkeypatch):
        monkeypatch.setenv("INPUT_MAJOR-VERSION", "5")
        main(['--event-name', 'schedule', '--ref', 'refs/heads/main',
              '--sha', SHA, '--repository', 'owner/repo'], api=host)
        assert capsys.readouterr().out.startswith("5.0.0-alpha.")


class TestMainErrors:

    def _run_failing(self, argv, host, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(argv, api=host)
        assert exc_info.value.code == 1
        return capsys.readouterr()

    def test_invalid_tag(self, host, capsys):
        captured = self._run_failing(
            ['--event-name', 'push', '--ref', 'refs/tags/v1.foo'], host, capsys)
        assert "Error: Invalid tag version: v1.foo" in captured.err
        assert captured.out == ""

    def test_missing_event_name(self, host, capsys):
        captured = self._run_failing([], host, capsys)
        assert "GITHUB_EVENT_NAME" in captured.err

    def test_unsupported_event(self, host, capsys):
        captured = self._run_failing(
            ['--event-name', 'issues', '--ref', 'refs/heads/main'], host, capsys)
        assert "Unsupported event: issues" in captured.err

    def test_invalid_major_version(self, host, capsys):
        captured = self._run_failing(
            ['--event-name', 'schedule', '--ref', 'refs/heads/main',
             '--major-version', 'three'], host, capsys)
        assert "must be an integer" in captured.err

    def test_error_annotation_in_actions(self, host, capsys, monkeypatch):
        monkeypatch.setenv("GITHUB_ACTIONS", "true")
        captured = self._run_failing(
            ['--event-name', 'push', '--ref', 'refs/tags/nope'], host, capsys)
        assert captured.out.startswith("::error::Invalid tag version: nope")

    def test_no_outputs_written_on_failure(self, host, tmp_path, monkeypatch, capsys):
        output_file = tmp_path / "output"
        monkeypatch.setenv("GITHUB_OUTPUT", str(output_file))
        self._run_failing(
            ['--event-name', 'push', '--ref', 'refs/tags/bad'], host, capsys)
        assert not output_file.exists()

    def test_unwritable_step_output(self, host, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("GITHUB_OUTPUT", str(tmp_path))
        captured = self._run_failing(
            ['--event-name', 'push', '--ref', 'refs/tags/v1.0.0'], host, capsys)
        assert "Error: Could not write step outputs" in captured.err

    def test_unwritable_env_file_annotated(self, host, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("GITHUB_ACTIONS", "true")
        monkeypatch.setenv("GITHUB_ENV", str(tmp_path))
        captured = self._run_failing(
            ['--event-name', 'push', '--ref', 'refs/tags/v1.0.0',
             '--set-env', 'PROVIDER_VERSION'], host, capsys)
        assert "::error::Could not write step outputs" in captured.out
        assert "Error: Could not write step outputs" in captured.err


class TestWorkflowCommands:

    def _format(self, level, message):
        record = logging.LogRecord("buildver", level, __file__, 1, message, None, None)
        return WorkflowCommandFormatter('%(message)s').format(record)

    def test_warning(self):
        assert self._format(logging.WARNING, "no release") == "::warning::no release"

    def test_debug(self):
        assert self._format(logging.DEBUG, "details") == "::debug::details"

    def test_info_is_plain(self):
        assert self._format(logging.INFO, "hello") == "hello"

    def test_multiline_escaped(self):
        assert self._format(logging.ERROR, "a\nb 100%") == "::error::a%0Ab 100%25"

    def test_escape_order(self):
        assert escape_command_data("%0A\r") == "%250A%0D"


class TestConfigureLogging:
    """configure_logging is patched out elsewhere; these use the original."""

    @pytest.fixture
    def root_logger(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        yield root
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    def test_plain_format(self, root_logger):
        configure_logging(verbose=False, annotations=False)
        assert root_logger.level == logging.INFO
        formatter = root_logger.handlers[0].formatter
        assert not isinstance(formatter, WorkflowCommandFormatter)

    def test_verbose_annotations(self, root_logger):
        configure_logging(verbose=True, annotations=True)
        assert root_logger.level == logging.DEBUG
        assert isinstance(root_logger.handlers[0].formatter, WorkflowCommandFormatter)
