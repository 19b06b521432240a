"""
Tests for the trace-working command line.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from trace_working.cli import cli
from trace_working.domain.outcome import NotFoundReason, TraversalResult
from trace_working.exit_codes import (
    CONFIG_ERROR,
    NO_WORKING_COMMIT,
    REPOSITORY_ERROR,
    SUCCESS,
    USAGE_ERROR,
)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def history(repo):
    repo.commit("first", {"app.py": "good"})
    repo.commit("second", {"app.py": "bad"})
    return repo


def json_lines(output):
    """Parse the JSON records out of mixed stdout/stderr output."""
    return [json.loads(line) for line in output.splitlines() if line.startswith('{')]


class TestExitCodes:
    """Exit status reflects the outcome."""

    def test_found(self, runner, history, checker):
        result = runner.invoke(cli, ['-f', 'app.py', '-c', checker, '-r', str(history.path)])

        assert result.exit_code == SUCCESS, result.output
        assert history.commits[0] in result.output
        assert "Last working commit" in result.output

    def test_not_found(self, runner, repo, checker):
        repo.commit("only", {"app.py": "bad"})

        result = runner.invoke(cli, ['-f', 'app.py', '-c', checker, '-r', str(repo.path)])

        assert result.exit_code == NO_WORKING_COMMIT
        assert "No working commit found" in result.output

    def test_file_never_present(self, runner, history, checker):
        result = runner.invoke(cli, ['-f', 'missing.py', '-c', checker, '-r', str(history.path)])

        assert result.exit_code == NO_WORKING_COMMIT
        assert "not present in any commit" in result.output

    def test_walk_limit(self, runner, history, checker):
        result = runner.invoke(
            cli, ['-f', 'app.py', '-c', checker, '-r', str(history.path), '--max-commits', '1', '--format', 'jsonl']
        )

        assert result.exit_code == NO_WORKING_COMMIT
        assert json_lines(result.output)[-1]['reason'] == 'walk_limit_reached'

    def test_not_a_repository(self, runner, tmp_path, checker):
        plain = tmp_path / "plain"
        plain.mkdir()

        result = runner.invoke(cli, ['-f', 'app.py', '-c', checker, '-r', str(plain)])

        assert result.exit_code == REPOSITORY_ERROR

    def test_dirty_tree(self, runner, history, checker):
        (history.path / "app.py").write_text("local edit")

        result = runner.invoke(cli, ['-f', 'app.py', '-c', checker, '-r', str(history.path)])

        assert result.exit_code == REPOSITORY_ERROR
        assert "--stash" in result.output

    def test_bad_config(self, runner, history, checker, tmp_path, monkeypatch):
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")
        monkeypatch.setenv('TRACE_WORKING_CONFIG', str(config_file))

        result = runner.invoke(cli, ['-f', 'app.py', '-c', checker, '-r', str(history.path)])

        assert result.exit_code == CONFIG_ERROR

    def test_path_outside_repository(self, runner, history, checker, tmp_path):
        result = runner.invoke(
            cli, ['-f', str(tmp_path / "elsewhere.py"), '-c', checker, '-r', str(history.path)]
        )
        assert result.exit_code == USAGE_ERROR


class TestUsage:
    """Argument validation."""

    def test_cmd_and_pytest_conflict(self, runner, history):
        result = runner.invoke(cli, ['-f', 'app.py', '-c', 'python', '--pytest', '-r', str(history.path)])

        assert result.exit_code == USAGE_ERROR
        assert "not both" in result.output

    def test_command_required(self, runner, history):
        result = runner.invoke(cli, ['-f', 'app.py', '-r', str(history.path)])

        assert result.exit_code == USAGE_ERROR
        assert "--cmd or --pytest" in result.output

    def test_file_required(self, runner, history):
        result = runner.invoke(cli, ['-c', 'python', '-r', str(history.path)])
        assert result.exit_code == USAGE_ERROR

    def test_version(self, runner):
        result = runner.invoke(cli, ['--version'])
        assert result.exit_code == 0
        assert "trace-working" in result.output


class TestOptionsPassing:
    """Flags and configuration reach the service."""

    def run_with_mock(self, runner, args):
        with patch('trace_working.cli.TraceService') as service_cls:
            service = service_cls.return_value
            service.run.return_value = TraversalResult.not_found(NotFoundReason.HISTORY_EXHAUSTED)
            service.events = []
            result = runner.invoke(cli, args)
        options = service.run.call_args[0][0]
        return result, options

    def test_pytest_shorthand(self, runner, history):
        result, options = self.run_with_mock(
            runner, ['-f', 'tests/test_app.py', '--pytest', 'login', '-r', str(history.path)]
        )

        assert result.exit_code == NO_WORKING_COMMIT
        assert options.command == "pytest -x -q -k login"

    def test_pytest_without_expression(self, runner, history):
        _, options = self.run_with_mock(
            runner, ['-f', 'tests/test_app.py', '-r', str(history.path), '--pytest']
        )
        assert options.command == "pytest -x -q"

    def test_flags(self, runner, history):
        _, options = self.run_with_mock(runner, [
            '-f', 'app.py', '-c', 'python', '-r', str(history.path),
            '--no-restore', '--shell', '--stash', '--max-commits', '20', '--timeout', '1.5',
        ])

        assert options.restore is False
        assert options.use_shell is True
        assert options.stash is True
        assert options.max_commits == 20
        assert options.timeout == 1.5

    def test_config_file_defaults(self, runner, history, tmp_path, monkeypatch):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("trace:\n  restore: false\n  max_commits: 7\n")
        monkeypatch.setenv('TRACE_WORKING_CONFIG', str(config_file))

        _, options = self.run_with_mock(runner, ['-f', 'app.py', '-c', 'python', '-r', str(history.path)])

        assert options.restore is False
        assert options.max_commits == 7
        assert options.stash is False


class TestMachineOutput:
    """JSON output formats."""

    def test_jsonl_stream(self, runner, history, checker):
        result = runner.invoke(
            cli, ['-f', 'app.py', '-c', checker, '-r', str(history.path), '--format', 'jsonl']
        )

        records = json_lines(result.output)
        assert [r['type'] for r in records] == ['commit', 'commit', 'result']
        assert [r['decision'] for r in records[:2]] == ['failed', 'passed']
        assert records[-1]['found'] is True
        assert records[-1]['commit'] == history.commits[0]

    def test_json_array(self, runner, history, checker):
        result = runner.invoke(
            cli, ['-f', 'app.py', '-c', checker, '-r', str(history.path), '--format', 'json']
        )

        start = result.output.index('[')
        end = result.output.rindex(']') + 1
        records = json.loads(result.output[start:end])
        assert records[-1]['type'] == 'result'
        assert records[-1]['visited'] == 2

    def test_error_object(self, runner, tmp_path, checker):
        plain = tmp_path / "plain"
        plain.mkdir()

        result = runner.invoke(cli, ['-f', 'app.py', '-c', checker, '-r', str(plain), '--format', 'jsonl'])

        errors = [r for r in json_lines(result.output) if r.get('type') == 'error']
        assert errors[0]['error_type'] == 'RepositoryError'
        assert errors[0]['exit_code'] == REPOSITORY_ERROR


class TestTextOutput:
    """Human-readable output."""

    def test_verbose_shows_table(self, runner, history, checker):
        result = runner.invoke(cli, ['-f', 'app.py', '-c', checker, '-r', str(history.path), '-v'])

        assert result.exit_code == SUCCESS
        assert "Checked commits" in result.output
        assert "1 failed" in result.output
