"""Tests for the ``leadify-e2e`` command line."""

import json
import logging

import pytest

from leadify_e2e import cli
from leadify_e2e.exceptions import ConfigurationError
from leadify_e2e.ids import conversation_tag, is_uuid, new_id
from leadify_e2e.logging_config import setup_logging
from leadify_e2e.reporting import TestReport


def fake_suite(passed=1, failed=0, title="Fake"):
    calls = []

    def run(config):
        calls.append(config)
        report = TestReport(title, echo=False)
        for i in range(passed):
            report.passed(f"ok {i}")
        for i in range(failed):
            report.failed(f"bad {i}", "broken")
        return report.finish()

    run.calls = calls
    return run


@pytest.fixture
def cli_env(monkeypatch, suite_config):
    monkeypatch.setattr(cli, 'load_suite_config', lambda config_file=None: suite_config)
    monkeypatch.setattr(cli, 'setup_logging', lambda *args, **kwargs: logging.getLogger())
    return suite_config


@pytest.mark.unit
class TestParser:

    def test_simulate_options(self):
        args = cli.build_parser().parse_args(['simulate', '--mode', 'async', '--per-category', '2',
                                              '--concurrency', '8', '-v'])

        assert args.command == 'simulate'
        assert args.mode == 'async'
        assert args.per_category == 2
        assert args.concurrency == 8
        assert args.verbose

    def test_defaults(self):
        args = cli.build_parser().parse_args(['token-verify'])

        assert args.seed is False
        assert args.report is None
        assert args.headed is False

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_unknown_mode_rejected(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(['simulate', '--mode', 'fax'])


@pytest.mark.integration
class TestMain:

    def test_passing_suite_writes_report(self, cli_env, monkeypatch, tmp_path):
        suite = fake_suite(passed=3)
        monkeypatch.setattr(cli, 'run_api_validation', suite)
        report_path = tmp_path / "out" / "api.json"

        code = cli.main(['api', '--report', str(report_path)])

        assert code == 0
        assert suite.calls == [cli_env]
        data = json.loads(report_path.read_text())
        assert data['summary']['passed'] == 3

    def test_failing_suite_exit_code(self, cli_env, monkeypatch):
        monkeypatch.setattr(cli, 'run_handoff_flow', fake_suite(passed=1, failed=1))

        assert cli.main(['handoff']) == 1
        reports = list(cli_env.reports_dir.glob('handoff_*.json'))
        assert len(reports) == 1

    def test_headed_flag(self, cli_env, monkeypatch):
        monkeypatch.setattr(cli, 'run_admin_pages', fake_suite())

        cli.main(['admin-ui', '--headed'])

        assert cli_env.browser.headless is False

    def test_suite_options_forwarded(self, cli_env, monkeypatch):
        received = {}

        def run_simulation(config, **kwargs):
            received.update(kwargs)
            return fake_suite()(config)

        monkeypatch.setattr(cli, 'run_simulation', run_simulation)

        cli.main(['simulate', '--mode', 'async', '--per-category', '1', '--concurrency', '2'])

        assert received == {'mode': 'async', 'per_category': 1, 'concurrency': 2}

    def test_all_combines_reports(self, cli_env, monkeypatch):
        for name in ('run_api_validation', 'run_admin_pages', 'run_handoff_flow', 'run_transfer_ui',
                     'run_bant_config', 'run_token_tracking'):
            monkeypatch.setattr(cli, name, fake_suite(passed=1))
        monkeypatch.setattr(cli, 'run_token_verification', lambda config, seed=False: fake_suite()(config))
        monkeypatch.setattr(cli, 'run_llm_benchmark', lambda config, track=False: fake_suite()(config))
        monkeypatch.setattr(cli, 'run_simulation', lambda config, **kwargs: fake_suite(failed=1)(config))

        report = cli.run_command(cli.build_parser().parse_args(['all']), cli_env)

        assert report.title == "All Suites"
        assert report.pass_count == 9
        assert report.fail_count == 1

    def test_all_still_writes_report_when_a_suite_crashes(self, cli_env, monkeypatch):
        for name in ('run_api_validation', 'run_handoff_flow', 'run_transfer_ui',
                     'run_bant_config', 'run_token_tracking'):
            monkeypatch.setattr(cli, name, fake_suite(passed=1))
        monkeypatch.setattr(cli, 'run_token_verification', lambda config, seed=False: fake_suite()(config))
        monkeypatch.setattr(cli, 'run_llm_benchmark', lambda config, track=False: fake_suite()(config))
        monkeypatch.setattr(cli, 'run_simulation', lambda config, **kwargs: fake_suite()(config))

        def crashing(config):
            raise RuntimeError("Executable doesn't exist")

        monkeypatch.setattr(cli, 'run_admin_pages', crashing)

        code = cli.main(['all'])

        assert code == 0
        reports = list(cli_env.reports_dir.glob('all_*.json'))
        assert len(reports) == 1
        data = json.loads(reports[0].read_text())
        assert data['summary']['passed'] == 8
        failures = [r for r in data['results'] if r['verdict'] == 'fail']
        assert [r['name'] for r in failures] == ['Suite admin-ui']
        assert "RuntimeError: Executable doesn't exist" in failures[0]['detail']

    def test_single_suite_crash_is_reported(self, cli_env, monkeypatch):
        def crashing(config):
            raise ConnectionError("connection refused")

        monkeypatch.setattr(cli, 'run_api_validation', crashing)

        assert cli.main(['api']) == 1
        reports = list(cli_env.reports_dir.glob('api_*.json'))
        assert len(reports) == 1

    def test_non_numeric_threshold_exit_code(self, clean_env, monkeypatch):
        clean_env.setenv('E2E_PASS_THRESHOLD', 'eighty')
        monkeypatch.setattr(cli, 'setup_logging', lambda *args, **kwargs: logging.getLogger())
        suite = fake_suite()
        monkeypatch.setattr(cli, 'run_token_verification', lambda config, seed=False: suite(config))

        assert cli.main(['token-verify']) == 2
        assert suite.calls == []

    def test_configuration_error_exit_code(self, monkeypatch):
        def broken(config_file=None):
            raise ConfigurationError("API base URL must start with http:// or https://")

        monkeypatch.setattr(cli, 'load_suite_config', broken)
        monkeypatch.setattr(cli, 'setup_logging', lambda *args, **kwargs: logging.getLogger())

        assert cli.main(['api']) == 2


@pytest.mark.unit
class TestSupport:

    def test_ids(self):
        assert is_uuid(new_id())
        assert not is_uuid("not-a-uuid")
        assert not is_uuid(None)

    def test_conversation_tag(self):
        tag = conversation_tag(now_ms=1700000000000)

        prefix, stamp, suffix = tag.split('_')
        assert prefix == 'test'
        assert stamp == '1700000000000'
        assert len(suffix) == 9
        assert suffix.isalnum() and suffix == suffix.lower()

    def test_setup_logging_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "e2e.log"
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level

        try:
            setup_logging('DEBUG', log_file=log_file)
            logging.getLogger('leadify_e2e.test').debug("written to file")
            for handler in root.handlers:
                handler.flush()

            assert root.level == logging.DEBUG
            assert logging.getLogger('urllib3').level == logging.WARNING
            assert "written to file" in log_file.read_text()
        finally:
            for handler in list(root.handlers):
                root.removeHandler(handler)
                if isinstance(handler, logging.FileHandler):
                    handler.close()
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)
