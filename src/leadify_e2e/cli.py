"""
Command-line entry point: ``leadify-e2e <command>``.
"""

import sys
import logging
import argparse
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional

from .config import ConfigManager, SuiteConfig, get_config
from .exceptions import ConfigurationError
from .logging_config import setup_logging
from .reporting import TestReport
from .suites import (
    run_admin_pages,
    run_api_validation,
    run_bant_config,
    run_handoff_flow,
    run_llm_benchmark,
    run_simulation,
    run_token_tracking,
    run_token_verification,
    run_transfer_ui,
)
from .suites.simulation import SIMULATION_MODES

logger = logging.getLogger(__name__)


def _suites(args: argparse.Namespace) -> Dict[str, Callable[[SuiteConfig], TestReport]]:
    return {
        'api': run_api_validation,
        'admin-ui': run_admin_pages,
        'handoff': run_handoff_flow,
        'transfer-ui': run_transfer_ui,
        'bant-config': run_bant_config,
        'token-audit': run_token_tracking,
        'token-verify': lambda config: run_token_verification(config, seed=getattr(args, 'seed', False)),
        'llm-benchmark': lambda config: run_llm_benchmark(config, track=getattr(args, 'track', False)),
        'simulate': lambda config: run_simulation(
            config,
            mode=getattr(args, 'mode', 'api'),
            per_category=getattr(args, 'per_category', 4),
            concurrency=getattr(args, 'concurrency', 5),
        ),
    }


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--config', type=Path, help='JSON config file (default: e2e.config.json)')
    common.add_argument('--report', type=Path, help='Write the JSON report to this path')
    common.add_argument('--headed', action='store_true', help='Show the browser window')
    common.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    parser = argparse.ArgumentParser(
        prog='leadify-e2e',
        description='Integration and end-to-end checks for the Leadify CRM platform',
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('api', parents=[common], help='REST API validation')
    subparsers.add_parser('admin-ui', parents=[common], help='Admin pages in the browser')
    subparsers.add_parser('handoff', parents=[common], help='Human handoff round trip')
    subparsers.add_parser('transfer-ui', parents=[common], help='Transfer a handoff to AI from the UI')
    subparsers.add_parser('bant-config', parents=[common], help='Custom BANT configuration lifecycle')
    subparsers.add_parser('token-audit', parents=[common], help='Live token tracking audit')

    verify = subparsers.add_parser('token-verify', parents=[common], help='Verify tracked token usage')
    verify.add_argument('--seed', action='store_true', help='Insert sample usage rows first')

    benchmark = subparsers.add_parser('llm-benchmark', parents=[common], help='Direct LLM provider benchmark')
    benchmark.add_argument('--track', action='store_true', help='Store usage rows in Supabase')

    simulate = subparsers.add_parser('simulate', parents=[common], help='BANT conversation simulation')
    simulate.add_argument('--mode', choices=SIMULATION_MODES, default='api', help='How conversations are sent')
    simulate.add_argument('--per-category', type=int, default=4, help='Conversations per category per agent')
    simulate.add_argument('--concurrency', type=int, default=5, help='Concurrent conversations in async mode')

    subparsers.add_parser('all', parents=[common], help='Run every suite')
    return parser


def load_suite_config(config_file: Optional[Path] = None) -> SuiteConfig:
    if config_file:
        return ConfigManager(config_file=config_file).get_suite_config()
    return get_config()


def run_suite(name: str, run: Callable[[SuiteConfig], TestReport], config: SuiteConfig) -> TestReport:
    """Run one suite; a crash becomes a single FAIL so a report is still written."""
    try:
        return run(config)
    except Exception as e:
        logger.exception(f"Suite {name} crashed")
        report = TestReport(f"Suite {name}")
        report.failed(f"Suite {name}", f"{type(e).__name__}: {e}")
        return report.finish()


def run_command(args: argparse.Namespace, config: SuiteConfig) -> TestReport:
    suites = _suites(args)
    if args.command != 'all':
        return run_suite(args.command, suites[args.command], config)

    combined = TestReport("All Suites", echo=False)
    for name, run in suites.items():
        logger.info(f"Running suite {name}")
        combined.extend(run_suite(name, run, config))
    return combined.finish()


def main(argv=None) -> int:
    """Main entry point; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_suite_config(args.config)
    except ConfigurationError as e:
        setup_logging()
        logger.error(str(e))
        return 2

    setup_logging(level='DEBUG' if args.verbose else config.log_level,
                  log_file=config.log_file, verbose=args.verbose)
    if args.headed:
        config.browser.headless = False

    logger.info(f"Running {args.command} against {config.api.base_url} ({config.environment})")
    report = run_command(args, config)

    stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    report_path = args.report or Path(config.reports_dir) / f"{args.command}_{stamp}.json"
    report.write_json(report_path)
    report.print_summary(config.pass_threshold)
    return report.exit_code(config.pass_threshold)


if __name__ == '__main__':
    sys.exit(main())
