#!/usr/bin/env python3
"""CLI entry point for operator-driver.

Supports noun-action subcommands:
- Scenarios: operator-driver scenario run operator-install --operator sriov --index-image <image>
- Subscription: operator-driver subscription monitor --operator sriov
- CSV: operator-driver csv wait --operator sriov [--name <csv>]
- Operators: operator-driver operators list
"""

import argparse
import json
import logging
import os
import subprocess
import sys
from pathlib import Path

from cluster import OcClient
from config import ConfigError, get_base_dir, list_operators, load_operator_config
from olm import collect_diagnostics, monitor_subscription_health, wait_for_target_success
from scenarios import Orchestrator, get_scenario, list_scenarios
from validation import format_preflight_results, validate_readiness

NOUN_COMMANDS = {
    "scenario": "Install/cleanup workflows (run)",
    "subscription": "Subscription health (monitor)",
    "csv": "ClusterServiceVersion status (wait)",
    "operators": "Known operator profiles (list)",
}


def get_version():
    """Get version from git tags (do not use hardcoded VERSION constant)."""
    try:
        result = subprocess.run(
            ['git', 'describe', '--tags', '--abbrev=0'],
            capture_output=True, text=True,
            cwd=Path(__file__).parent,
            check=False,
        )
        return result.stdout.strip() if result.returncode == 0 else 'dev'
    except Exception:
        return 'dev'

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool, json_output: bool) -> None:
    """Apply --verbose and --json-output (logs to stderr) to the root logger."""
    root_logger = logging.getLogger()
    if json_output:
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        root_logger.addHandler(stderr_handler)
    if verbose:
        root_logger.setLevel(logging.DEBUG)


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--operator', '-o',
        help=f'Operator profile. Available: {", ".join(list_operators())}'
    )
    parser.add_argument(
        '--namespace', '-n',
        help='Operator namespace (overrides the profile)'
    )
    parser.add_argument(
        '--marketplace-namespace',
        help='Namespace holding catalog sources (default: openshift-marketplace)'
    )
    parser.add_argument(
        '--timeout', '-t',
        type=int,
        help='Timeout in seconds (subscription monitor: resolution; csv wait: CSV phase; '
             'scenario run: subscription monitor phase, see --csv-timeout)'
    )
    parser.add_argument(
        '--kubeconfig',
        help='Kubeconfig passed through to oc'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--json-output',
        action='store_true',
        help='Output structured JSON to stdout (logs go to stderr)'
    )


def _load_config(args, extra: dict | None = None):
    """Build OperatorConfig from --operator and CLI overrides.

    Returns:
        (config, exit_code): config on success (exit_code=None),
        or (None, exit_code) on error.
    """
    if not args.operator:
        print("Error: --operator is required")
        print(f"Available operators: {', '.join(list_operators())}")
        return None, 1

    overrides = {
        'namespace': args.namespace,
        'marketplace_namespace': args.marketplace_namespace,
    }
    overrides.update(extra or {})
    try:
        config = load_operator_config(args.operator, overrides={k: v for k, v in overrides.items() if v is not None})
    except ConfigError as e:
        print(f"Error: {e}")
        return None, 1
    return config, None


# -----------------------------------------------------------------------------
# subscription / csv / operators nouns
# -----------------------------------------------------------------------------

def subscription_main(argv: list) -> int:
    """Handle 'subscription monitor'."""
    parser = argparse.ArgumentParser(
        prog='operator-driver subscription monitor',
        description='Monitor a subscription until it resolves, remediating blocking catalog sources'
    )
    parser.add_argument('action', choices=['monitor'])
    _add_common_args(parser)
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, args.json_output)

    config, exit_code = _load_config(args)
    if config is None:
        return exit_code or 1

    cluster = OcClient(kubeconfig=args.kubeconfig)
    timeout = args.timeout or config.monitor_timeout
    result = monitor_subscription_health(
        cluster, config.subscription, config.namespace,
        timeout=timeout,
        own_catalog=config.catalog_source,
        marketplace_namespace=config.marketplace_namespace,
    )

    if not result.resolved:
        print(collect_diagnostics(
            cluster, config.subscription, config.namespace,
            marketplace_namespace=config.marketplace_namespace,
            package=config.name,
        ), file=sys.stderr if args.json_output else sys.stdout)

    if args.json_output:
        print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.resolved else 1


def csv_main(argv: list) -> int:
    """Handle 'csv wait'."""
    parser = argparse.ArgumentParser(
        prog='operator-driver csv wait',
        description='Wait for a CSV (or every CSV in the namespace) to reach Succeeded'
    )
    parser.add_argument('action', choices=['wait'])
    parser.add_argument(
        '--name',
        help='CSV name (default: subscription currentCSV, else every CSV in the namespace)'
    )
    _add_common_args(parser)
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, args.json_output)

    config, exit_code = _load_config(args)
    if config is None:
        return exit_code or 1

    cluster = OcClient(kubeconfig=args.kubeconfig)
    target = args.name
    if not target:
        status = cluster.get_subscription_status(config.subscription, config.namespace)
        target = status.get('currentCSV') or ''

    result = wait_for_target_success(cluster, target, config.namespace,
                                     timeout=args.timeout or config.csv_timeout)
    if args.json_output:
        print(json.dumps({'succeeded': result.succeeded, 'target_name': result.target_name}, indent=2))
    elif not result.succeeded:
        print(f"Warning: {target or 'no CSV'} did not reach 'Succeeded' in time. "
              f"Check 'oc get csv -n {config.namespace}'.")
    return 0 if result.succeeded else 1


def operators_main(argv: list) -> int:
    """Handle 'operators list'."""
    if argv and argv[0] not in ('list', '--help', '-h'):
        print(f"Error: Unknown operators action '{argv[0]}'")
        print("Available actions: list")
        return 1

    print("Available operators:")
    for name in list_operators():
        try:
            config = load_operator_config(name)
        except ConfigError as e:
            print(f"  {name:12} (invalid config: {e})")
            continue
        print(f"  {name:12} {config.package:32} {config.namespace}")
    return 0


def dispatch_noun(noun: str, argv: list) -> int:
    """Dispatch to noun-specific CLI handler.

    Args:
        noun: The noun command (e.g., "subscription", "csv")
        argv: Remaining command line arguments

    Returns:
        Exit code
    """
    if noun == "subscription":
        return subscription_main(argv)
    if noun == "csv":
        return csv_main(argv)
    if noun == "operators":
        return operators_main(argv)
    return scenario_main(argv)


def print_usage():
    """Print top-level usage showing noun commands."""
    print(f"operator-driver {get_version()}")
    print()
    print("Usage: operator-driver <noun> <action> [options]")
    print()
    print("Commands:")
    for noun, desc in NOUN_COMMANDS.items():
        print(f"  {noun:<14} {desc}")
    print()
    print("Examples:")
    print("  operator-driver scenario run operator-install --operator sriov --index-image registry:5000/operators/sriov-index:latest")
    print("  operator-driver scenario run operator-cleanup --operator sriov")
    print("  operator-driver subscription monitor --operator metallb --timeout 300")
    print("  operator-driver csv wait --operator ptp")
    print("  operator-driver operators list")


# -----------------------------------------------------------------------------
# scenario noun
# -----------------------------------------------------------------------------

def _list_scenarios() -> None:
    print("Available scenarios:")
    for name in list_scenarios():
        scenario = get_scenario(name)
        runtime = getattr(scenario, 'expected_runtime', None)
        if runtime:
            runtime_str = f"~{runtime // 60}m" if runtime >= 60 else f"~{runtime}s"
            print(f"  {name:24} {runtime_str:>6}  {scenario.description}")
        else:
            print(f"  {name:24}         {scenario.description}")


def _handle_results(args, orchestrator, success: bool) -> int:
    """Handle JSON output and return exit code."""
    if args.json_output:
        report_data = orchestrator.report.to_dict(orchestrator.context)
        print(json.dumps(report_data, indent=2))
    return 0 if success else 1


def scenario_main(argv: list) -> int:
    """Handle 'scenario run <name>' and 'scenario list'."""
    if not argv or argv[0] in ('list', '--help', '-h'):
        _list_scenarios()
        print("\nUsage: operator-driver scenario run <name> --operator <operator> [options]")
        return 0
    if argv[0] != 'run' or len(argv) < 2 or argv[1].startswith('-'):
        print("Usage: operator-driver scenario run <name> [options]")
        print("\nRun 'operator-driver scenario list' to list available scenarios.")
        return 1

    scenario_name = argv[1]
    if scenario_name not in list_scenarios():
        print(f"Error: Unknown scenario '{scenario_name}'")
        _list_scenarios()
        return 1

    parser = argparse.ArgumentParser(
        prog=f'operator-driver scenario run {scenario_name}',
        description='Operator install driver - orchestrates OLM install workflows'
    )
    _add_common_args(parser)
    parser.add_argument(
        '--index-image', '-i',
        help='Pullable index image served by the operator CatalogSource'
    )
    parser.add_argument(
        '--channel',
        help='Subscription channel (default: stable)'
    )
    parser.add_argument(
        '--registry',
        help='Internal registry host[:port]; checked for reachability and used for '
             'the default index image <registry>/operators/<operator>-index:latest'
    )
    parser.add_argument(
        '--csv-timeout',
        type=int,
        help='Seconds to wait for the CSV to reach Succeeded (default: 180)'
    )
    parser.add_argument(
        '--report-dir', '-r',
        type=Path,
        default=get_base_dir() / 'reports',
        help='Directory for run reports'
    )
    parser.add_argument(
        '--skip', '-s',
        action='append',
        default=[],
        help='Phases to skip (can be repeated)'
    )
    parser.add_argument(
        '--keep-default-sources',
        action='store_true',
        help='Do not disable default OperatorHub catalog sources'
    )
    parser.add_argument(
        '--strict',
        action='store_true',
        help='Fail the run if the CSV does not reach Succeeded'
    )
    parser.add_argument(
        '--list-phases',
        action='store_true',
        help='List phases for the selected scenario and exit'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show what would be executed without running actions'
    )
    parser.add_argument(
        '--skip-preflight',
        action='store_true',
        help='Skip preflight checks before scenario execution'
    )
    args = parser.parse_args(argv[2:])
    _configure_logging(args.verbose, args.json_output)
    if args.kubeconfig:
        os.environ['KUBECONFIG'] = args.kubeconfig  # picked up by every oc call in the run

    config, exit_code = _load_config(args, {
        'index_image': args.index_image,
        'channel': args.channel,
        'registry': args.registry,
        'monitor_timeout': args.timeout,
        'csv_timeout': args.csv_timeout,
    })
    if config is None:
        return exit_code or 1

    scenario = get_scenario(scenario_name)
    if args.strict and hasattr(scenario, 'strict'):
        scenario.strict = True

    skip = list(args.skip)
    if args.keep_default_sources:
        skip.append('disable_default_sources')

    if args.list_phases:
        print(f"Phases for scenario '{scenario_name}':")
        for name, _action, desc in scenario.get_phases(config):
            print(f"  {name}: {desc}")
        return 0

    if not args.skip_preflight and not args.dry_run:
        errors = validate_readiness(config, type(scenario), cluster=OcClient(kubeconfig=args.kubeconfig))
        if errors:
            print(format_preflight_results(config.name, errors))
            return 1
        logger.info("Pre-flight validation passed")

    orchestrator = Orchestrator(
        scenario=scenario,
        config=config,
        report_dir=args.report_dir,
        skip_phases=skip,
        dry_run=args.dry_run
    )
    success = orchestrator.run()
    return _handle_results(args, orchestrator, success)


def main():
    """CLI entry point: dispatch to noun-action handlers."""
    if len(sys.argv) == 1 or sys.argv[1] in ('--help', '-h'):
        print_usage()
        return 0
    if sys.argv[1] == '--version':
        print(f"operator-driver {get_version()}")
        return 0

    noun = sys.argv[1]
    if noun not in NOUN_COMMANDS:
        print(f"Error: Unknown command '{noun}'")
        print_usage()
        return 1
    return dispatch_noun(noun, sys.argv[2:])


if __name__ == '__main__':
    sys.exit(main())
