"""Pre-flight validation checks for scenarios.

This module provides readiness checks that run before scenarios execute,
catching missing tools, expired cluster sessions and unreachable registries
early with actionable error messages.
"""

import logging
from typing import Optional

import requests
import urllib3

from cluster import OcClient
from common import command_exists
from config import OperatorConfig

# Suppress SSL warnings for self-signed registry certs
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ('oc',)


# -----------------------------------------------------------------------------
# Local tooling
# -----------------------------------------------------------------------------

def validate_cli_tools(tools: tuple[str, ...] = REQUIRED_TOOLS) -> list[str]:
    """Check required CLIs are installed.

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []
    for tool in tools:
        if not command_exists(tool):
            errors.append(
                f"{tool} is not installed\n"
                f"  Install the OpenShift CLI and ensure '{tool}' is on PATH"
            )
    return errors


# -----------------------------------------------------------------------------
# Cluster session
# -----------------------------------------------------------------------------

def validate_cluster_session(cluster: OcClient) -> list[str]:
    """Check the CLI is logged into a cluster."""
    ok, message = cluster.whoami()
    if not ok:
        return [
            f"Not logged into a cluster: {message}\n"
            f"  Run: oc login <api-url> (administrative privileges required)"
        ]
    logger.info(f"Cluster session valid (user {message})")
    return []


# -----------------------------------------------------------------------------
# Registry reachability
# -----------------------------------------------------------------------------

def validate_registry(registry: str, timeout: float = 10) -> list[str]:
    """Check an internal registry answers on its catalog endpoint.

    Args:
        registry: Registry host[:port] (e.g., registry.example.com:5000)
        timeout: Request timeout in seconds

    Returns:
        List of validation error messages (empty if valid)
    """
    url = f"https://{registry}/v2/_catalog"
    try:
        resp = requests.get(url, verify=False, timeout=timeout)  # Self-signed cert
    except requests.exceptions.ConnectionError:
        return [
            f"Internal registry not reachable at https://{registry}\n"
            f"  Check: registry is running and reachable from this host"
        ]
    except requests.exceptions.Timeout:
        return [f"Timeout connecting to registry {registry}"]
    except Exception as e:
        return [f"Error checking registry {registry}: {e}"]

    # 401 still proves the registry is up; credentials are the puller's concern
    if resp.status_code not in (200, 401):
        return [f"Unexpected registry response from {url}: {resp.status_code}"]
    logger.info(f"Registry {registry} reachable")
    return []


# -----------------------------------------------------------------------------
# Scenario readiness
# -----------------------------------------------------------------------------

def validate_readiness(config: OperatorConfig, scenario_class: type,
                       cluster: Optional[OcClient] = None) -> list[str]:
    """Run all checks a scenario needs before it starts.

    Args:
        config: Operator configuration
        scenario_class: Scenario class (reads requires_index_image)
        cluster: Cluster client (default: OcClient())

    Returns:
        List of validation error messages (empty if ready). An unreachable
        registry is logged as a warning and does not block the run.
    """
    errors = validate_cli_tools()
    if errors:
        return errors  # Nothing else can run without the CLI

    errors.extend(validate_cluster_session(cluster or OcClient()))

    if getattr(scenario_class, 'requires_index_image', False) and not config.index_image:
        errors.append(
            f"No index image configured for operator '{config.name}'\n"
            f"  Pass --index-image or --registry, or set index_image in operators/{config.name}.yaml"
        )

    # Only this host is probed; the cluster may still pull from the registry
    if config.registry:
        for warning in validate_registry(config.registry):
            logger.warning(f"Registry check: {warning}")

    return errors


def format_preflight_results(operator: str, errors: list[str]) -> str:
    """Format preflight errors for display."""
    if not errors:
        return f"Preflight checks for operator '{operator}' passed."

    lines = [f"\nPreflight checks for operator '{operator}' failed:"]
    for error in errors:
        first, *rest = error.split('\n')
        lines.append(f"  ✗ {first}")
        for line in rest:
            lines.append(f"    {line}")
    lines.append("\nUse --skip-preflight to bypass these checks")
    return '\n'.join(lines)
