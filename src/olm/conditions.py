"""Signal extraction from a Subscription's status conditions.

OLM reports subscription problems only as free-text conditions. This module
turns one status snapshot into a small set of typed signals. It performs no
I/O and never raises: a missing or malformed status means "no signal".
"""

from dataclasses import dataclass
from typing import Any

RESOLUTION_FAILED = 'ResolutionFailed'
CATALOG_SOURCES_UNHEALTHY = 'CatalogSourcesUnhealthy'
BUNDLE_UNPACKING = 'BundleUnpacking'


@dataclass(frozen=True)
class SubscriptionSignals:
    """Typed view of one subscription status snapshot."""
    resolution_failed: bool = False
    resolution_message: str = ''
    catalog_unhealthy: bool = False
    bundle_unpacking: bool = False
    current_target: str = ''

    @property
    def resolved(self) -> bool:
        return bool(self.current_target)


def _is_true(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == 'true'


def _find_condition(conditions: list, cond_type: str) -> dict:
    for cond in conditions:
        if isinstance(cond, dict) and cond.get('type') == cond_type:
            return cond
    return {}


def evaluate_conditions(status: Any) -> SubscriptionSignals:
    """Classify a subscription `.status` dict.

    Args:
        status: The Subscription's status object (may be None or malformed)

    Returns:
        SubscriptionSignals for this snapshot
    """
    if not isinstance(status, dict):
        return SubscriptionSignals()

    conditions = status.get('conditions')
    if not isinstance(conditions, list):
        conditions = []

    failed = _find_condition(conditions, RESOLUTION_FAILED)
    message = failed.get('message')
    current = status.get('currentCSV')

    return SubscriptionSignals(
        resolution_failed=_is_true(failed.get('status')),
        resolution_message=message if isinstance(message, str) else '',
        catalog_unhealthy=_is_true(_find_condition(conditions, CATALOG_SOURCES_UNHEALTHY).get('status')),
        bundle_unpacking=_is_true(_find_condition(conditions, BUNDLE_UNPACKING).get('status')),
        current_target=current if isinstance(current, str) else '',
    )
