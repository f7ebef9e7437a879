"""Subscription health reconciliation for OLM operator installs."""

from olm.clock import Clock, SystemClock
from olm.conditions import SubscriptionSignals, evaluate_conditions
from olm.catalog import (
    CatalogRef,
    CatalogRefExtractor,
    CatalogRemediator,
    MarketplaceRefExtractor,
    classify_pod_phases,
)
from olm.csv_resolver import CSVResolver, find_new_name
from olm.waiter import TerminalWaiter
from olm.monitor import (
    HealthMonitor,
    MonitorPhase,
    MonitorResult,
    MonitorState,
    WaitResult,
    collect_diagnostics,
    monitor_subscription_health,
    wait_for_target_success,
)

__all__ = [
    'Clock',
    'SystemClock',
    'SubscriptionSignals',
    'evaluate_conditions',
    'CatalogRef',
    'CatalogRefExtractor',
    'CatalogRemediator',
    'MarketplaceRefExtractor',
    'classify_pod_phases',
    'CSVResolver',
    'find_new_name',
    'TerminalWaiter',
    'HealthMonitor',
    'MonitorPhase',
    'MonitorResult',
    'MonitorState',
    'WaitResult',
    'collect_diagnostics',
    'monitor_subscription_health',
    'wait_for_target_success',
]
