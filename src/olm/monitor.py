"""Subscription health reconciliation loop.

The monitor polls a Subscription until OLM resolves it to a CSV or the
deadline passes. Each iteration runs in a fixed order:

    read status -> evaluate conditions -> resolved?     -> done
                                       -> failed?       -> remediate catalogs
                                       -> otherwise     -> sleep, poll again

When remediation deletes at least one catalog source the loop cools down and
restarts from the top, since the deletion may change the whole resolution
picture. The deadline is checked at the top of every iteration and every
sleep is clamped to the time left, so the monitor returns at expiry and
never later.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from cluster import CATALOG_SOURCE_KIND, CSV_KIND, SUBSCRIPTION_KIND
from olm.catalog import DEFAULT_MARKETPLACE_NAMESPACE, CatalogRemediator, MarketplaceRefExtractor
from olm.clock import Clock, SystemClock
from olm.conditions import SubscriptionSignals, evaluate_conditions
from olm.waiter import SUCCEEDED, TerminalWaiter

logger = logging.getLogger(__name__)


class MonitorPhase(str, Enum):
    """States of the reconciliation loop."""
    INIT = 'init'
    POLLING = 'polling'
    DIAGNOSING = 'diagnosing'
    REMEDIATING = 'remediating'
    COOLDOWN = 'cooldown'
    RESOLVED = 'resolved'
    TIMED_OUT = 'timed_out'


@dataclass
class MonitorState:
    """Mutable state of one monitoring session.

    Attributes:
        deadline: Clock time at which the session gives up
        attempts: Number of status polls performed
        phase: Current loop state
        last_status: Most recent subscription status snapshot
        remediated: Catalog sources deleted during this session
    """
    deadline: float
    attempts: int = 0
    phase: MonitorPhase = MonitorPhase.INIT
    last_status: dict = field(default_factory=dict)
    remediated: set[str] = field(default_factory=set)

    def remaining(self, now: float) -> float:
        return max(0.0, self.deadline - now)

    def transition(self, phase: MonitorPhase) -> None:
        if phase != self.phase:
            logger.debug(f"Monitor state: {self.phase.value} -> {phase.value}")
        self.phase = phase


@dataclass
class MonitorResult:
    """Outcome of monitor_subscription_health."""
    resolved: bool
    target_name: str = ''
    attempts: int = 0
    remediated: list[str] = field(default_factory=list)
    last_status: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'resolved': self.resolved,
            'target_name': self.target_name,
            'attempts': self.attempts,
            'remediated': list(self.remediated),
        }


@dataclass
class WaitResult:
    """Outcome of wait_for_target_success."""
    succeeded: bool
    target_name: str = ''


class HealthMonitor:
    """Drives a subscription toward resolution, remediating blocked catalogs.

    Args:
        cluster: Cluster client (see cluster.OcClient)
        own_catalog: The subscription's own catalog source, never remediated
        remediator: Catalog remediator (default built from the cluster)
        clock: Time source
        poll_interval: Seconds between status polls
        cooldown: Seconds to pause after a successful remediation
    """

    def __init__(self, cluster, own_catalog: str = '',
                 remediator: Optional[CatalogRemediator] = None,
                 clock: Optional[Clock] = None,
                 poll_interval: float = 5, cooldown: float = 10):
        self.cluster = cluster
        self.own_catalog = own_catalog
        self.remediator = remediator or CatalogRemediator(cluster)
        self.clock = clock or SystemClock()
        self.poll_interval = poll_interval
        self.cooldown = cooldown

    def _pause(self, state: MonitorState, seconds: float) -> None:
        self.clock.sleep(min(seconds, state.remaining(self.clock.now())))

    def _remediate(self, state: MonitorState, signals: SubscriptionSignals) -> set[str]:
        state.transition(MonitorPhase.DIAGNOSING)
        logger.warning(f"Subscription resolution failed: {signals.resolution_message}")
        removed = self.remediator.remediate(
            signals.resolution_message,
            self.own_catalog,
            skip=state.remediated,
        )
        if removed:
            state.transition(MonitorPhase.REMEDIATING)
            state.remediated.update(removed)
        return removed

    def monitor(self, subscription: str, namespace: str, timeout: float = 180) -> MonitorResult:
        """Poll the subscription until it resolves or `timeout` elapses."""
        state = MonitorState(deadline=self.clock.now() + timeout)
        logger.info(f"Monitoring subscription health for {subscription} in namespace {namespace}...")

        while self.clock.now() < state.deadline:
            state.transition(MonitorPhase.POLLING)
            state.attempts += 1
            status = self.cluster.get_subscription_status(subscription, namespace)
            state.last_status = status if isinstance(status, dict) else {}
            signals = evaluate_conditions(state.last_status)

            if signals.resolved:
                state.transition(MonitorPhase.RESOLVED)
                logger.info(f"Subscription successfully resolved. Current CSV: {signals.current_target}")
                return MonitorResult(
                    resolved=True,
                    target_name=signals.current_target,
                    attempts=state.attempts,
                    remediated=sorted(state.remediated),
                    last_status=state.last_status,
                )

            if signals.resolution_failed:
                removed = self._remediate(state, signals)
                if removed:
                    state.transition(MonitorPhase.COOLDOWN)
                    logger.info(
                        f"Removed {', '.join(sorted(removed))}; waiting {self.cooldown:.0f}s "
                        f"for OLM to refresh after catalog source changes..."
                    )
                    self._pause(state, self.cooldown)
                    continue
                state.transition(MonitorPhase.POLLING)

            if signals.catalog_unhealthy:
                logger.warning("Some catalog sources are unhealthy, continuing to monitor...")
            if signals.bundle_unpacking:
                logger.info("Bundle unpacking in progress...")

            remaining = state.remaining(self.clock.now())
            logger.info(
                f"Subscription not yet resolved (attempt {state.attempts}, "
                f"{remaining:.0f}s left), checking again in {self.poll_interval:.0f}s..."
            )
            self._pause(state, self.poll_interval)

        state.transition(MonitorPhase.TIMED_OUT)
        logger.error(f"Subscription monitoring timed out after {timeout:.0f} seconds")
        return MonitorResult(
            resolved=False,
            attempts=state.attempts,
            remediated=sorted(state.remediated),
            last_status=state.last_status,
        )


def monitor_subscription_health(cluster, subscription: str, namespace: str,
                                timeout: float = 180, own_catalog: str = '',
                                clock: Optional[Clock] = None,
                                marketplace_namespace: str = DEFAULT_MARKETPLACE_NAMESPACE) -> MonitorResult:
    """Monitor a subscription until it resolves to a CSV."""
    remediator = CatalogRemediator(cluster, extractor=MarketplaceRefExtractor(marketplace_namespace))
    monitor = HealthMonitor(cluster, own_catalog=own_catalog, remediator=remediator, clock=clock)
    return monitor.monitor(subscription, namespace, timeout=timeout)


def wait_for_target_success(cluster, target_name: str, namespace: str,
                            timeout: float = 180, clock: Optional[Clock] = None) -> WaitResult:
    """Wait for a CSV to reach Succeeded.

    An empty `target_name` waits on every CSV in the namespace instead.
    """
    waiter = TerminalWaiter(cluster, clock=clock)
    if target_name:
        ok = waiter.wait(target_name, namespace, SUCCEEDED, timeout)
    else:
        ok = waiter.wait_any(namespace, SUCCEEDED, timeout)
    return WaitResult(succeeded=ok, target_name=target_name)


def collect_diagnostics(cluster, subscription: str, namespace: str,
                        marketplace_namespace: str = DEFAULT_MARKETPLACE_NAMESPACE,
                        package: str = '') -> str:
    """Render subscription, catalog sources and CSVs for manual debugging."""
    sections = [
        ('Subscription details', cluster.get_yaml(SUBSCRIPTION_KIND, subscription, namespace)),
        ('Catalog sources', cluster.get_table(CATALOG_SOURCE_KIND, marketplace_namespace)),
        ('CSVs', cluster.get_table(CSV_KIND, namespace)),
    ]
    if package:
        manifests = cluster.get_table('packagemanifest', marketplace_namespace)
        matching = '\n'.join(line for line in manifests.splitlines() if package in line)
        sections.append(('Package manifests', matching))

    lines = []
    for title, body in sections:
        lines.append(f"{title}:")
        lines.append(body.rstrip() if body.strip() else '  (unavailable)')
        lines.append('')
    return '\n'.join(lines)
