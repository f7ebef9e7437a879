"""Locate the ClusterServiceVersion created by a subscription."""

import logging
from typing import Iterable, Optional

from olm.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


def find_new_name(before: Iterable[str], now: Iterable[str]) -> Optional[str]:
    """Return the first name in `now` that is absent from `before`.

    When several new names appear at once the first in listing order wins.
    """
    previous = set(before)
    for name in now:
        if name not in previous:
            return name
    return None


class CSVResolver:
    """Resolve the CSV name for a subscription.

    Tries the subscription's `currentCSV` first, then falls back to diffing
    the CSV list against a snapshot taken before the subscription existed.

    Args:
        cluster: Cluster client
        namespace: Operator namespace
        snapshot: CSV names present before the subscription was created
        detect_timeout: Seconds to wait for a new CSV to appear
        interval: Seconds between CSV list polls
    """

    def __init__(self, cluster, namespace: str, snapshot: Iterable[str],
                 detect_timeout: float = 60, interval: float = 2,
                 clock: Optional[Clock] = None):
        self.cluster = cluster
        self.namespace = namespace
        self.snapshot = list(snapshot)
        self.detect_timeout = detect_timeout
        self.interval = interval
        self.clock = clock or SystemClock()

    def direct(self, subscription: str) -> Optional[str]:
        status = self.cluster.get_subscription_status(subscription, self.namespace)
        current = status.get('currentCSV') if isinstance(status, dict) else None
        return current if isinstance(current, str) and current else None

    def detect_new(self) -> Optional[str]:
        """Poll until a CSV absent from the snapshot shows up."""
        logger.info(f"Waiting up to {self.detect_timeout:.0f}s for a new CSV in {self.namespace}...")
        deadline = self.clock.now() + self.detect_timeout
        while True:
            name = find_new_name(self.snapshot, self.cluster.list_target_resource_names(self.namespace))
            if name:
                logger.info(f"Detected new CSV: {name}")
                return name
            remaining = deadline - self.clock.now()
            if remaining <= 0:
                logger.warning(f"No new CSV detected within {self.detect_timeout:.0f}s")
                return None
            self.clock.sleep(min(self.interval, remaining))

    def resolve(self, subscription: str) -> Optional[str]:
        """Return the CSV name, or None when it cannot be determined."""
        name = self.direct(subscription)
        if name:
            logger.info(f"Subscription resolved to CSV: {name}")
            return name
        logger.warning("No currentCSV found in subscription, falling back to new-CSV detection")
        return self.detect_new()
