"""Wait for a CSV to reach its terminal phase."""

import logging
from typing import Optional

from cluster import ClusterError
from olm.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

SUCCEEDED = 'Succeeded'


class TerminalWaiter:
    """Poll CSV phases until they reach a terminal value or time runs out.

    Read errors never end the wait early; they count as "not terminal yet".
    """

    def __init__(self, cluster, interval: float = 5, clock: Optional[Clock] = None):
        self.cluster = cluster
        self.interval = interval
        self.clock = clock or SystemClock()

    def _poll(self, check, timeout: float) -> bool:
        deadline = self.clock.now() + timeout
        while True:
            try:
                if check():
                    return True
            except ClusterError as e:
                logger.debug(f"Phase read failed, retrying: {e}")
            remaining = deadline - self.clock.now()
            if remaining <= 0:
                return False
            self.clock.sleep(min(self.interval, remaining))

    def wait(self, name: str, namespace: str, phase: str = SUCCEEDED,
             timeout: float = 180) -> bool:
        """Wait for one named CSV to reach `phase`."""
        logger.info(f"Waiting for CSV {name} to reach {phase} ({timeout:.0f}s timeout)...")

        def check() -> bool:
            current = self.cluster.get_target_resource_phase(name, namespace)
            logger.debug(f"CSV {name} phase: {current or 'unknown'}")
            return current == phase

        return self._poll(check, timeout)

    def wait_any(self, namespace: str, phase: str = SUCCEEDED, timeout: float = 180) -> bool:
        """Wait until every CSV in the namespace (at least one) reaches `phase`."""
        logger.info(f"Waiting for all CSVs in {namespace} to reach {phase} ({timeout:.0f}s timeout)...")

        def check() -> bool:
            phases = self.cluster.list_target_resource_phases(namespace)
            return bool(phases) and all(p == phase for p in phases.values())

        return self._poll(check, timeout)
