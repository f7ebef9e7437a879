"""Scenario definitions and orchestration."""

import logging
import time
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

from config import OperatorConfig
from reporting import TestReport

logger = logging.getLogger(__name__)


@runtime_checkable
class Scenario(Protocol):
    """Protocol for scenario definitions.

    Class attributes:
        name: Scenario identifier (e.g., 'operator-install')
        description: Human-readable description
        requires_index_image: If True, the operator config must carry an index image
        expected_runtime: Expected runtime in seconds for listing display (default: None)
    """
    name: str
    description: str

    def get_phases(self, config: OperatorConfig) -> list[tuple[str, Any, str]]:
        """Return list of (phase_name, action, description) tuples."""
        ...


class Orchestrator:
    """Runs a scenario's phases in order against one operator config.

    A phase that fails with `continue_on_failure` is recorded as a warning
    and the run goes on; any other failure or exception stops the run.
    """

    def __init__(
        self,
        scenario: Scenario,
        config: OperatorConfig,
        report_dir: Path,
        skip_phases: Optional[list[str]] = None,
        timeout: Optional[int] = None,
        dry_run: bool = False
    ):
        self.scenario = scenario
        self.config = config
        self.report_dir = report_dir
        self.skip_phases = skip_phases or []
        self.timeout = timeout  # Overall scenario timeout in seconds
        self.dry_run = dry_run
        self.report = TestReport(operator=config.name, report_dir=report_dir, scenario=scenario.name)
        self.context: dict[str, Any] = {}

    def preview(self) -> bool:
        """Show what would be executed without running. Returns True."""
        phases = self.scenario.get_phases(self.config)

        print("")
        print("═══════════════════════════════════════════════════════════════")
        print(f"  DRY-RUN: {self.scenario.name}")
        print(f"  Operator: {self.config.name} ({self.config.package})")
        print(f"  Namespace: {self.config.namespace}")
        print(f"  Index image: {self.config.index_image or '(not set)'}")
        print("═══════════════════════════════════════════════════════════════")
        print("")

        print("Phases to execute:")
        phase_count = 0
        skip_count = 0

        for phase_name, action, description in phases:
            marker = '[SKIP]' if phase_name in self.skip_phases else '[ OK ]'
            print(f"  {marker} {phase_name}: {description}")
            print(f"         Action: {type(action).__name__}")
            if phase_name in self.skip_phases:
                skip_count += 1
            else:
                if resource := getattr(action, 'resource', None):
                    print(f"         Resource: {resource}")
                if timeout := getattr(action, 'timeout', None):
                    print(f"         Timeout: {timeout}s")
                phase_count += 1
            print("")

        print("═══════════════════════════════════════════════════════════════")
        print(f"  Summary: {phase_count} phases to execute, {skip_count} to skip")
        if self.timeout:
            print(f"  Timeout: {self.timeout}s")
        print("  Mode: DRY-RUN (no changes made)")
        print("═══════════════════════════════════════════════════════════════")
        print("")

        return True

    def run(self) -> bool:
        """Run all phases. Returns True if no phase failed fatally."""
        if self.dry_run:
            return self.preview()

        timeout_msg = f" (timeout: {self.timeout}s)" if self.timeout else ""
        logger.info(f"Starting scenario '{self.scenario.name}' for operator: {self.config.name}{timeout_msg}")
        self.report.start()

        phases = self.scenario.get_phases(self.config)
        all_passed = True
        start_time = time.time()

        for phase_name, action, description in phases:
            # Checked between phases only; a running phase is never interrupted
            if self.timeout:
                elapsed = time.time() - start_time
                if elapsed >= self.timeout:
                    logger.error(f"Scenario timeout ({self.timeout}s) exceeded after {elapsed:.1f}s")
                    self.report.fail_phase(phase_name, f"Timeout exceeded ({elapsed:.1f}s >= {self.timeout}s)", 0)
                    all_passed = False
                    break

            if phase_name in self.skip_phases:
                logger.info(f"Skipping phase: {phase_name}")
                self.report.skip_phase(phase_name, description)
                continue

            logger.info(f"Running phase: {phase_name} - {description}")
            self.report.start_phase(phase_name, description)

            try:
                result = action.run(self.config, self.context)
            except Exception as e:
                logger.exception(f"Phase {phase_name} raised exception")
                self.report.fail_phase(phase_name, str(e), 0)
                all_passed = False
                break

            self.context.update(result.context_updates or {})
            if result.success:
                logger.info(f"Phase {phase_name} passed")
                self.report.pass_phase(phase_name, result.message, result.duration)
            elif result.continue_on_failure:
                logger.warning(f"Phase {phase_name} did not pass, continuing: {result.message}")
                self.report.warn_phase(phase_name, result.message, result.duration)
            else:
                logger.error(f"Phase {phase_name} failed: {result.message}")
                self.report.fail_phase(phase_name, result.message, result.duration)
                all_passed = False
                break

        total_time = time.time() - start_time
        logger.info(f"Scenario completed in {total_time:.1f}s")
        self.report.finish(all_passed, self.context)
        return all_passed


# Registry of available scenarios
_scenarios: dict[str, type[Scenario]] = {}


def register_scenario(cls: type[Scenario]) -> type[Scenario]:
    """Decorator to register a scenario class."""
    _scenarios[cls.name] = cls
    return cls


def get_scenario(name: str) -> Scenario:
    """Get a scenario instance by name."""
    if name not in _scenarios:
        available = list(_scenarios.keys())
        raise ValueError(f"Unknown scenario: {name}. Available: {available}")
    return _scenarios[name]()


def list_scenarios() -> list[str]:
    """List available scenario names."""
    return sorted(_scenarios.keys())


# Import scenarios to trigger registration
from scenarios import operator_install  # noqa: E402, F401
