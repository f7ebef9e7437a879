"""Install run reports (JSON and Markdown).

A phase ends in one of four states: passed, failed, warned (failed but the
scenario continued, e.g. a CSV that missed its Succeeded deadline) or
skipped. The overall run succeeds when nothing failed outright.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

STATUS_ICONS = {'passed': '✅', 'failed': '❌', 'warned': '⚠️', 'skipped': '⏭️'}

# Context keys worth surfacing in the Markdown summary
SUMMARY_KEYS = ('current_csv', 'remediated_catalogs', 'operator_pods')


@dataclass
class PhaseResult:
    """Result of a scenario phase."""
    name: str
    description: str
    status: str  # 'passed', 'failed', 'warned', 'skipped'
    message: str = ''
    duration: float = 0.0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


@dataclass
class TestReport:
    """Collects and writes run reports for one scenario on one operator."""
    operator: str
    report_dir: Path
    scenario: str = ''
    phases: list[PhaseResult] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    success: bool = False
    summary: dict = field(default_factory=dict)

    _descriptions: dict = field(default_factory=dict, repr=False)
    _phase_start: Optional[datetime] = field(default=None, repr=False)

    def start(self):
        """Mark run start."""
        self.started_at = datetime.now()
        self.report_dir.mkdir(parents=True, exist_ok=True)

    def start_phase(self, name: str, description: str):
        self._descriptions[name] = description
        self._phase_start = datetime.now()

    def pass_phase(self, name: str, message: str = '', duration: float = 0.0):
        self._record_phase(name, 'passed', message, duration)

    def fail_phase(self, name: str, message: str = '', duration: float = 0.0):
        self._record_phase(name, 'failed', message, duration)

    def warn_phase(self, name: str, message: str = '', duration: float = 0.0):
        """Record a phase that failed without stopping the scenario."""
        self._record_phase(name, 'warned', message, duration)

    def skip_phase(self, name: str, description: str):
        self.phases.append(PhaseResult(name=name, description=description, status='skipped'))

    def _record_phase(self, name: str, status: str, message: str, duration: float):
        now = datetime.now()
        if duration == 0.0 and self._phase_start:
            duration = (now - self._phase_start).total_seconds()
        self.phases.append(PhaseResult(
            name=name,
            description=self._descriptions.get(name, name),
            status=status,
            message=message,
            duration=duration,
            started_at=self._phase_start,
            finished_at=now
        ))
        self._phase_start = None

    @property
    def duration(self) -> float:
        if self.finished_at and self.started_at:
            return (self.finished_at - self.started_at).total_seconds()
        return 0.0

    @property
    def warnings(self) -> list[PhaseResult]:
        return [p for p in self.phases if p.status == 'warned']

    def finish(self, success: bool, context: Optional[dict] = None):
        """Finalize report and write files."""
        self.finished_at = datetime.now()
        self.success = success
        if context:
            self.summary = {k: context[k] for k in SUMMARY_KEYS if k in context}
        self._write_json()
        self._write_markdown()

    def _write_json(self):
        data = {
            'scenario': self.scenario,
            'operator': self.operator,
            'success': self.success,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'duration': self.duration,
            'summary': self.summary,
            'phases': [
                {
                    'name': p.name,
                    'description': p.description,
                    'status': p.status,
                    'message': p.message,
                    'duration': p.duration
                }
                for p in self.phases
            ]
        }
        with open(self._report_filename('json'), 'w', encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def _write_markdown(self):
        status = 'PASSED' if self.success else 'FAILED'
        if self.success and self.warnings:
            status = 'PASSED (with warnings)'

        lines = [
            f"# {self.scenario}",
            "",
            f"**Operator**: {self.operator}",
            f"**Status**: {status}",
            f"**Date**: {self.started_at.strftime('%Y-%m-%d %H:%M:%S') if self.started_at else 'N/A'}",
            f"**Duration**: {self.duration:.1f}s",
        ]
        for key, value in self.summary.items():
            if isinstance(value, list):
                value = ', '.join(str(v) for v in value) or 'none'
            lines.append(f"**{key}**: {value}")

        lines.extend([
            "",
            "## Phases",
            "",
            "| Phase | Status | Duration | Message |",
            "|-------|--------|----------|---------|",
        ])
        for p in self.phases:
            icon = STATUS_ICONS.get(p.status, '❓')
            lines.append(f"| {p.name} | {icon} {p.status} | {p.duration:.1f}s | {p.message} |")

        lines.extend(["", "---", f"Generated: {datetime.now().isoformat()}"])

        with open(self._report_filename('md'), 'w', encoding="utf-8") as f:
            f.write('\n'.join(lines))

    def _report_filename(self, ext: str) -> Path:
        """Report path: <timestamp>.<operator>.<scenario>.<status>.<ext>."""
        timestamp = self.started_at.strftime('%Y%m%d-%H%M%S') if self.started_at else 'unknown'
        status = 'passed' if self.success else 'failed'
        parts = [timestamp, self.operator]
        if self.scenario:
            parts.append(self.scenario.replace('/', '-'))
        return self.report_dir / f"{'.'.join(parts)}.{status}.{ext}"

    def to_dict(self, context: Optional[dict] = None) -> dict:
        """Return report as dictionary for JSON output.

        Args:
            context: Optional context dict to include in output.
                     Only JSON-serializable, non-underscore keys are kept.
        """
        result: dict = {
            'scenario': self.scenario,
            'operator': self.operator,
            'success': self.success,
            'duration_seconds': round(self.duration, 1),
            'phases': [
                {'name': p.name, 'status': p.status, 'duration': round(p.duration, 1)}
                for p in self.phases
            ]
        }

        if not self.success:
            for p in self.phases:
                if p.status == 'failed' and p.message:
                    result['error'] = p.message
                    break
        if self.warnings:
            result['warnings'] = [f"{p.name}: {p.message}" for p in self.warnings]

        if context:
            serializable = {}
            for key, value in context.items():
                if key.startswith('_'):
                    continue
                try:
                    json.dumps(value)
                except (TypeError, ValueError):
                    continue
                serializable[key] = value
            if serializable:
                result['context'] = serializable

        return result
