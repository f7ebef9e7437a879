"""Install run reporting."""

from reporting.report import PhaseResult, TestReport

__all__ = ['PhaseResult', 'TestReport']
