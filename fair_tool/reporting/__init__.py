"""Results summarization and reporting."""

from .reporting import ResultsCalculator, ControlsImpact, compare_runs, create_simple_summary_report

__all__ = [
    'ResultsCalculator', 'ControlsImpact', 'compare_runs', 'create_simple_summary_report',
]
