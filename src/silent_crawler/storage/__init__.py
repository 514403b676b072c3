"""
Result collection and output.
"""

from .results import ResultAggregator, ResultSets
from .output import OutputError, write_results_json, print_results, print_summary

__all__ = [
    'ResultAggregator', 'ResultSets',
    'OutputError', 'write_results_json', 'print_results', 'print_summary',
]
