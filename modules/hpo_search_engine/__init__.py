"""
HPO Search Engine
=================

Responsibility:
- Hyperparameter Optimization using grid or random search.
- Cross-validated, group-aware evaluation through any model backend.
- Best-candidate selection by the task's primary metric.
- Resumable progress log and summary artifacts.
"""

from .hpo_search_engine import HPOSearchEngine, run_single_fold, file_lock

__all__ = ['HPOSearchEngine', 'run_single_fold', 'file_lock']
