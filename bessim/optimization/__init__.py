"""Strategy parameter and battery-size optimization."""

from .search import DecayingStepSearch, GridSearch, Optimizer, SearchOutcome
from .strategy import (
    OptimizationResult,
    StrategyComparison,
    StrategyOptimizer,
    threshold_policy,
)

__all__ = [
    "DecayingStepSearch",
    "GridSearch",
    "OptimizationResult",
    "Optimizer",
    "SearchOutcome",
    "StrategyComparison",
    "StrategyOptimizer",
    "threshold_policy",
]
