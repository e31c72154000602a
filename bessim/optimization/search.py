"""Derivative-free search procedures used by the strategy optimizer.

Both procedures *maximize* a scalar objective over a box of parameters.
They sit behind the :class:`Optimizer` interface so the heuristic can be
swapped without touching the simulation code.

* :class:`DecayingStepSearch` -- local hill climb that tries one step up
  and one step down along the all-ones direction, with a step size that
  shrinks linearly to zero over a fixed iteration budget.
* :class:`GridSearch` -- exhaustive evaluation of evenly spaced candidates,
  optionally on a thread pool.  Results are consumed in candidate order
  so ties always resolve to the earliest candidate.
"""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from bessim.core.errors import InvalidInputError

Objective = Callable[[NDArray[np.float64]], float]


def _as_point(values: ArrayLike) -> NDArray[np.float64]:
    return np.atleast_1d(np.asarray(values, dtype=np.float64)).copy()


def _as_tuple(point: NDArray[np.float64]) -> tuple[float, ...]:
    return tuple(float(v) for v in point)


# ======================================================================
# Outcome
# ======================================================================

@dataclass
class SearchOutcome:
    """Best point found by a search, plus every trial it evaluated."""

    best_point: tuple[float, ...]
    best_value: float
    evaluations: int = 0
    history: list[tuple[tuple[float, ...], float]] = field(default_factory=list)


class _Recorder:
    """Wrap an objective so every call lands in the outcome history."""

    def __init__(self, objective: Objective) -> None:
        self._objective = objective
        self.history: list[tuple[tuple[float, ...], float]] = []

    def __call__(self, point: NDArray[np.float64]) -> float:
        value = float(self._objective(point))
        self.history.append((_as_tuple(point), value))
        return value


# ======================================================================
# Interface
# ======================================================================

class Optimizer(ABC):
    """Maximize ``objective(point)`` over ``lower <= point <= upper``."""

    @abstractmethod
    def maximize(
        self,
        objective: Objective,
        x0: ArrayLike,
        lower: ArrayLike,
        upper: ArrayLike,
    ) -> SearchOutcome:
        """Run the search and return the best point seen."""


# ======================================================================
# Decaying-step hill climb
# ======================================================================

class DecayingStepSearch(Optimizer):
    """Hill climb with a linearly decaying step.

    At iteration ``i`` the step is ``learning_rate * (1 - i / iterations)``.
    The current point is compared with ``x + step`` and ``x - step`` (every
    coordinate shifted together).  The search moves up when the upper trial
    beats both the current value and the lower trial, otherwise down when
    the lower trial beats the current value.  Upward moves are clipped to
    ``upper`` and downward moves to ``lower``.

    This is a noisy local heuristic: it returns the best point it happened
    to evaluate, not a global optimum.

    Parameters
    ----------
    iterations : int
        Number of iterations (three objective calls each).
    learning_rate : float
        Initial step size in parameter units.
    """

    def __init__(self, iterations: int = 100, learning_rate: float = 0.05) -> None:
        if iterations < 1:
            raise InvalidInputError(f"iterations must be >= 1, got {iterations}")
        if learning_rate <= 0:
            raise InvalidInputError(f"learning_rate must be > 0, got {learning_rate}")
        self.iterations = iterations
        self.learning_rate = learning_rate

    def step_size(self, iteration: int) -> float:
        return self.learning_rate * (1.0 - iteration / self.iterations)

    def maximize(
        self,
        objective: Objective,
        x0: ArrayLike,
        lower: ArrayLike,
        upper: ArrayLike,
    ) -> SearchOutcome:
        x = _as_point(x0)
        lo = np.broadcast_to(_as_point(lower), x.shape)
        hi = np.broadcast_to(_as_point(upper), x.shape)
        evaluate = _Recorder(objective)

        best_point = x.copy()
        best_value = float("-inf")

        for i in range(self.iterations):
            value = evaluate(x)
            if value > best_value:
                best_value = value
                best_point = x.copy()

            step = self.step_size(i)
            value_up = evaluate(x + step)
            value_down = evaluate(x - step)

            if value_up > value and value_up > value_down:
                x = np.minimum(x + step, hi)
            elif value_down > value:
                x = np.maximum(x - step, lo)

        return SearchOutcome(
            best_point=_as_tuple(best_point),
            best_value=best_value,
            evaluations=len(evaluate.history),
            history=evaluate.history,
        )


# ======================================================================
# Grid search
# ======================================================================

class GridSearch(Optimizer):
    """Exhaustive search over evenly spaced candidates.

    Parameters
    ----------
    points : int
        Candidates per dimension, endpoints included.
    max_workers : int or None
        When set, candidates are evaluated on a thread pool of this size.
        The objective must then be safe to call concurrently.
    floor : float
        Score the starting point ``x0`` is credited with.  A candidate
        replaces the incumbent only with a strictly greater score, so if
        nothing beats ``floor`` the search returns ``x0``.
    """

    def __init__(
        self,
        points: int = 21,
        max_workers: Optional[int] = None,
        floor: float = 0.0,
    ) -> None:
        if points < 1:
            raise InvalidInputError(f"points must be >= 1, got {points}")
        self.points = points
        self.max_workers = max_workers
        self.floor = floor

    def grid(self, lower: ArrayLike, upper: ArrayLike) -> list[NDArray[np.float64]]:
        """Cartesian product of ``linspace(lower_k, upper_k, points)``."""
        lo = _as_point(lower)
        hi = _as_point(upper)
        axes = [np.linspace(a, b, self.points) for a, b in zip(lo, hi)]
        return [np.array(combo, dtype=np.float64) for combo in itertools.product(*axes)]

    def maximize(
        self,
        objective: Objective,
        x0: ArrayLike,
        lower: ArrayLike,
        upper: ArrayLike,
    ) -> SearchOutcome:
        return self.maximize_over(objective, self.grid(lower, upper), x0)

    def maximize_over(
        self,
        objective: Objective,
        candidates: Sequence[ArrayLike],
        x0: ArrayLike,
    ) -> SearchOutcome:
        """Evaluate an explicit candidate list."""
        points = [_as_point(c) for c in candidates]

        if self.max_workers is not None and len(points) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                values = [float(v) for v in executor.map(objective, points)]
        else:
            values = [float(objective(p)) for p in points]

        best_point = _as_point(x0)
        best_value = self.floor
        history: list[tuple[tuple[float, ...], float]] = []
        for point, value in zip(points, values):
            history.append((_as_tuple(point), value))
            if value > best_value:
                best_value = value
                best_point = point

        return SearchOutcome(
            best_point=_as_tuple(best_point),
            best_value=best_value,
            evaluations=len(points),
            history=history,
        )
