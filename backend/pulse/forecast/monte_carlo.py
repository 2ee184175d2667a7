"""Bootstrap throughput simulations.

Both simulations resample historical throughput uniformly with replacement;
no distribution is fitted. Pass a seeded ``numpy.random.Generator`` for
reproducible results.
"""

from collections import Counter
from collections.abc import Sequence

import numpy as np

SPRINT_SIMULATION_RUNS = 1000
FORECAST_SIMULATION_RUNS = 10_000
MAX_FORECAST_WEEKS = 520

# Keeps the (runs x weeks) draw matrix to a few MB at a time
_CHUNK_RUNS = 1000


def sprint_success_rate(
    daily_samples: Sequence[int],
    remaining: int,
    working_days: int,
    runs: int = SPRINT_SIMULATION_RUNS,
    rng: np.random.Generator | None = None,
) -> float:
    """Percentage of trials in which *working_days* sampled days cover *remaining*."""
    if not daily_samples:
        return 0.0
    rng = rng or np.random.default_rng()
    samples = np.asarray(daily_samples, dtype=np.int64)
    draws = rng.choice(samples, size=(runs, max(working_days, 0)), replace=True)
    totals = draws.sum(axis=1)
    successes = int(np.count_nonzero(totals >= remaining))
    return successes / runs * 100


def weeks_to_complete(
    weekly_samples: Sequence[int],
    remaining: int,
    runs: int = FORECAST_SIMULATION_RUNS,
    max_weeks: int = MAX_FORECAST_WEEKS,
    rng: np.random.Generator | None = None,
) -> np.ndarray:
    """Weeks each trial needed for cumulative sampled throughput to reach *remaining*.

    Trials that never get there (all-zero history) report ``max_weeks + 1``.
    """
    if remaining <= 0:
        return np.zeros(runs, dtype=np.int64)
    if not weekly_samples:
        return np.full(runs, max_weeks + 1, dtype=np.int64)

    rng = rng or np.random.default_rng()
    samples = np.asarray(weekly_samples, dtype=np.int64)
    results = np.empty(runs, dtype=np.int64)

    for start in range(0, runs, _CHUNK_RUNS):
        size = min(_CHUNK_RUNS, runs - start)
        draws = rng.choice(samples, size=(size, max_weeks), replace=True)
        reached = np.cumsum(draws, axis=1) >= remaining
        weeks = np.argmax(reached, axis=1) + 1
        weeks[~reached.any(axis=1)] = max_weeks + 1
        results[start:start + size] = weeks
    return results


def histogram(weeks: Sequence[float]) -> list[dict]:
    """``[{"week_offset": w, "count": n}, ...]`` over rounded week counts, ascending."""
    bins = Counter(int(round(w)) for w in weeks)
    return [{"week_offset": offset, "count": bins[offset]} for offset in sorted(bins)]
