"""
Row and column subsampling for boosting rounds.

The sampler owns a seeded NumPy generator and is advanced sequentially,
one row draw and one column draw per round, so that a fixed seed always
reproduces the same sequence of subsets.
"""

from __future__ import annotations

from typing import Optional

import numpy as np


def _round_half_up(value: float) -> int:
    return int(np.floor(value + 0.5))


class Sampler:
    """
    Seeded per-round row and feature subsampling.

    Parameters
    ----------
    seed : int or None, default=None
        Seed of the underlying ``np.random.Generator``.

    Notes
    -----
    Rates are clamped to [0, 1]. A rate of 1 (or more) never touches the
    generator, so fully deterministic configurations stay independent of
    the seed.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def sample_rows(self, n_samples: int, rate: float) -> np.ndarray:
        """
        Draw the rows used to grow one tree.

        Each row is kept independently with probability ``rate``. When no
        row survives, a single row is picked uniformly at random so that the
        tree is never grown on an empty set.

        Returns
        -------
        rows : np.ndarray of int
            Sorted row indices.
        """
        rate = min(1.0, max(0.0, rate))
        if rate >= 1.0:
            return np.arange(n_samples)

        keep = self._rng.random(n_samples) < rate
        rows = np.flatnonzero(keep)
        if rows.size == 0:
            rows = np.array([self._rng.integers(n_samples)])
        return rows

    def sample_features(self, n_features: int, rate: float) -> np.ndarray:
        """
        Draw the feature subset used for one whole tree.

        A random permutation of the features is taken and its first
        ``max(1, round(rate * n_features))`` entries are kept, in permutation
        order.
        """
        rate = min(1.0, max(0.0, rate))
        if rate >= 1.0:
            return np.arange(n_features)

        n_selected = max(1, _round_half_up(rate * n_features))
        return self._rng.permutation(n_features)[:n_selected]
