"""
Reference table of simulated (parameter, summary statistic) pairs.

The table is filled while a particle population is assembled and is then
used to fit that iteration's distance function.
"""

from typing import List, Tuple

import jax.numpy as jnp


class ReferenceTable:
    """
    Bounded append-only buffer of simulations.

    Pairs beyond the capacity are dropped: the first ``capacity`` successful
    simulations of an iteration are the ones kept.

    Args:
        capacity: Maximum number of pairs to keep
        n_params: Parameter dimension
        n_stats: Summary statistic dimension
    """

    def __init__(self, capacity: int, n_params: int, n_stats: int):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = int(capacity)
        self.n_params = int(n_params)
        self.n_stats = int(n_stats)
        self._params: List[jnp.ndarray] = []
        self._stats: List[jnp.ndarray] = []

    def __len__(self) -> int:
        return len(self._params)

    @property
    def is_full(self) -> bool:
        return len(self) >= self.capacity

    def add(self, theta: jnp.ndarray, stats: jnp.ndarray) -> bool:
        """Store a pair if there is room left. Returns whether it was stored."""
        if self.is_full:
            return False
        self._params.append(theta)
        self._stats.append(stats)
        return True

    def finalize(self) -> Tuple[jnp.ndarray, jnp.ndarray]:
        """
        Return the filled part of the table.

        Returns:
            Tuple (params, stats) of shapes (m, n_params) and (m, n_stats),
            with m the number of pairs stored
        """
        if not self._params:
            return jnp.zeros((0, self.n_params)), jnp.zeros((0, self.n_stats))
        params = jnp.stack(self._params).reshape(-1, self.n_params)
        stats = jnp.stack(self._stats).reshape(-1, self.n_stats)
        return params, stats

    def __repr__(self) -> str:
        return f"ReferenceTable({len(self)}/{self.capacity})"
