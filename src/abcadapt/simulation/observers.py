"""
Progress reporting for ABC-PMC runs.

Observers are attached to a PMCSampler and notified at iteration boundaries
and after every simulator call. They never influence the algorithm.
"""

from typing import Optional, TYPE_CHECKING
import logging

from tqdm import tqdm

from ..diagnostics.posterior import summarize_population

if TYPE_CHECKING:
    from .base import ABCPMCResult, IterationSummary
    from .config import PMCConfig

logger = logging.getLogger(__name__)


class PMCObserver:
    """Base observer: every hook is a no-op."""

    def on_run_start(self, config: "PMCConfig") -> None:
        pass

    def on_iteration_start(self, iteration: int, sims_done: int) -> None:
        pass

    def on_candidate(self, sims_done: int) -> None:
        pass

    def on_iteration_complete(self, summary: "IterationSummary") -> None:
        pass

    def on_run_end(self, result: "ABCPMCResult") -> None:
        pass

    def close(self) -> None:
        """Release resources; called when a run ends, also on error."""
        pass


class ProgressObserver(PMCObserver):
    """
    Progress bar over the simulation budget plus a logged summary of
    every completed iteration.
    """

    def __init__(self, show_bar: bool = True):
        self.show_bar = show_bar
        self._bar: Optional[tqdm] = None
        self._last_sims = 0

    def on_run_start(self, config: "PMCConfig") -> None:
        self._last_sims = 0
        if self.show_bar:
            self._bar = tqdm(total=config.max_sims, desc="ABC-PMC", unit="sim")
        logger.info(
            f"Starting ABC-PMC: {config.n_particles} particles, alpha={config.alpha}, "
            f"budget={config.max_sims} sims, distance={config.distance}"
        )

    def on_candidate(self, sims_done: int) -> None:
        if self._bar is not None:
            self._bar.update(sims_done - self._last_sims)
        self._last_sims = sims_done

    def on_iteration_complete(self, summary: "IterationSummary") -> None:
        logger.info(f"Iteration {summary.iteration}, {summary.sims_done} sims done")
        logger.info(f"Acceptance rate {100 * summary.acceptance_rate:.1e} percent")
        logger.info(
            "Output of most recent stage:\n"
            + summarize_population(summary.population, summary.sims_this_iteration)
        )
        logger.info(f"Next threshold: {summary.threshold:.6g}")

    def on_run_end(self, result: "ABCPMCResult") -> None:
        self.close()
        logger.info(
            f"ABC-PMC finished: {result.n_iterations} iterations, {result.n_sims} sims"
        )

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None


def default_observers(silent: bool = False):
    """Observers used when none are given explicitly."""
    if silent:
        return []
    return [ProgressObserver()]


__all__ = ["PMCObserver", "ProgressObserver", "default_observers"]
