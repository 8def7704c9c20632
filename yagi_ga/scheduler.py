"""
Batch scheduling of fitness evaluations.

Evaluations are issued in bounded batches. A batch runs concurrently only if
the evaluator supports independent sessions; otherwise its members are awaited
one after another. Either way a batch finishes completely before the next one
starts, and outcomes are written back only after the batch is done.
"""

from typing import List, Optional, Sequence
import asyncio
import logging

from .data_models import Individual
from .fitness import FitnessEvaluator, FitnessOutcome

logger = logging.getLogger(__name__)


class BatchScheduler:
    """
    Groups fitness evaluations into bounded batches.
    """

    def __init__(
        self,
        fitness_evaluator: FitnessEvaluator,
        batch_size: int = 5,
        concurrent: Optional[bool] = None
    ):
        """
        Initialize scheduler.

        Args:
            fitness_evaluator: Adapter used to score individuals
            batch_size: Maximum evaluations per batch
            concurrent: Issue batch members concurrently. Defaults to what the
                evaluator declares; forcing True on an evaluator without
                independent sessions still serializes the solver cycle.
        """
        if batch_size < 1:
            raise ValueError(f"Batch size must be at least 1, got: {batch_size}")

        self.fitness_evaluator = fitness_evaluator
        self.batch_size = batch_size
        self.concurrent = (
            fitness_evaluator.supports_concurrency if concurrent is None else concurrent
        )
        self.batches_run = 0

    async def _run_batch(self, batch: Sequence[Individual]) -> List[FitnessOutcome]:
        if self.concurrent:
            results = await asyncio.gather(
                *(self.fitness_evaluator.evaluate(ind.parameters) for ind in batch),
                return_exceptions=True
            )
        else:
            results = []
            for ind in batch:
                try:
                    results.append(await self.fitness_evaluator.evaluate(ind.parameters))
                except Exception as e:
                    results.append(e)

        outcomes = []
        for result in results:
            if isinstance(result, FitnessOutcome):
                outcomes.append(result)
            else:
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning("Evaluation raised inside batch: %s", result)
                outcomes.append(FitnessOutcome.failure(f"{type(result).__name__}: {result}"))
        return outcomes

    async def evaluate(self, individuals: Sequence[Individual]) -> int:
        """
        Evaluate individuals batch by batch, caching outcomes on them.

        Args:
            individuals: Individuals to evaluate

        Returns:
            Number of individuals evaluated
        """
        evaluated = 0

        for start in range(0, len(individuals), self.batch_size):
            batch = individuals[start:start + self.batch_size]
            outcomes = await self._run_batch(batch)

            for ind, outcome in zip(batch, outcomes):
                ind.outcome = outcome

            self.batches_run += 1
            evaluated += len(batch)

        return evaluated
