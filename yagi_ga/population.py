"""
Population management for the Yagi-Uda optimizer.

Owns the individuals of the current generation and their cached fitness.
"""

from dataclasses import dataclass
from typing import List, Optional
import numpy as np

from .data_models import Constraint, DesignParameters, Individual, ParameterConstraints
from .fitness import FitnessStatus


def sample_uniform(constraint: Constraint, rng: np.random.Generator) -> float:
    """Draw one value uniformly from a constraint range."""
    if constraint.max == constraint.min:
        return constraint.min
    value = float(rng.uniform(constraint.min, constraint.max))
    return constraint.clamp(value)


def random_parameters(constraints: ParameterConstraints, rng: np.random.Generator) -> DesignParameters:
    """
    Sample a parameter vector, each gene independently and uniformly.

    Args:
        constraints: Per-slot constraints
        rng: Random number generator

    Returns:
        New DesignParameters inside the constraint ranges
    """
    return DesignParameters(
        lengths=[sample_uniform(c, rng) for c in constraints.lengths],
        spacings=[sample_uniform(c, rng) for c in constraints.spacings]
    )


@dataclass(frozen=True)
class PopulationStatistics:
    """Fitness statistics over one generation."""
    valid_count: int
    implausible_count: int
    failure_count: int
    average_fitness: float
    best_fitness: Optional[float]


class Population:
    """
    Fixed-size ordered collection of individuals for one generation.
    """

    def __init__(self, individuals: Optional[List[Individual]] = None):
        self._individuals: List[Individual] = list(individuals or [])

    @classmethod
    def initialize(
        cls,
        constraints: ParameterConstraints,
        size: int,
        rng: np.random.Generator,
        seed_parameters: Optional[DesignParameters] = None
    ) -> "Population":
        """
        Create an initial population of random individuals.

        Args:
            constraints: Per-slot constraints to sample within
            size: Number of individuals
            rng: Random number generator
            seed_parameters: Optional vector to use as the first individual
                (must already lie inside the constraints)

        Returns:
            New Population of unevaluated individuals

        Raises:
            ValueError: If size is not positive or the seed violates constraints
        """
        if size <= 0:
            raise ValueError(f"Population size must be positive, got: {size}")

        individuals = []
        if seed_parameters is not None:
            if not constraints.contains(seed_parameters):
                raise ValueError("Seed parameters lie outside the constraints")
            individuals.append(Individual(parameters=seed_parameters.copy()))

        while len(individuals) < size:
            individuals.append(Individual(parameters=random_parameters(constraints, rng)))

        return cls(individuals)

    @property
    def individuals(self) -> List[Individual]:
        return self._individuals

    def __len__(self) -> int:
        return len(self._individuals)

    def __iter__(self):
        return iter(self._individuals)

    def __getitem__(self, index: int) -> Individual:
        return self._individuals[index]

    def replace(self, new_individuals: List[Individual]) -> None:
        """
        Swap in the next generation. The old generation is discarded in full.

        Args:
            new_individuals: Individuals of the next generation
        """
        self._individuals = list(new_individuals)

    def unevaluated(self) -> List[Individual]:
        """Individuals without a cached outcome."""
        return [ind for ind in self._individuals if not ind.is_evaluated]

    def ranked(self) -> List[Individual]:
        """
        Individuals sorted best first.

        Sorting is stable, so equal individuals keep their population order.
        """
        return sorted(self._individuals, key=lambda ind: ind.rank_key(), reverse=True)

    def best(self) -> Individual:
        """
        Best individual; the first one wins ties.

        Raises:
            ValueError: If the population is empty
        """
        if not self._individuals:
            raise ValueError("Population is empty")
        best = self._individuals[0]
        for ind in self._individuals[1:]:
            if ind.rank_key() > best.rank_key():
                best = ind
        return best

    def elites(self, count: int) -> List[Individual]:
        """
        Value copies of the top individuals, cached outcomes included.

        Args:
            count: Number of elites

        Returns:
            List of copied individuals, best first
        """
        return [ind.copy() for ind in self.ranked()[:count]]

    def statistics(self) -> PopulationStatistics:
        """
        Compute fitness statistics over evaluated individuals.

        The average only covers valid (successfully scored) individuals and is
        0 when there are none.
        """
        valid = []
        implausible = 0
        failures = 0

        for ind in self._individuals:
            if ind.outcome is None:
                continue
            if ind.outcome.is_valid:
                valid.append(ind.outcome.fitness)
            elif ind.outcome.status is FitnessStatus.IMPLAUSIBLE:
                implausible += 1
            else:
                failures += 1

        evaluated = [ind for ind in self._individuals if ind.is_evaluated]
        best_fitness = None
        if evaluated:
            best_fitness = max(evaluated, key=lambda ind: ind.rank_key()).fitness

        return PopulationStatistics(
            valid_count=len(valid),
            implausible_count=implausible,
            failure_count=failures,
            average_fitness=float(np.mean(valid)) if valid else 0.0,
            best_fitness=best_fitness
        )
