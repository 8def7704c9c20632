"""
Parent selection for the Yagi-Uda optimizer.
"""

from typing import Sequence
import numpy as np

from .data_models import Individual


def tournament_select(
    individuals: Sequence[Individual],
    rng: np.random.Generator,
    tournament_size: int = 3
) -> Individual:
    """
    Select a parent by tournament.

    Samples ``tournament_size`` indices uniformly with replacement and returns
    the best of them. On ties the first sampled individual wins, so the result
    is deterministic for a given random stream.

    Args:
        individuals: Evaluated individuals of the current generation
        rng: Random number generator
        tournament_size: Number of contestants

    Returns:
        The winning individual (not copied)

    Raises:
        ValueError: If there are no individuals or the tournament is empty
    """
    if not individuals:
        raise ValueError("Cannot select from an empty population")
    if tournament_size < 1:
        raise ValueError(f"Tournament size must be at least 1, got: {tournament_size}")

    indices = rng.integers(0, len(individuals), size=tournament_size)

    best_index = int(indices[0])
    for idx in indices[1:]:
        idx = int(idx)
        if individuals[idx].rank_key() > individuals[best_index].rank_key():
            best_index = idx

    return individuals[best_index]
