"""
Crossover operators for the Yagi-Uda optimizer.

Implements uniform, gene-wise crossover over element lengths and spacings.
"""

from typing import Dict, List, Tuple
import numpy as np

from .data_models import DesignParameters, Individual


def uniform_crossover(
    parent_a: Individual,
    parent_b: Individual,
    crossover_rate: float,
    rng: np.random.Generator
) -> Tuple[Individual, Dict[str, List[str]]]:
    """
    Combine two parents gene by gene.

    With probability ``crossover_rate`` every length and spacing slot is taken
    from parent A or parent B with probability 0.5, independently. Otherwise
    the child is a copy of one parent chosen 50/50.

    Args:
        parent_a: First parent
        parent_b: Second parent
        crossover_rate: Probability of recombining
        rng: Random number generator

    Returns:
        Tuple of (child_individual, crossover_mask)
        where crossover_mask maps "lengths"/"spacings" to per-slot "A"|"B"

    Raises:
        ValueError: If the parents have different shapes
    """
    params_a = parent_a.parameters
    params_b = parent_b.parameters

    if (len(params_a.lengths) != len(params_b.lengths)
            or len(params_a.spacings) != len(params_b.spacings)):
        raise ValueError("Parents must have the same number of lengths and spacings")

    if rng.random() < crossover_rate:
        length_mask = ["A" if rng.random() < 0.5 else "B" for _ in params_a.lengths]
        spacing_mask = ["A" if rng.random() < 0.5 else "B" for _ in params_a.spacings]
    else:
        # No recombination: clone one whole parent
        source = "A" if rng.random() < 0.5 else "B"
        length_mask = [source] * len(params_a.lengths)
        spacing_mask = [source] * len(params_a.spacings)

    child_params = DesignParameters(
        lengths=[
            a if pick == "A" else b
            for a, b, pick in zip(params_a.lengths, params_b.lengths, length_mask)
        ],
        spacings=[
            a if pick == "A" else b
            for a, b, pick in zip(params_a.spacings, params_b.spacings, spacing_mask)
        ]
    )

    crossover_mask = {"lengths": length_mask, "spacings": spacing_mask}

    return Individual(parameters=child_params), crossover_mask
