"""
Mutation operators for the Yagi-Uda optimizer.

Implements hybrid per-gene mutation: Gaussian perturbation for fine tuning,
uniform re-sampling for exploration.
"""

from typing import Dict, List
import math
import numpy as np

from .data_models import Constraint, Individual, ParameterConstraints
from .population import sample_uniform


def box_muller(rng: np.random.Generator) -> float:
    """
    Draw a standard normal sample with the Box-Muller transform.

    Args:
        rng: Random number generator

    Returns:
        Sample from N(0, 1)
    """
    # rng.random() is in [0, 1); 1 - u keeps the log argument away from zero
    u = 1.0 - rng.random()
    v = rng.random()
    return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)


def gaussian_perturb(
    value: float,
    constraint: Constraint,
    rng: np.random.Generator,
    sigma_fraction: float = 0.1
) -> float:
    """
    Perturb a value with Gaussian noise scaled to its constraint range.

    Args:
        value: Current value
        constraint: Constraint of this slot
        rng: Random number generator
        sigma_fraction: Standard deviation as a fraction of the range

    Returns:
        Perturbed value, clamped into range
    """
    sigma = constraint.span() * sigma_fraction
    return constraint.clamp(value + box_muller(rng) * sigma)


def _mutate_slots(
    values: List[float],
    constraints: List[Constraint],
    label: str,
    mutation_rate: float,
    rng: np.random.Generator,
    gaussian_share: float,
    sigma_fraction: float
) -> List[str]:
    op_log = []
    for i, constraint in enumerate(constraints):
        if rng.random() >= mutation_rate:
            continue

        old_value = values[i]
        if rng.random() < gaussian_share:
            values[i] = gaussian_perturb(old_value, constraint, rng, sigma_fraction)
            op = "gaussian"
        else:
            values[i] = sample_uniform(constraint, rng)
            op = "uniform"

        op_log.append(f"{op}({label}[{i}]): {old_value:.2f} -> {values[i]:.2f}")
    return op_log


def mutate(
    individual: Individual,
    constraints: ParameterConstraints,
    mutation_rate: float,
    rng: np.random.Generator,
    gaussian_share: float = 0.7,
    sigma_fraction: float = 0.1
) -> List[str]:
    """
    Mutate an individual in place.

    Each length and spacing mutates independently with probability
    ``mutation_rate``. A mutating gene gets a Gaussian step (standard
    deviation ``sigma_fraction`` of its range, clamped) with probability
    ``gaussian_share``, otherwise a fresh uniform sample over its range.
    Any cached fitness is dropped when a gene changes.

    Args:
        individual: Individual to mutate
        constraints: Per-slot constraints
        mutation_rate: Per-gene mutation probability
        rng: Random number generator
        gaussian_share: Share of mutations that are Gaussian
        sigma_fraction: Gaussian standard deviation as a fraction of range

    Returns:
        Operation log (empty if nothing mutated)
    """
    params = individual.parameters

    op_log = _mutate_slots(
        params.lengths, constraints.lengths, "length",
        mutation_rate, rng, gaussian_share, sigma_fraction
    )
    op_log.extend(_mutate_slots(
        params.spacings, constraints.spacings, "spacing",
        mutation_rate, rng, gaussian_share, sigma_fraction
    ))

    if op_log:
        individual.outcome = None

    return op_log


def mutation_statistics(original: Individual, mutated: Individual) -> Dict:
    """
    Calculate statistics about a mutation.

    Args:
        original: Individual before mutation
        mutated: Individual after mutation

    Returns:
        Dictionary with changed gene counts and change rate
    """
    before = original.parameters
    after = mutated.parameters

    lengths_changed = sum(1 for a, b in zip(before.lengths, after.lengths) if a != b)
    spacings_changed = sum(1 for a, b in zip(before.spacings, after.spacings) if a != b)
    total = len(before.lengths) + len(before.spacings)

    return {
        "total_genes": total,
        "lengths_changed": lengths_changed,
        "spacings_changed": spacings_changed,
        "change_rate": (lengths_changed + spacings_changed) / max(total, 1),
    }
