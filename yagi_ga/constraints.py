"""
Constraint derivation for the Yagi-Uda optimizer.

Computes per-parameter valid ranges from a baseline design. All ranges are
fractions of the operating wavelength.
"""

from typing import Dict, Tuple
import logging
import math

from .data_models import AntennaDesign, Constraint, DesignParameters, ParameterConstraints

logger = logging.getLogger(__name__)


class DesignPreconditionError(ValueError):
    """Raised when a baseline design cannot be optimized."""
    pass


# Length range per element role, as fractions of the wavelength
LENGTH_RATIOS: Dict[str, Tuple[float, float]] = {
    "reflector": (0.48, 0.55),
    "driven": (0.44, 0.51),
    "director": (0.38, 0.48),
}
DEFAULT_LENGTH_RATIO = (0.40, 0.50)

# Spacing between adjacent elements, independent of role
SPACING_RATIO = (0.10, 0.40)


def validate_baseline(design: AntennaDesign) -> None:
    """
    Check the preconditions for optimizing a baseline design.

    Args:
        design: Baseline design

    Raises:
        DesignPreconditionError: If the design has fewer than 2 elements,
            no driven element, or an unusable center frequency
    """
    freq = design.center_frequency_mhz
    if not isinstance(freq, (int, float)) or not math.isfinite(freq) or freq <= 0:
        raise DesignPreconditionError(f"Center frequency must be a positive number, got: {freq}")

    if len(design.elements) < 2:
        raise DesignPreconditionError(
            f"Baseline design needs at least 2 elements, got {len(design.elements)}"
        )

    if design.driven_element_index() == -1:
        raise DesignPreconditionError("Baseline design has no driven element")


def derive_constraints(design: AntennaDesign) -> ParameterConstraints:
    """
    Derive length and spacing constraints from a baseline design.

    Element i gets a length constraint chosen by its role. Every element after
    the first also gets a spacing constraint for the gap to its predecessor.

    Args:
        design: Baseline design

    Returns:
        ParameterConstraints with absolute ranges (mm)

    Raises:
        DesignPreconditionError: If the baseline fails validation
    """
    validate_baseline(design)

    wavelength = design.wavelength()
    elements = design.elements

    length_constraints = []
    for element in elements:
        min_ratio, max_ratio = LENGTH_RATIOS.get(element.type, DEFAULT_LENGTH_RATIO)
        length_constraints.append(
            Constraint(
                min=min_ratio * wavelength,
                max=max_ratio * wavelength,
                current=element.length
            )
        )

    spacing_constraints = []
    for i in range(1, len(elements)):
        spacing_constraints.append(
            Constraint(
                min=SPACING_RATIO[0] * wavelength,
                max=SPACING_RATIO[1] * wavelength,
                current=elements[i].position - elements[i - 1].position
            )
        )

    logger.debug(
        "Derived %d length and %d spacing constraints (wavelength %.1f mm)",
        len(length_constraints), len(spacing_constraints), wavelength
    )

    return ParameterConstraints(
        lengths=length_constraints,
        spacings=spacing_constraints,
        wavelength=wavelength
    )


def clamp_parameters(
    parameters: DesignParameters,
    constraints: ParameterConstraints
) -> DesignParameters:
    """
    Clamp every parameter into its constraint range.

    Args:
        parameters: Parameter vector (not modified)
        constraints: Constraints of matching shape

    Returns:
        New DesignParameters inside the ranges
    """
    return DesignParameters(
        lengths=[c.clamp(v) for v, c in zip(parameters.lengths, constraints.lengths)],
        spacings=[c.clamp(v) for v, c in zip(parameters.spacings, constraints.spacings)]
    )
