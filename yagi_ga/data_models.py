"""
Data models for the Yagi-Uda optimizer.

Core data structures representing antenna designs, parameter vectors,
constraints, individuals, and generation records.
"""

from dataclasses import dataclass, field
from typing import Optional, List, TYPE_CHECKING
import math

if TYPE_CHECKING:
    from .fitness import FitnessOutcome


# Speed of light in mm/s
SPEED_OF_LIGHT_MM = 299792458 * 1000


@dataclass
class Element:
    """
    One conductor of the antenna.

    Attributes:
        type: Element role ("reflector", "driven" or "director")
        length: Total element length (mm)
        position: Position along the boom (mm)
        diameter: Conductor diameter (mm)
    """
    type: str
    length: float
    position: float
    diameter: float = 10.0

    def copy(self) -> "Element":
        return Element(
            type=self.type,
            length=self.length,
            position=self.position,
            diameter=self.diameter
        )


@dataclass
class AntennaDesign:
    """
    A complete wire-geometry design handed to the performance evaluator.

    Attributes:
        center_frequency_mhz: Operating (center) frequency in MHz
        elements: Elements in boom order
        boom_diameter: Boom diameter (mm)
    """
    center_frequency_mhz: float
    elements: List[Element] = field(default_factory=list)
    boom_diameter: float = 20.0

    def wavelength(self) -> float:
        """
        Get the wavelength at the center frequency.

        Returns:
            Wavelength in mm
        """
        return SPEED_OF_LIGHT_MM / (self.center_frequency_mhz * 1e6)

    def driven_element_index(self) -> int:
        """
        Get the index of the driven element.

        Returns:
            Index of the first driven element, or -1 if there is none
        """
        for idx, element in enumerate(self.elements):
            if element.type == "driven":
                return idx
        return -1

    def copy(self) -> "AntennaDesign":
        """
        Create a deep copy of this design.

        Returns:
            New AntennaDesign with copied elements
        """
        return AntennaDesign(
            center_frequency_mhz=self.center_frequency_mhz,
            elements=[element.copy() for element in self.elements],
            boom_diameter=self.boom_diameter
        )


@dataclass
class DesignParameters:
    """
    The design parameter vector explored by the optimizer.

    Attributes:
        lengths: One length per element (mm)
        spacings: Gap between consecutive elements along the boom (mm)
    """
    lengths: List[float]
    spacings: List[float]

    def __post_init__(self):
        """Validate vector shape."""
        if len(self.lengths) < 1:
            raise ValueError("DesignParameters must contain at least one length")
        if len(self.spacings) != len(self.lengths) - 1:
            raise ValueError(
                f"Expected {len(self.lengths) - 1} spacings for "
                f"{len(self.lengths)} lengths, got {len(self.spacings)}"
            )

    @property
    def element_count(self) -> int:
        return len(self.lengths)

    def genes(self) -> List[float]:
        """All parameters in order: lengths first, then spacings."""
        return list(self.lengths) + list(self.spacings)

    def is_finite(self) -> bool:
        return all(math.isfinite(value) for value in self.genes())

    def copy(self) -> "DesignParameters":
        return DesignParameters(lengths=list(self.lengths), spacings=list(self.spacings))

    @classmethod
    def from_design(cls, design: AntennaDesign) -> "DesignParameters":
        """
        Extract the parameter vector of an existing design.

        Args:
            design: Design to read lengths and positions from

        Returns:
            DesignParameters with element lengths and adjacent spacings
        """
        elements = design.elements
        lengths = [element.length for element in elements]
        spacings = [
            elements[i].position - elements[i - 1].position
            for i in range(1, len(elements))
        ]
        return cls(lengths=lengths, spacings=spacings)


@dataclass
class Constraint:
    """Valid range of one parameter slot."""
    min: float
    max: float
    current: float

    def __post_init__(self):
        if self.min > self.max:
            raise ValueError(f"Constraint min ({self.min}) exceeds max ({self.max})")

    def span(self) -> float:
        return self.max - self.min

    def clamp(self, value: float) -> float:
        return min(self.max, max(self.min, value))

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max


@dataclass
class ParameterConstraints:
    """
    Per-slot constraints for a design parameter vector.

    Attributes:
        lengths: One constraint per element length
        spacings: One constraint per adjacent-element spacing
        wavelength: Wavelength (mm) the ranges were derived from
    """
    lengths: List[Constraint]
    spacings: List[Constraint]
    wavelength: float = 0.0

    def contains(self, parameters: DesignParameters) -> bool:
        """Check that every parameter lies inside its range (inclusive)."""
        if len(parameters.lengths) != len(self.lengths):
            return False
        if len(parameters.spacings) != len(self.spacings):
            return False
        pairs = list(zip(parameters.lengths, self.lengths)) + list(zip(parameters.spacings, self.spacings))
        return all(constraint.contains(value) for value, constraint in pairs)


@dataclass
class Individual:
    """
    One candidate parameter vector plus its evaluated fitness.

    Attributes:
        parameters: Design parameter vector
        outcome: Fitness outcome from the adapter; None while unevaluated
    """
    parameters: DesignParameters
    outcome: Optional["FitnessOutcome"] = None

    @property
    def is_evaluated(self) -> bool:
        return self.outcome is not None

    @property
    def fitness(self) -> float:
        """
        Numeric fitness for reporting.

        Raises:
            ValueError: If the individual has not been evaluated yet
        """
        if self.outcome is None:
            raise ValueError("Individual has not been evaluated")
        return self.outcome.fitness

    def rank_key(self):
        """Ordering key; unevaluated individuals rank below everything."""
        if self.outcome is None:
            return (-1, float("-inf"))
        return self.outcome.rank_key()

    def copy(self) -> "Individual":
        """
        Value copy of this individual, keeping its cached outcome.

        Returns:
            New Individual with copied parameters
        """
        return Individual(parameters=self.parameters.copy(), outcome=self.outcome)


@dataclass(frozen=True)
class GenerationRecord:
    """
    Statistics of one generation; immutable once appended to the history.

    Attributes:
        index: Generation number (0 = initial population)
        best_fitness: Best fitness found so far (running best)
        average_fitness: Mean fitness over valid individuals (0 if none)
        valid_solution_count: Individuals with a successfully scored outcome
        implausible_count: Individuals rejected by the plausibility gate
        failure_count: Individuals whose evaluation failed
        population_best: Best fitness within this generation only
    """
    index: int
    best_fitness: float
    average_fitness: float
    valid_solution_count: int
    implausible_count: int = 0
    failure_count: int = 0
    population_best: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "best_fitness": self.best_fitness,
            "average_fitness": self.average_fitness,
            "valid_solution_count": self.valid_solution_count,
            "implausible_count": self.implausible_count,
            "failure_count": self.failure_count,
            "population_best": "" if self.population_best is None else self.population_best,
        }


@dataclass
class OptimizationResult:
    """
    Outcome of an optimization run, owned by the caller.

    Attributes:
        best_parameters: Best parameter vector found
        best_fitness: Its fitness
        history: One record per generation, generation 0 first
        termination_reason: "max_generations" or "early_convergence"
        evaluations: Number of fitness evaluations performed
    """
    best_parameters: DesignParameters
    best_fitness: float
    history: List[GenerationRecord] = field(default_factory=list)
    termination_reason: str = "max_generations"
    evaluations: int = 0

    @property
    def generations_completed(self) -> int:
        """Index of the last generation evaluated."""
        return self.history[-1].index if self.history else 0
