"""
Fitness evaluation for the Yagi-Uda optimizer.

Turns a parameter vector into a geometry, runs it through the external
performance evaluator, and scores the analysis against the optimization goal.

Outcomes are tagged:
- OK: a scored design
- IMPLAUSIBLE: the evaluator answered, but with physically nonsensical output
- EVALUATION_FAILURE: the evaluator raised or returned a malformed response

Failed and implausible outcomes still carry a numeric sentinel for reporting,
but ranking uses the tag first so aggregation never depends on thresholds.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
import asyncio
import logging
import math

from .data_models import AntennaDesign, DesignParameters
from .evaluator_interface import AnalysisResult, PerformanceEvaluator, parse_analysis

logger = logging.getLogger(__name__)


REFERENCE_IMPEDANCE = 50.0
MAX_VSWR = 999.0

IMPLAUSIBLE_FITNESS = -5.0
EVALUATION_FAILURE_FITNESS = -10.0


class OptimizationGoal(Enum):
    """Optimization goals."""
    MAX_GAIN = "maxGain"
    MAX_FB_RATIO = "maxFBRatio"
    MIN_VSWR = "minVSWR"
    BALANCED = "balancedPerformance"


class FitnessStatus(Enum):
    """Tag of a fitness outcome."""
    OK = "ok"
    IMPLAUSIBLE = "implausible"
    EVALUATION_FAILURE = "evaluation_failure"


# Higher tier always ranks above a lower one
_STATUS_TIER = {
    FitnessStatus.OK: 2,
    FitnessStatus.IMPLAUSIBLE: 1,
    FitnessStatus.EVALUATION_FAILURE: 0,
}


@dataclass(frozen=True)
class FitnessOutcome:
    """
    Result of scoring one parameter vector.

    Attributes:
        status: Outcome tag
        value: Goal score (only meaningful when status is OK)
        analysis: Parsed analysis, when the evaluator answered
        vswr: VSWR derived from the analysis impedance, when available
        message: Reason for a non-OK outcome
    """
    status: FitnessStatus
    value: float = 0.0
    analysis: Optional[AnalysisResult] = None
    vswr: Optional[float] = None
    message: str = ""

    @classmethod
    def ok(cls, value: float, analysis: AnalysisResult, vswr: float) -> "FitnessOutcome":
        return cls(FitnessStatus.OK, value, analysis, vswr)

    @classmethod
    def implausible(cls, message: str, analysis: Optional[AnalysisResult] = None,
                    vswr: Optional[float] = None) -> "FitnessOutcome":
        return cls(FitnessStatus.IMPLAUSIBLE, IMPLAUSIBLE_FITNESS, analysis, vswr, message)

    @classmethod
    def failure(cls, message: str) -> "FitnessOutcome":
        return cls(FitnessStatus.EVALUATION_FAILURE, EVALUATION_FAILURE_FITNESS, message=message)

    @property
    def is_valid(self) -> bool:
        return self.status is FitnessStatus.OK

    @property
    def fitness(self) -> float:
        """Numeric fitness; the sentinel for non-OK outcomes. Always finite."""
        if self.status is FitnessStatus.OK:
            return self.value
        if self.status is FitnessStatus.IMPLAUSIBLE:
            return IMPLAUSIBLE_FITNESS
        return EVALUATION_FAILURE_FITNESS

    def rank_key(self) -> Tuple[int, float]:
        return (_STATUS_TIER[self.status], self.fitness)


@dataclass
class ScoringWeights:
    """
    Tunable constants of the goal scoring.

    Bonus multipliers and their thresholds are kept here rather than inline
    so runs can disable or retune them.
    """
    # Plausibility gate
    max_plausible_vswr: float = 10.0
    min_plausible_gain: float = -20.0

    # maxGain
    gain_bonus: float = 1.1
    gain_bonus_max_vswr: float = 2.0

    # maxFBRatio
    fb_bonus: float = 1.1
    fb_bonus_min_fb: float = 10.0
    fb_bonus_min_gain: float = 5.0
    fb_bonus_max_vswr: float = 2.5

    # minVSWR
    vswr_numerator: float = 15.0
    vswr_offset: float = 0.2
    vswr_bonus: float = 1.15
    vswr_bonus_max_vswr: float = 1.5

    # balancedPerformance
    balanced_gain_ref: float = 15.0
    balanced_fb_ref: float = 20.0
    balanced_vswr_ref: float = 3.0
    balanced_gain_weight: float = 0.4
    balanced_fb_weight: float = 0.4
    balanced_vswr_weight: float = 0.2
    balanced_scale: float = 10.0

    @classmethod
    def from_dict(cls, data: dict) -> "ScoringWeights":
        """
        Build weights from a configuration mapping.

        Raises:
            ValueError: On unknown keys or non-numeric values
        """
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown scoring keys: {sorted(unknown)}")
        for key, value in data.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"Scoring value '{key}' must be numeric, got: {value!r}")
        weights = cls(**{key: float(value) for key, value in data.items()})
        weights.validate()
        return weights

    def validate(self) -> None:
        """
        Check that every constant keeps the scoring formulas defined.

        Raises:
            ValueError: If a reference or scale is not positive, or a weight,
                bonus or VSWR offset is negative
        """
        for name, value in vars(self).items():
            if not math.isfinite(value):
                raise ValueError(f"Scoring value '{name}' must be finite, got: {value}")

        for name in ("balanced_gain_ref", "balanced_fb_ref", "balanced_vswr_ref",
                     "balanced_scale", "vswr_numerator"):
            if getattr(self, name) <= 0:
                raise ValueError(f"Scoring value '{name}' must be positive, got: {getattr(self, name)}")

        for name in ("gain_bonus", "fb_bonus", "vswr_bonus", "vswr_offset",
                     "balanced_gain_weight", "balanced_fb_weight", "balanced_vswr_weight"):
            if getattr(self, name) < 0:
                raise ValueError(f"Scoring value '{name}' must not be negative, got: {getattr(self, name)}")


def compute_vswr(resistance: float, reactance: float, z0: float = REFERENCE_IMPEDANCE) -> float:
    """
    Compute VSWR of a complex load against a real reference impedance.

    Args:
        resistance: Load resistance (ohm)
        reactance: Load reactance (ohm)
        z0: Reference impedance (ohm)

    Returns:
        VSWR, clamped to MAX_VSWR as the reflection coefficient approaches 1
    """
    numerator = math.sqrt((resistance - z0) ** 2 + reactance ** 2)
    denominator = math.sqrt((resistance + z0) ** 2 + reactance ** 2)

    if denominator == 0:
        return MAX_VSWR

    gamma = numerator / denominator
    if not math.isfinite(gamma) or gamma >= 1.0:
        return MAX_VSWR

    vswr = (1 + gamma) / (1 - gamma)
    return min(vswr, MAX_VSWR)


def balanced_metric(gain: float, fb_ratio: float, vswr: float,
                    weights: Optional[ScoringWeights] = None) -> float:
    """
    Blend gain, F/B ratio and VSWR into a single 0-10 score.

    Gain and F/B are clipped into [0, reference] and normalized. VSWR is
    measured by its excess over 1, clipped into [0, reference] and inverted.
    """
    w = weights or ScoringWeights()

    gain_norm = min(w.balanced_gain_ref, max(0.0, gain)) / w.balanced_gain_ref
    fb_norm = min(w.balanced_fb_ref, max(0.0, fb_ratio)) / w.balanced_fb_ref
    vswr_norm = min(w.balanced_vswr_ref, max(1.0, vswr) - 1.0) / w.balanced_vswr_ref

    return (
        w.balanced_gain_weight * gain_norm
        + w.balanced_fb_weight * fb_norm
        + w.balanced_vswr_weight * (1.0 - vswr_norm)
    ) * w.balanced_scale


def score_analysis(
    analysis: AnalysisResult,
    goal: OptimizationGoal,
    weights: Optional[ScoringWeights] = None
) -> FitnessOutcome:
    """
    Apply the plausibility gate and the goal-specific scoring.

    Args:
        analysis: Parsed evaluator output
        goal: Optimization goal
        weights: Scoring constants (defaults if None)

    Returns:
        OK outcome with the goal score, or an IMPLAUSIBLE outcome
    """
    w = weights or ScoringWeights()

    values = (analysis.gain, analysis.front_to_back_ratio, analysis.resistance, analysis.reactance)
    if not all(math.isfinite(v) for v in values):
        return FitnessOutcome.implausible("non-finite evaluator output", analysis)

    vswr = compute_vswr(analysis.resistance, analysis.reactance)
    gain = analysis.gain
    fb_ratio = analysis.front_to_back_ratio

    if vswr > w.max_plausible_vswr or gain < w.min_plausible_gain:
        return FitnessOutcome.implausible(
            f"unrealistic output (gain {gain:.2f} dBi, VSWR {vswr:.2f})", analysis, vswr
        )

    if goal is OptimizationGoal.MAX_GAIN:
        fitness = gain
        if gain > 0 and vswr < w.gain_bonus_max_vswr:
            fitness *= w.gain_bonus

    elif goal is OptimizationGoal.MAX_FB_RATIO:
        fitness = fb_ratio
        if fb_ratio > w.fb_bonus_min_fb and gain > w.fb_bonus_min_gain and vswr < w.fb_bonus_max_vswr:
            fitness *= w.fb_bonus

    elif goal is OptimizationGoal.MIN_VSWR:
        fitness = w.vswr_numerator / (vswr + w.vswr_offset)
        if vswr < w.vswr_bonus_max_vswr and gain > 0:
            fitness *= w.vswr_bonus

    elif goal is OptimizationGoal.BALANCED:
        fitness = balanced_metric(gain, fb_ratio, vswr, w)

    else:
        raise ValueError(f"Unknown optimization goal: {goal}")

    if not math.isfinite(fitness):
        return FitnessOutcome.implausible("non-finite score", analysis, vswr)

    return FitnessOutcome.ok(fitness, analysis, vswr)


def goal_metric(analysis: AnalysisResult, goal: OptimizationGoal,
                weights: Optional[ScoringWeights] = None) -> float:
    """
    Raw performance figure a goal is judged by (no bonuses).

    Used for improvement reporting: gain, F/B ratio, 1/VSWR, or the balanced
    metric.
    """
    vswr = compute_vswr(analysis.resistance, analysis.reactance)
    if goal is OptimizationGoal.MAX_GAIN:
        return analysis.gain
    if goal is OptimizationGoal.MAX_FB_RATIO:
        return analysis.front_to_back_ratio
    if goal is OptimizationGoal.MIN_VSWR:
        return 1.0 / vswr
    return balanced_metric(analysis.gain, analysis.front_to_back_ratio, vswr, weights)


def segment_count(length: float) -> int:
    """Number of wire segments for an element: one per 100 mm, at least 3."""
    return max(3, int(math.floor(length / 100)))


def materialize_design(baseline: AntennaDesign, parameters: DesignParameters) -> AntennaDesign:
    """
    Build a full geometry from a parameter vector.

    The baseline is copied; lengths are overwritten and positions rebuilt as
    the first element's fixed position plus cumulative spacings.

    Args:
        baseline: Baseline design
        parameters: Parameter vector of matching shape

    Returns:
        New AntennaDesign

    Raises:
        ValueError: If the vector does not match the baseline's element count
    """
    if parameters.element_count != len(baseline.elements):
        raise ValueError(
            f"Parameter vector has {parameters.element_count} lengths, "
            f"design has {len(baseline.elements)} elements"
        )

    design = baseline.copy()
    first_position = design.elements[0].position
    position = first_position

    for idx, element in enumerate(design.elements):
        element.length = parameters.lengths[idx]
        if idx > 0:
            position += parameters.spacings[idx - 1]
            element.position = position

    return design


class FitnessEvaluator:
    """
    Adapter between parameter vectors and the external performance evaluator.

    Evaluation is total: every call returns a FitnessOutcome and never raises
    for evaluator problems.
    """

    def __init__(
        self,
        baseline: AntennaDesign,
        goal: OptimizationGoal,
        evaluator: PerformanceEvaluator,
        weights: Optional[ScoringWeights] = None
    ):
        """
        Initialize the adapter.

        Args:
            baseline: Baseline design providing everything but lengths/positions
            goal: Optimization goal
            evaluator: External performance evaluator
            weights: Scoring constants
        """
        self.baseline = baseline.copy()
        self.goal = OptimizationGoal(goal)
        self.evaluator = evaluator
        self.weights = weights or ScoringWeights()
        self.weights.validate()
        self.evaluations = 0

        # The evaluator holds one simulation context unless it says otherwise
        self._context_lock = asyncio.Lock()

    @property
    def supports_concurrency(self) -> bool:
        return bool(getattr(self.evaluator, "supports_concurrent_sessions", False))

    async def analyze(self, design: AntennaDesign) -> AnalysisResult:
        """
        Run one configure-then-analyse cycle on the evaluator.

        Args:
            design: Geometry to analyse

        Returns:
            Parsed AnalysisResult

        Raises:
            Any evaluator error, or MalformedResponseError
        """
        if self.supports_concurrency:
            return await self._run_cycle(design)
        async with self._context_lock:
            return await self._run_cycle(design)

    async def _run_cycle(self, design: AntennaDesign) -> AnalysisResult:
        evaluator = self.evaluator
        await evaluator.reset()

        for element in design.elements:
            await evaluator.add_element(
                element.position,
                element.length / 2,
                element.diameter / 2,
                segment_count(element.length)
            )

        driven_index = design.driven_element_index()
        if driven_index == -1:
            raise ValueError("Design has no driven element to feed")
        driven_segments = segment_count(design.elements[driven_index].length)
        await evaluator.add_feed_point(driven_index, driven_segments // 2)

        await evaluator.set_frequency(design.center_frequency_mhz)
        response = await evaluator.run_analysis()
        return parse_analysis(response)

    async def evaluate(self, parameters: DesignParameters) -> FitnessOutcome:
        """
        Score one parameter vector.

        Args:
            parameters: Parameter vector

        Returns:
            FitnessOutcome (never raises for evaluator problems)
        """
        self.evaluations += 1

        try:
            if not parameters.is_finite():
                raise ValueError("parameter vector contains non-finite values")
            design = materialize_design(self.baseline, parameters)
            analysis = await self.analyze(design)
            outcome = score_analysis(analysis, self.goal, self.weights)
        except Exception as e:
            logger.debug("Evaluation failed: %s", e)
            return FitnessOutcome.failure(f"{type(e).__name__}: {e}")

        if not outcome.is_valid:
            logger.debug("Implausible evaluator output: %s", outcome.message)
        return outcome

    async def evaluate_fitness(self, parameters: DesignParameters) -> float:
        """Score one parameter vector and return the numeric fitness."""
        outcome = await self.evaluate(parameters)
        return outcome.fitness
