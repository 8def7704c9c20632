"""
Performance evaluator interface for the Yagi-Uda optimizer.

The electromagnetic solver is an external collaborator reachable only through
asynchronous calls. This module defines that boundary, the parsed analysis
result, and a bounded readiness wait.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping
import asyncio
import logging

logger = logging.getLogger(__name__)


class EvaluatorNotReadyError(RuntimeError):
    """Raised when the evaluator does not become ready within the timeout."""
    pass


class MalformedResponseError(ValueError):
    """Raised when an analysis response is missing fields or is not numeric."""
    pass


@dataclass(frozen=True)
class AnalysisResult:
    """
    Parsed output of one analysis run.

    Attributes:
        gain: Forward gain (dBi)
        front_to_back_ratio: Front-to-back ratio (dB)
        resistance: Feed-point resistance (ohm)
        reactance: Feed-point reactance (ohm)
    """
    gain: float
    front_to_back_ratio: float
    resistance: float
    reactance: float


class PerformanceEvaluator(ABC):
    """
    Asynchronous electromagnetic evaluator.

    Implementations hold one mutable simulation context: the geometry and
    frequency last configured. Each analysis is a full configure-then-run
    cycle: reset, add elements, add the feed point, set the frequency, run.

    Set ``supports_concurrent_sessions`` to True only when independent calls
    never share that context (e.g. one solver instance per call).
    """

    supports_concurrent_sessions = False

    async def wait_ready(self) -> None:
        """Complete once the evaluator can accept work. Ready by default."""
        return None

    @abstractmethod
    async def reset(self) -> None:
        """Clear the configured geometry."""

    @abstractmethod
    async def add_element(
        self,
        position: float,
        half_length: float,
        radius: float,
        segment_count: int
    ) -> None:
        """Add one straight wire element centered on the boom."""

    @abstractmethod
    async def add_feed_point(self, element_index: int, segment_index: int) -> None:
        """Place the voltage source on an element segment."""

    @abstractmethod
    async def set_frequency(self, mhz: float) -> None:
        """Set the analysis frequency."""

    @abstractmethod
    async def run_analysis(self) -> Any:
        """
        Run the analysis on the configured geometry.

        Returns:
            Mapping with ``gain``, ``front_to_back_ratio`` and
            ``impedance: {resistance, reactance}``, or an AnalysisResult
        """


async def wait_for_evaluator(evaluator: PerformanceEvaluator, timeout_s: float) -> None:
    """
    Wait for the evaluator to become ready.

    Args:
        evaluator: Evaluator to wait for
        timeout_s: Maximum wait in seconds

    Raises:
        EvaluatorNotReadyError: On timeout or if the readiness check fails
    """
    try:
        await asyncio.wait_for(evaluator.wait_ready(), timeout=timeout_s)
    except asyncio.TimeoutError:
        raise EvaluatorNotReadyError(
            f"Performance evaluator not ready after {timeout_s:.1f} s"
        ) from None
    except Exception as e:
        raise EvaluatorNotReadyError(f"Performance evaluator failed to initialize: {e}") from e

    logger.debug("Performance evaluator ready")


def _number(data: Mapping, *keys: str) -> float:
    for key in keys:
        if key in data:
            value = data[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise MalformedResponseError(f"Field '{key}' is not numeric: {value!r}")
            return float(value)
    raise MalformedResponseError(f"Missing field '{keys[0]}' in analysis response")


def parse_analysis(response: Any) -> AnalysisResult:
    """
    Convert a raw evaluator response into an AnalysisResult.

    Accepts ``fbRatio`` for ``front_to_back_ratio`` and ``r``/``x`` for
    ``resistance``/``reactance``. Values are not range-checked here; NaN and
    infinities pass through to the plausibility gate.

    Args:
        response: Raw response from run_analysis()

    Returns:
        AnalysisResult

    Raises:
        MalformedResponseError: If fields are missing or not numeric
    """
    if isinstance(response, AnalysisResult):
        return response

    if not isinstance(response, Mapping):
        raise MalformedResponseError(
            f"Analysis response must be a mapping, got {type(response).__name__}"
        )

    impedance = response.get("impedance")
    if not isinstance(impedance, Mapping):
        raise MalformedResponseError("Missing or invalid 'impedance' in analysis response")

    return AnalysisResult(
        gain=_number(response, "gain", "gain_dbi"),
        front_to_back_ratio=_number(response, "front_to_back_ratio", "fbRatio", "frontToBackRatio"),
        resistance=_number(impedance, "resistance", "r"),
        reactance=_number(impedance, "reactance", "x"),
    )
