"""
Orchestration module for the Yagi-Uda optimizer.

Drives the generation loop: initial population, elitism, selection,
crossover, mutation, batched evaluation, best-so-far tracking and early
stopping. Also provides the caller-facing entry points.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union
import asyncio
import logging
import time
import numpy as np

from .config import OptimizerConfig, create_rng
from .constraints import clamp_parameters, derive_constraints
from .crossover import uniform_crossover
from .data_models import (
    AntennaDesign,
    DesignParameters,
    GenerationRecord,
    Individual,
    OptimizationResult,
    ParameterConstraints,
)
from .evaluator_interface import AnalysisResult, PerformanceEvaluator, wait_for_evaluator
from .fitness import FitnessEvaluator, OptimizationGoal, ScoringWeights, goal_metric, materialize_design
from .mutation import mutate
from .population import Population
from .scheduler import BatchScheduler
from .selection import tournament_select

logger = logging.getLogger(__name__)


class BaselineEvaluationError(RuntimeError):
    """Raised when the unmodified baseline design cannot be analysed."""
    pass


class ControllerState(Enum):
    """Generational controller states."""
    INITIALIZING = "initializing"
    EVALUATING = "evaluating"
    SELECTING = "selecting"
    TERMINATED = "terminated"


TERMINATION_MAX_GENERATIONS = "max_generations"
TERMINATION_EARLY_CONVERGENCE = "early_convergence"


class GenerationalController:
    """
    Runs one genetic algorithm optimization.

    A controller is single-use: call run() once and take the returned result.
    """

    def __init__(
        self,
        baseline: AntennaDesign,
        goal: Union[OptimizationGoal, str],
        evaluator: PerformanceEvaluator,
        config: Optional[OptimizerConfig] = None,
        rng: Optional[np.random.Generator] = None
    ):
        """
        Initialize controller.

        Args:
            baseline: Baseline design to improve
            goal: Optimization goal (enum or its string value)
            evaluator: External performance evaluator
            config: GA settings (defaults if None)
            rng: Random number generator (built from config.random_seed if None)

        Raises:
            ConfigValidationError: If the config is invalid
            ValueError: If the goal is unknown
        """
        self.config = config or OptimizerConfig()
        self.config.validate()

        self.baseline = baseline.copy()
        self.goal = OptimizationGoal(goal)
        self.rng = rng if rng is not None else create_rng(self.config.random_seed)

        self.fitness_evaluator = FitnessEvaluator(
            self.baseline, self.goal, evaluator, self.config.scoring
        )
        self.scheduler = BatchScheduler(
            self.fitness_evaluator,
            batch_size=self.config.batch_size,
            concurrent=self.config.concurrent_evaluation
        )

        self.state = ControllerState.INITIALIZING
        self.constraints: Optional[ParameterConstraints] = None
        self.population: Optional[Population] = None

    def _initial_population(self) -> Population:
        seed = None
        if self.config.seed_baseline:
            baseline_params = DesignParameters.from_design(self.baseline)
            seed = clamp_parameters(baseline_params, self.constraints)
            if seed != baseline_params:
                logger.warning(
                    "Baseline lies outside the derived ranges; seeding a clamped copy. "
                    "The result may score below the unmodified baseline."
                )
        return Population.initialize(
            self.constraints, self.config.population_size, self.rng, seed_parameters=seed
        )

    def _breed(self, population: Population) -> List[Individual]:
        """Build the next generation: elites first, then offspring."""
        cfg = self.config
        next_generation = population.elites(cfg.elitism)
        parents = population.individuals

        while len(next_generation) < cfg.population_size:
            parent_a = tournament_select(parents, self.rng, cfg.tournament_size)
            parent_b = tournament_select(parents, self.rng, cfg.tournament_size)

            child, _ = uniform_crossover(parent_a, parent_b, cfg.crossover_rate, self.rng)
            mutate(
                child, self.constraints, cfg.mutation_rate, self.rng,
                gaussian_share=cfg.gaussian_share,
                sigma_fraction=cfg.sigma_fraction
            )
            next_generation.append(child)

        return next_generation

    def _record(self, index: int, best: Individual) -> GenerationRecord:
        stats = self.population.statistics()
        return GenerationRecord(
            index=index,
            best_fitness=best.fitness,
            average_fitness=stats.average_fitness,
            valid_solution_count=stats.valid_count,
            implausible_count=stats.implausible_count,
            failure_count=stats.failure_count,
            population_best=stats.best_fitness
        )

    @staticmethod
    def _warn_unhealthy(record: GenerationRecord) -> None:
        if record.failure_count or record.implausible_count:
            logger.warning(
                "Generation %d: %d evaluation failures, %d implausible results",
                record.index, record.failure_count, record.implausible_count
            )

    async def _evaluate_population(self) -> None:
        self.state = ControllerState.EVALUATING
        await self.scheduler.evaluate(self.population.unevaluated())

    async def run(self) -> OptimizationResult:
        """
        Execute the optimization.

        Returns:
            OptimizationResult with the best parameters and per-generation history

        Raises:
            DesignPreconditionError: If the baseline cannot be optimized
            EvaluatorNotReadyError: If the evaluator never becomes ready
        """
        cfg = self.config
        start_time = time.time()

        self.state = ControllerState.INITIALIZING
        self.constraints = derive_constraints(self.baseline)

        logger.info(
            "Starting optimization: goal=%s population=%d generations=%d "
            "mutation=%.2f crossover=%.2f elitism=%d",
            self.goal.value, cfg.population_size, cfg.max_generations,
            cfg.mutation_rate, cfg.crossover_rate, cfg.elitism
        )

        await wait_for_evaluator(self.fitness_evaluator.evaluator, cfg.ready_timeout_s)

        self.population = self._initial_population()
        await self._evaluate_population()

        best = self.population.best().copy()
        history = [self._record(0, best)]
        logger.info("Initial best fitness: %.4f", best.fitness)
        self._warn_unhealthy(history[0])

        stagnant_generations = 0
        termination_reason = TERMINATION_MAX_GENERATIONS

        for gen in range(1, cfg.max_generations + 1):
            self.state = ControllerState.SELECTING
            self.population.replace(self._breed(self.population))

            await self._evaluate_population()

            candidate = self.population.best()
            if candidate.rank_key() > best.rank_key():
                best = candidate.copy()
                stagnant_generations = 0
            else:
                stagnant_generations += 1

            record = self._record(gen, best)
            history.append(record)

            logger.info(
                "Generation %d/%d: best=%.4f avg=%.4f valid=%d/%d stagnant=%d",
                gen, cfg.max_generations, record.best_fitness, record.average_fitness,
                record.valid_solution_count, len(self.population), stagnant_generations
            )
            self._warn_unhealthy(record)

            if (stagnant_generations >= cfg.max_stagnant_generations
                    and gen >= cfg.max_generations / 2):
                termination_reason = TERMINATION_EARLY_CONVERGENCE
                logger.info(
                    "No improvement for %d generations, stopping at generation %d",
                    stagnant_generations, gen
                )
                break

        self.state = ControllerState.TERMINATED
        logger.info(
            "Optimization finished in %.2f s: best fitness %.4f (%s)",
            time.time() - start_time, best.fitness, termination_reason
        )

        return OptimizationResult(
            best_parameters=best.parameters.copy(),
            best_fitness=best.fitness,
            history=history,
            termination_reason=termination_reason,
            evaluations=self.fitness_evaluator.evaluations
        )


async def optimize(
    baseline: AntennaDesign,
    goal: Union[OptimizationGoal, str],
    evaluator: PerformanceEvaluator,
    config: Optional[OptimizerConfig] = None,
    rng: Optional[np.random.Generator] = None
) -> OptimizationResult:
    """
    Optimize a baseline design against a goal.

    Args:
        baseline: Baseline design
        goal: "maxGain", "maxFBRatio", "minVSWR" or "balancedPerformance"
        evaluator: External performance evaluator
        config: GA settings
        rng: Random number generator for reproducible runs

    Returns:
        OptimizationResult
    """
    controller = GenerationalController(baseline, goal, evaluator, config, rng)
    return await controller.run()


def run_optimization(
    baseline: AntennaDesign,
    goal: Union[OptimizationGoal, str],
    evaluator: PerformanceEvaluator,
    config: Optional[OptimizerConfig] = None,
    rng: Optional[np.random.Generator] = None
) -> OptimizationResult:
    """Blocking wrapper around optimize() for code without an event loop."""
    return asyncio.run(optimize(baseline, goal, evaluator, config, rng))


@dataclass
class OptimizationReport:
    """
    Optimization result plus a before/after comparison.

    Attributes:
        result: Raw optimization result
        optimized_design: Baseline geometry with the best parameters applied
        baseline_analysis: Evaluator output for the unmodified baseline
        optimized_analysis: Evaluator output for the optimized design (None if it failed)
        improvement_percent: Change of the goal metric relative to the baseline
            (None if it cannot be computed)
    """
    result: OptimizationResult
    optimized_design: AntennaDesign
    baseline_analysis: AnalysisResult
    optimized_analysis: Optional[AnalysisResult]
    improvement_percent: Optional[float]


def improvement_percent(
    baseline: AnalysisResult,
    optimized: AnalysisResult,
    goal: OptimizationGoal,
    weights: Optional[ScoringWeights] = None
) -> Optional[float]:
    """
    Percentage change of the goal metric (gain, F/B, 1/VSWR, balanced).

    Args:
        baseline: Analysis of the unmodified design
        optimized: Analysis of the optimized design
        goal: Optimization goal
        weights: Scoring constants of the run (for the balanced metric)

    Returns:
        Improvement in percent, or None when the baseline metric is zero
    """
    original_value = goal_metric(baseline, goal, weights)
    optimized_value = goal_metric(optimized, goal, weights)
    if original_value == 0:
        return None
    return (optimized_value - original_value) / abs(original_value) * 100


async def improve_design(
    baseline: AntennaDesign,
    goal: Union[OptimizationGoal, str],
    evaluator: PerformanceEvaluator,
    config: Optional[OptimizerConfig] = None,
    rng: Optional[np.random.Generator] = None
) -> OptimizationReport:
    """
    Optimize a design and compare the result with the baseline.

    Args:
        baseline: Baseline design
        goal: Optimization goal
        evaluator: External performance evaluator
        config: GA settings
        rng: Random number generator

    Returns:
        OptimizationReport

    Raises:
        BaselineEvaluationError: If the baseline itself cannot be analysed
        DesignPreconditionError: If the baseline cannot be optimized
        EvaluatorNotReadyError: If the evaluator never becomes ready
    """
    controller = GenerationalController(baseline, goal, evaluator, config, rng)
    fitness_evaluator = controller.fitness_evaluator

    derive_constraints(controller.baseline)
    await wait_for_evaluator(evaluator, controller.config.ready_timeout_s)

    try:
        baseline_analysis = await fitness_evaluator.analyze(controller.baseline)
    except Exception as e:
        raise BaselineEvaluationError(
            f"Failed to establish baseline performance: {e}"
        ) from e

    result = await controller.run()

    optimized_design = materialize_design(controller.baseline, result.best_parameters)
    try:
        optimized_analysis = await fitness_evaluator.analyze(optimized_design)
    except Exception as e:
        logger.warning("Could not analyse optimized design: %s", e)
        optimized_analysis = None

    improvement = None
    if optimized_analysis is not None:
        improvement = improvement_percent(
            baseline_analysis, optimized_analysis, controller.goal, controller.config.scoring
        )

    return OptimizationReport(
        result=result,
        optimized_design=optimized_design,
        baseline_analysis=baseline_analysis,
        optimized_analysis=optimized_analysis,
        improvement_percent=improvement
    )
