"""
Tests for the generational controller and the caller-facing entry points.
"""

import math
import unittest
import numpy as np

from yagi_ga.config import ConfigValidationError, OptimizerConfig
from yagi_ga.constraints import DesignPreconditionError, derive_constraints
from yagi_ga.data_models import AntennaDesign, DesignParameters, Element
from yagi_ga.evaluator_interface import AnalysisResult, EvaluatorNotReadyError
from yagi_ga.fitness import FitnessEvaluator, OptimizationGoal, ScoringWeights
from yagi_ga.orchestration import (
    BaselineEvaluationError,
    ControllerState,
    GenerationalController,
    improve_design,
    improvement_percent,
    optimize,
    run_optimization,
)

from evaluator_fakes import (
    ScriptedEvaluator,
    SlowStartEvaluator,
    ToyYagiEvaluator,
    gain_response,
    nan_response,
    three_element_2m_design,
)


def rising_then_flat(last_rising_call):
    """Gain grows with every call up to ``last_rising_call``, then drops to 0."""
    def script(i):
        if i <= last_rising_call:
            return gain_response(1.0 + 0.01 * i)
        return gain_response(0.0)
    return script


class TestEndToEnd(unittest.IsolatedAsyncioTestCase):
    """Test complete optimization runs."""

    def setUp(self):
        self.design = three_element_2m_design()

    async def _baseline_fitness(self, goal):
        adapter = FitnessEvaluator(self.design, goal, ToyYagiEvaluator())
        return await adapter.evaluate_fitness(DesignParameters.from_design(self.design))

    async def test_three_element_run_never_worse_than_baseline(self):
        config = OptimizerConfig(population_size=30, max_generations=20, elitism=2, random_seed=2024)

        result = await optimize(self.design, "maxGain", ToyYagiEvaluator(), config)

        baseline_fitness = await self._baseline_fitness(OptimizationGoal.MAX_GAIN)
        self.assertGreaterEqual(result.best_fitness, baseline_fitness)
        self.assertTrue(derive_constraints(self.design).contains(result.best_parameters))

    async def test_history_is_monotonic_and_indexed(self):
        config = OptimizerConfig(population_size=20, max_generations=12, random_seed=5)

        result = await optimize(self.design, OptimizationGoal.BALANCED, ToyYagiEvaluator(), config)

        history = result.history
        self.assertEqual(len(history), result.generations_completed + 1)
        self.assertEqual([r.index for r in history], list(range(len(history))))
        for previous, current in zip(history, history[1:]):
            self.assertGreaterEqual(current.best_fitness, previous.best_fitness)
        self.assertEqual(history[-1].best_fitness, result.best_fitness)

    async def test_every_goal_runs(self):
        config = OptimizerConfig(population_size=8, max_generations=3, random_seed=1)
        for goal in OptimizationGoal:
            result = await optimize(self.design, goal, ToyYagiEvaluator(), config)
            self.assertTrue(math.isfinite(result.best_fitness))
            self.assertGreaterEqual(result.best_fitness, await self._baseline_fitness(goal))

    async def test_elites_not_reevaluated(self):
        config = OptimizerConfig(population_size=10, max_generations=4, elitism=3,
                                 max_stagnant_generations=10, random_seed=3)

        result = await optimize(self.design, "maxGain", ToyYagiEvaluator(), config)

        self.assertEqual(result.termination_reason, "max_generations")
        self.assertEqual(result.evaluations, 10 + 4 * (10 - 3))

    async def test_same_seed_same_result(self):
        config = OptimizerConfig(population_size=10, max_generations=5, random_seed=77)

        first = await optimize(self.design, "maxFBRatio", ToyYagiEvaluator(), config)
        second = await optimize(self.design, "maxFBRatio", ToyYagiEvaluator(), config)

        self.assertEqual(first.best_parameters, second.best_parameters)
        self.assertEqual(first.best_fitness, second.best_fitness)

    async def test_injected_rng_used(self):
        config = OptimizerConfig(population_size=10, max_generations=3)

        first = await optimize(self.design, "minVSWR", ToyYagiEvaluator(), config,
                               rng=np.random.default_rng(8))
        second = await optimize(self.design, "minVSWR", ToyYagiEvaluator(), config,
                                rng=np.random.default_rng(8))

        self.assertEqual(first.best_parameters, second.best_parameters)


class TestEarlyStopping(unittest.IsolatedAsyncioTestCase):
    """Test stagnation-based termination."""

    def setUp(self):
        self.design = three_element_2m_design()

    async def test_stops_five_generations_after_last_improvement(self):
        # Generation 0 uses calls 0-29, generation g uses 30 + 28 * (g - 1) onwards,
        # so call 309 is the last one of generation 10.
        evaluator = ScriptedEvaluator(rising_then_flat(309))
        config = OptimizerConfig(population_size=30, max_generations=20, elitism=2, random_seed=11)

        result = await optimize(self.design, "maxGain", evaluator, config)

        self.assertEqual(result.termination_reason, "early_convergence")
        self.assertEqual(result.generations_completed, 15)
        self.assertEqual(len(result.history), 16)
        self.assertEqual(result.evaluations, 30 + 28 * 15)
        self.assertAlmostEqual(result.best_fitness, (1.0 + 0.01 * 309) * 1.1)

    async def test_no_early_stop_in_first_half(self):
        # Nothing ever improves after generation 0
        evaluator = ScriptedEvaluator(lambda i: gain_response(5.0))
        config = OptimizerConfig(population_size=6, max_generations=20,
                                 max_stagnant_generations=2, random_seed=4)

        result = await optimize(self.design, "maxGain", evaluator, config)

        self.assertEqual(result.termination_reason, "early_convergence")
        self.assertEqual(result.generations_completed, 10)

    async def test_runs_to_max_generations_while_improving(self):
        evaluator = ScriptedEvaluator(rising_then_flat(10 ** 6))
        config = OptimizerConfig(population_size=6, max_generations=8, random_seed=4)

        result = await optimize(self.design, "maxGain", evaluator, config)

        self.assertEqual(result.termination_reason, "max_generations")
        self.assertEqual(result.generations_completed, 8)
        self.assertEqual(len(result.history), 9)


class TestFailureHandling(unittest.IsolatedAsyncioTestCase):
    """Test runs with failing or implausible evaluations."""

    def setUp(self):
        self.design = three_element_2m_design()

    async def test_mixed_failures_and_implausible_output(self):
        def script(i):
            if i % 3 == 0:
                return RuntimeError("solver timeout")
            if i % 3 == 1:
                return nan_response()
            return gain_response(4.0 + (i % 7) * 0.1)

        config = OptimizerConfig(population_size=12, max_generations=4, random_seed=21)
        result = await optimize(self.design, "maxGain", ScriptedEvaluator(script), config)

        self.assertTrue(math.isfinite(result.best_fitness))
        self.assertGreater(result.best_fitness, 4.0)
        first = result.history[0]
        self.assertEqual(first.failure_count, 4)
        self.assertEqual(first.implausible_count, 4)
        self.assertEqual(first.valid_solution_count, 4)

    async def test_initial_generation_failures_logged(self):
        def script(i):
            if i % 3 == 0:
                return RuntimeError("solver timeout")
            if i % 3 == 1:
                return nan_response()
            return gain_response(4.0)

        config = OptimizerConfig(population_size=6, max_generations=1, random_seed=5)
        with self.assertLogs("yagi_ga.orchestration", level="WARNING") as logs:
            await optimize(self.design, "maxGain", ScriptedEvaluator(script), config)

        initial = [line for line in logs.output if "Generation 0:" in line]
        self.assertEqual(len(initial), 1)
        self.assertIn("2 evaluation failures, 2 implausible results", initial[0])

    async def test_all_evaluations_fail(self):
        evaluator = ScriptedEvaluator(lambda i: ConnectionError("gone"))
        config = OptimizerConfig(population_size=6, max_generations=2, random_seed=2)

        result = await optimize(self.design, "maxGain", evaluator, config)

        self.assertEqual(result.best_fitness, -10.0)
        self.assertEqual(result.history[-1].valid_solution_count, 0)
        self.assertEqual(result.history[-1].average_fitness, 0.0)

    async def test_evaluator_not_ready(self):
        config = OptimizerConfig(ready_timeout_s=0.05)
        with self.assertRaises(EvaluatorNotReadyError):
            await optimize(self.design, "maxGain", SlowStartEvaluator(), config)

    async def test_invalid_baseline(self):
        design = AntennaDesign(
            center_frequency_mhz=144.0,
            elements=[Element(type="driven", length=980.0, position=0.0)]
        )
        with self.assertRaises(DesignPreconditionError):
            await optimize(design, "maxGain", ToyYagiEvaluator())

    def test_invalid_goal(self):
        with self.assertRaises(ValueError):
            GenerationalController(self.design, "maxBandwidth", ToyYagiEvaluator())

    async def test_invalid_scoring_rejected_before_evaluation(self):
        evaluator = ToyYagiEvaluator()
        config = OptimizerConfig(scoring=ScoringWeights(balanced_gain_ref=0.0))

        with self.assertRaises(ConfigValidationError):
            await optimize(self.design, "balancedPerformance", evaluator, config)
        self.assertEqual(evaluator.calls, [])

    def test_invalid_config(self):
        with self.assertRaises(ConfigValidationError):
            GenerationalController(self.design, "maxGain", ToyYagiEvaluator(),
                                   OptimizerConfig(population_size=4, elitism=4))


class TestController(unittest.IsolatedAsyncioTestCase):
    """Test controller bookkeeping."""

    async def test_state_and_result_ownership(self):
        design = three_element_2m_design()
        config = OptimizerConfig(population_size=6, max_generations=2, random_seed=9)
        controller = GenerationalController(design, "maxGain", ToyYagiEvaluator(), config)
        self.assertEqual(controller.state, ControllerState.INITIALIZING)

        result = await controller.run()

        self.assertEqual(controller.state, ControllerState.TERMINATED)
        # Result does not alias controller state
        best_in_population = controller.population.best()
        self.assertIsNot(result.best_parameters, best_in_population.parameters)
        # Baseline passed in is untouched
        self.assertEqual(design.elements[0].length, 1030.0)

    async def test_baseline_seeded_first(self):
        design = three_element_2m_design()
        evaluator = ToyYagiEvaluator()
        config = OptimizerConfig(population_size=5, max_generations=1, random_seed=9)

        await optimize(design, "maxGain", evaluator, config)

        first_cycle = [call for call in evaluator.calls[:4] if call[0] == "add_element"]
        self.assertEqual([call[2] for call in first_cycle], [515.0, 490.0, 465.0])

    async def test_out_of_range_baseline_warns(self):
        design = three_element_2m_design()
        design.elements[0].length = 5000.0
        config = OptimizerConfig(population_size=4, max_generations=1, random_seed=9)

        with self.assertLogs("yagi_ga.orchestration", level="WARNING") as logs:
            result = await optimize(design, "maxGain", ToyYagiEvaluator(), config)

        self.assertTrue(any("clamped" in line for line in logs.output))
        self.assertTrue(derive_constraints(design).contains(result.best_parameters))

    async def test_in_range_baseline_does_not_warn(self):
        config = OptimizerConfig(population_size=4, max_generations=1, random_seed=9)
        with self.assertNoLogs("yagi_ga.orchestration", level="WARNING"):
            await optimize(three_element_2m_design(), "maxGain", ToyYagiEvaluator(), config)


class TestImproveDesign(unittest.IsolatedAsyncioTestCase):
    """Test the optimize-and-compare entry point."""

    def setUp(self):
        self.design = three_element_2m_design()

    async def test_report(self):
        config = OptimizerConfig(population_size=12, max_generations=6, random_seed=31)

        report = await improve_design(self.design, "maxGain", ToyYagiEvaluator(), config)

        self.assertIsNotNone(report.optimized_analysis)
        self.assertGreaterEqual(report.improvement_percent, -1e-9)
        self.assertEqual(
            [e.length for e in report.optimized_design.elements],
            report.result.best_parameters.lengths
        )
        self.assertEqual(report.optimized_design.elements[0].position, 0.0)

    async def test_baseline_failure(self):
        evaluator = ScriptedEvaluator(lambda i: RuntimeError("solver crashed"))
        with self.assertRaises(BaselineEvaluationError):
            await improve_design(self.design, "maxGain", evaluator)


class TestImprovementPercent(unittest.TestCase):
    """Test the before/after comparison of the goal metric."""

    def setUp(self):
        self.baseline = AnalysisResult(gain=7.5, front_to_back_ratio=10.0,
                                       resistance=50.0, reactance=0.0)
        self.optimized = AnalysisResult(gain=15.0, front_to_back_ratio=10.0,
                                        resistance=50.0, reactance=0.0)

    def test_balanced_default_weights(self):
        percent = improvement_percent(self.baseline, self.optimized, OptimizationGoal.BALANCED)
        self.assertAlmostEqual(percent, 100.0 / 3)

    def test_balanced_uses_run_weights(self):
        weights = ScoringWeights(balanced_gain_ref=30.0)
        percent = improvement_percent(self.baseline, self.optimized,
                                      OptimizationGoal.BALANCED, weights)
        self.assertAlmostEqual(percent, 20.0)

    def test_gain_only_weighting(self):
        weights = ScoringWeights(balanced_gain_weight=1.0, balanced_fb_weight=0.0,
                                 balanced_vswr_weight=0.0)
        percent = improvement_percent(self.baseline, self.optimized,
                                      OptimizationGoal.BALANCED, weights)
        self.assertAlmostEqual(percent, 100.0)

    def test_zero_baseline_metric(self):
        zero = AnalysisResult(gain=0.0, front_to_back_ratio=10.0, resistance=50.0, reactance=0.0)
        self.assertIsNone(improvement_percent(zero, self.optimized, OptimizationGoal.MAX_GAIN))


class TestRunOptimization(unittest.TestCase):
    """Test the blocking entry point."""

    def test_blocking_run(self):
        config = OptimizerConfig(population_size=6, max_generations=2, random_seed=13)

        result = run_optimization(three_element_2m_design(), "balancedPerformance",
                                  ToyYagiEvaluator(), config)

        self.assertEqual(len(result.history), 3)
        self.assertTrue(math.isfinite(result.best_fitness))


if __name__ == '__main__':
    unittest.main()
