"""
Genetic algorithm optimizer for Yagi-Uda antenna designs

This package evolves the element lengths and spacings of a baseline
Yagi-Uda design, scoring each candidate through an external asynchronous
performance evaluator.

Key Features:
- External performance evaluation (solver is a black box)
- Tagged fitness outcomes (scored, implausible, evaluation failure)
- Elitism, tournament selection, uniform crossover, mixed mutation
- Batched evaluation, concurrent only when the evaluator allows it
- Early stopping on stagnation

Modules:
- data_models: Core data structures (AntennaDesign, DesignParameters, Individual)
- constraints: Wavelength-derived parameter ranges
- evaluator_interface: Performance evaluator boundary and response parsing
- fitness: VSWR, plausibility gate, goal scoring, evaluator adapter
- population: Population initialization and ranking
- selection: Tournament selection
- crossover: Uniform crossover
- mutation: Gaussian and uniform mutation
- scheduler: Batched evaluation
- orchestration: Generational controller and entry points
- config: Optimizer settings and YAML loading
- io_utils: History CSV export
"""

__version__ = "0.1.0"
__author__ = "Antenna Optimization Team"

from .config import ConfigValidationError, OptimizerConfig, load_optimizer_config
from .constraints import DesignPreconditionError, derive_constraints
from .data_models import (
    AntennaDesign,
    DesignParameters,
    Element,
    GenerationRecord,
    Individual,
    OptimizationResult,
)
from .evaluator_interface import AnalysisResult, EvaluatorNotReadyError, PerformanceEvaluator
from .fitness import FitnessEvaluator, FitnessOutcome, FitnessStatus, OptimizationGoal, compute_vswr
from .orchestration import (
    BaselineEvaluationError,
    GenerationalController,
    OptimizationReport,
    improve_design,
    optimize,
    run_optimization,
)

__all__ = [
    "AnalysisResult",
    "AntennaDesign",
    "BaselineEvaluationError",
    "ConfigValidationError",
    "DesignParameters",
    "DesignPreconditionError",
    "Element",
    "EvaluatorNotReadyError",
    "FitnessEvaluator",
    "FitnessOutcome",
    "FitnessStatus",
    "GenerationRecord",
    "GenerationalController",
    "Individual",
    "OptimizationGoal",
    "OptimizationReport",
    "OptimizationResult",
    "OptimizerConfig",
    "PerformanceEvaluator",
    "compute_vswr",
    "derive_constraints",
    "improve_design",
    "load_optimizer_config",
    "optimize",
    "run_optimization",
]
