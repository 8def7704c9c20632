"""
Configuration for the Yagi-Uda optimizer.

Handles optimizer settings, YAML loading, validation, and RNG setup.
"""

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union
import numpy as np
import yaml

from .fitness import ScoringWeights


DEFAULT_CONFIG_PATH = Path(__file__).parent / "optimizer_config.yaml"


class ConfigValidationError(Exception):
    """Raised when optimizer configuration is invalid."""
    pass


@dataclass
class OptimizerConfig:
    """
    Genetic algorithm settings.

    Attributes:
        population_size: Individuals per generation
        max_generations: Generations after the initial one
        mutation_rate: Per-gene mutation probability
        crossover_rate: Probability of recombining two parents
        elitism: Top individuals carried unchanged into the next generation
        max_stagnant_generations: Generations without improvement before early stop
        tournament_size: Contestants per selection tournament
        batch_size: Evaluations per scheduler batch
        concurrent_evaluation: Force concurrent (True) or sequential (False)
            batches; None follows the evaluator
        seed_baseline: Put the baseline design into the initial population
        random_seed: Seed for the random number generator (None = fresh entropy)
        ready_timeout_s: Maximum wait for the evaluator to become ready
        gaussian_share: Share of mutations that are Gaussian rather than uniform
        sigma_fraction: Gaussian mutation standard deviation, fraction of range
        scoring: Goal scoring constants
    """
    population_size: int = 30
    max_generations: int = 20
    mutation_rate: float = 0.15
    crossover_rate: float = 0.8
    elitism: int = 2
    max_stagnant_generations: int = 5
    tournament_size: int = 3
    batch_size: int = 5
    concurrent_evaluation: Optional[bool] = None
    seed_baseline: bool = True
    random_seed: Optional[int] = None
    ready_timeout_s: float = 30.0
    gaussian_share: float = 0.7
    sigma_fraction: float = 0.1
    scoring: ScoringWeights = field(default_factory=ScoringWeights)

    def validate(self) -> None:
        """
        Validate settings.

        Raises:
            ConfigValidationError: If any setting is out of range
        """
        for name in ("population_size", "max_generations", "tournament_size",
                     "batch_size", "max_stagnant_generations"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigValidationError(
                    f"'{name}' must be a positive integer, got: {value}"
                )

        elitism = self.elitism
        if isinstance(elitism, bool) or not isinstance(elitism, int) or elitism < 0:
            raise ConfigValidationError(f"'elitism' must be a non-negative integer, got: {elitism}")
        if elitism >= self.population_size:
            raise ConfigValidationError(
                f"'elitism' ({elitism}) must be smaller than 'population_size' ({self.population_size})"
            )

        for name in ("mutation_rate", "crossover_rate", "gaussian_share"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
                raise ConfigValidationError(f"'{name}' must be between 0 and 1, got: {value}")

        if not isinstance(self.sigma_fraction, (int, float)) or self.sigma_fraction <= 0:
            raise ConfigValidationError(
                f"'sigma_fraction' must be positive, got: {self.sigma_fraction}"
            )

        if not isinstance(self.ready_timeout_s, (int, float)) or self.ready_timeout_s <= 0:
            raise ConfigValidationError(
                f"'ready_timeout_s' must be positive, got: {self.ready_timeout_s}"
            )

        if self.random_seed is not None and (
                isinstance(self.random_seed, bool) or not isinstance(self.random_seed, int)):
            raise ConfigValidationError(
                f"'random_seed' must be an integer or null, got: {self.random_seed}"
            )

        if self.concurrent_evaluation not in (None, True, False):
            raise ConfigValidationError(
                f"'concurrent_evaluation' must be true, false or null, got: {self.concurrent_evaluation}"
            )

        try:
            self.scoring.validate()
        except ValueError as e:
            raise ConfigValidationError(str(e))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptimizerConfig":
        """
        Build a config from a mapping (e.g. parsed YAML).

        Accepts the camelCase names of the caller API (populationSize,
        maxGenerations, mutationRate, crossoverRate) as aliases.

        Raises:
            ConfigValidationError: On unknown keys or invalid values
        """
        aliases = {
            "populationSize": "population_size",
            "maxGenerations": "max_generations",
            "mutationRate": "mutation_rate",
            "crossoverRate": "crossover_rate",
            "maxStagnantGenerations": "max_stagnant_generations",
        }
        data = {aliases.get(key, key): value for key, value in data.items()}

        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ConfigValidationError(f"Unknown configuration keys: {sorted(unknown)}")

        scoring_data = data.pop("scoring", None) or {}
        if not isinstance(scoring_data, dict):
            raise ConfigValidationError("'scoring' must be a dictionary")
        try:
            scoring = ScoringWeights.from_dict(scoring_data)
        except ValueError as e:
            raise ConfigValidationError(str(e))

        config = cls(scoring=scoring, **data)
        config.validate()
        return config

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_optimizer_config(config_path: Union[str, Path, None] = None) -> OptimizerConfig:
    """
    Load optimizer configuration from a YAML file.

    The file may hold the settings at top level or under an ``optimizer`` key.

    Args:
        config_path: Path to YAML file (defaults to the packaged config)

    Returns:
        Validated OptimizerConfig

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If config is invalid
    """
    config_file = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    try:
        with open(config_file, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML in configuration file: {e}")

    if data is None:
        raise ConfigValidationError("Configuration file is empty")

    if not isinstance(data, dict):
        raise ConfigValidationError("Configuration file must contain a mapping")

    if "optimizer" in data:
        data = data["optimizer"]
        if not isinstance(data, dict):
            raise ConfigValidationError("'optimizer' must be a dictionary")

    return OptimizerConfig.from_dict(data)


def create_rng(seed: Optional[int] = None) -> np.random.Generator:
    """
    Create the random number generator passed through a run.

    Args:
        seed: Seed for reproducible runs (None = fresh entropy)

    Returns:
        numpy Generator
    """
    return np.random.default_rng(seed)
