"""
Generators - Candidate generation strategies.

Components:
- StrategyManager: Per-iteration strategy allocation and fan-out
- InitialGenerator, RefinementGenerator, CrossoverGenerator,
  MutationGenerator, FreshGenerator, DiversityGenerator
"""

from .base import BaseGenerator, GenerationContext, GeneratorConfig, parse_tool_calls
from .crossover import CrossoverGenerator
from .diversity import DIVERSITY_DIMENSIONS, DiversityGenerator
from .fresh import FreshGenerator
from .initial import InitialGenerator
from .mutation import MUTATION_TYPES, MutationGenerator
from .refinement import RefinementGenerator
from .strategy_manager import (
    DEFAULT_STRATEGY_WEIGHTS,
    StrategyManager,
    StrategySelection,
)

__all__ = [
    # Contract
    "BaseGenerator",
    "GenerationContext",
    "GeneratorConfig",
    "parse_tool_calls",
    # Strategies
    "InitialGenerator",
    "RefinementGenerator",
    "CrossoverGenerator",
    "MutationGenerator",
    "MUTATION_TYPES",
    "FreshGenerator",
    "DiversityGenerator",
    "DIVERSITY_DIMENSIONS",
    # Manager
    "StrategyManager",
    "StrategySelection",
    "DEFAULT_STRATEGY_WEIGHTS",
]
