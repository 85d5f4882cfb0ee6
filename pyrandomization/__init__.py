"""
PyRandomization: randomization inference for designed experiments.

Exact and Monte Carlo randomization tests of sharp null hypotheses under
complete, blocked, clustered and simple random assignment.

Submodules:
    randomization: Assignment designs, sharp nulls, statistics, conduct_ri()
    regression: Linear models used by the built-in statistics
    core: Data sources, results, exceptions and validation
"""

__version__ = "0.1.0"

from pyrandomization import regression
from pyrandomization import randomization
from pyrandomization.core import DataSource
from pyrandomization.randomization import (
    AssignmentDesign,
    CoefficientStatistic,
    ConstantEffect,
    FunctionStatistic,
    ModelSpec,
    NestedFStatistic,
    NestedModels,
    RIConfig,
    conduct_ri,
)

__all__ = [
    "__version__",
    "regression",
    "randomization",
    "DataSource",
    "AssignmentDesign",
    "ConstantEffect",
    "NestedModels",
    "ModelSpec",
    "CoefficientStatistic",
    "NestedFStatistic",
    "FunctionStatistic",
    "RIConfig",
    "conduct_ri",
]
