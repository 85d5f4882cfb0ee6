"""
Randomization inference.

Tests sharp null hypotheses by recomputing a statistic over the
assignments the randomization could have produced: every one of them
when they are few enough, a Monte Carlo sample otherwise.

Usage:
    from pyrandomization.randomization import (
        AssignmentDesign, ConstantEffect, conduct_ri,
    )

    design = AssignmentDesign.blocked(df['block'], block_m={'a': 2, 'b': 3})
    sol = conduct_ri(design, ConstantEffect(0.0), data=df, blocks='block')
    sol.two_tailed_p_value
"""

from pyrandomization.randomization._common import RandomizationParams, RIConfig
from pyrandomization.randomization.assignment import AssignmentDesign
from pyrandomization.randomization.design import RIDesign
from pyrandomization.randomization.hypothesis import (
    ConstantEffect,
    Hypothesis,
    ModelSpec,
    NestedModels,
    PotentialOutcomeTable,
    impute_potential_outcomes,
)
from pyrandomization.randomization.sampler import (
    check_assignment,
    enumerate_assignments,
    inclusion_probabilities,
    sample_assignments,
    total_valid_assignment_count,
)
from pyrandomization.randomization.solution import RandomizationSolution
from pyrandomization.randomization.solvers import conduct_ri
from pyrandomization.randomization.statistics import (
    CoefficientStatistic,
    FunctionStatistic,
    NestedFStatistic,
    Statistic,
    as_statistic,
    ipw_weights,
)

__all__ = [
    "conduct_ri",
    "RIConfig",
    "AssignmentDesign",
    "RIDesign",
    "RandomizationParams",
    "RandomizationSolution",
    "ConstantEffect",
    "NestedModels",
    "ModelSpec",
    "Hypothesis",
    "PotentialOutcomeTable",
    "impute_potential_outcomes",
    "Statistic",
    "CoefficientStatistic",
    "NestedFStatistic",
    "FunctionStatistic",
    "as_statistic",
    "ipw_weights",
    "total_valid_assignment_count",
    "enumerate_assignments",
    "sample_assignments",
    "check_assignment",
    "inclusion_probabilities",
]
