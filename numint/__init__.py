"""numint パッケージ。

数値積分（求積）と Monte Carlo / MCMC による期待値推定の 2 本柱を提供する。
両者は互いに依存せず、共通するのは「積分で定義される数を近似する」という点だけである。
利用者は基本的に `from numint import composite_rule, gauss_legendre_rule` の形で import できる。
"""

from .distributions import (
    MarkovProposal,
    ProposalDensity,
    laplace,
    normal,
    random_walk_proposal,
    uniform,
)
from .errors import (
    DegenerateInterpolation,
    InvalidInterval,
    NegativeDensity,
    NonFiniteEvaluation,
    NumIntError,
    RejectionBoundExceeded,
    RuleNotImplemented,
)
from .interpolation import LagrangePolynomial, interpolate
from .mcmc import (
    Chain,
    CycleKernel,
    FunctionKernel,
    MetropolisHastingsKernel,
    MixtureKernel,
    build_metropolis_hastings_kernel,
    cycle_kernels,
    ergodic_mean,
    mix_kernels,
    simulate_chain,
    simulate_chains,
)
from .montecarlo import (
    MonteCarloEstimate,
    RejectionSamples,
    importance_sample_mean,
    monte_carlo_mean,
    rejection_sample,
    rejection_sample_n,
    rejection_sampler,
    sample_mean,
    self_normalized_importance_sample_mean,
)
from .partition import Partition
from .quadrature import (
    IntervalRule,
    apply_rule,
    composite_rule,
    estimate_convergence_order,
    gauss_legendre_rule,
    integrate_nd,
    newton_cotes_rule,
    rule_from_config,
)

# __all__:
# - `from numint import *` の対象を明示する。
# - runner / catalog / logger など CLI 向けの内部部品は含めない。
__all__ = [
    "Chain",
    "CycleKernel",
    "DegenerateInterpolation",
    "FunctionKernel",
    "IntervalRule",
    "InvalidInterval",
    "LagrangePolynomial",
    "MarkovProposal",
    "MetropolisHastingsKernel",
    "MixtureKernel",
    "MonteCarloEstimate",
    "NegativeDensity",
    "NonFiniteEvaluation",
    "NumIntError",
    "Partition",
    "ProposalDensity",
    "RejectionBoundExceeded",
    "RejectionSamples",
    "RuleNotImplemented",
    "apply_rule",
    "build_metropolis_hastings_kernel",
    "composite_rule",
    "cycle_kernels",
    "ergodic_mean",
    "estimate_convergence_order",
    "gauss_legendre_rule",
    "importance_sample_mean",
    "integrate_nd",
    "interpolate",
    "laplace",
    "mix_kernels",
    "monte_carlo_mean",
    "newton_cotes_rule",
    "normal",
    "random_walk_proposal",
    "rejection_sample",
    "rejection_sample_n",
    "rejection_sampler",
    "rule_from_config",
    "sample_mean",
    "self_normalized_importance_sample_mean",
    "simulate_chain",
    "simulate_chains",
    "uniform",
]
