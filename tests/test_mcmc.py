from __future__ import annotations

import math
import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from numint.distributions import MarkovProposal, normal, random_walk_proposal, uniform
from numint.mcmc import (
    Chain,
    FunctionKernel,
    apply_kernel,
    build_metropolis_hastings_kernel,
    cycle_kernels,
    ergodic_mean,
    mix_kernels,
    simulate_chain,
    simulate_chains,
)

STATES = np.arange(1, 11)


def discrete_target(x):
    return 1.0 / x


def discrete_proposal() -> MarkovProposal:
    """確率 1/2 で x+1（10 の次は 1）へ、残りは一様に提案する非対称な提案。"""

    def density(x, z) -> float:
        step = 0.5 if int(z) == int(x) % 10 + 1 else 0.0
        return step + 0.05

    def sampler(x, rng: np.random.Generator):
        if rng.uniform() < 0.5:
            return int(x) % 10 + 1
        return int(rng.integers(1, 11))

    return MarkovProposal(sampler=sampler, density=density, name="cyclic_step")


def test_detailed_balance_with_asymmetric_proposal() -> None:
    kernel = build_metropolis_hastings_kernel(discrete_target, discrete_proposal())
    q = kernel.proposal.density
    for x in STATES:
        for z in STATES:
            if x == z:
                continue
            forward = discrete_target(x) * q(x, z) * kernel.acceptance_probability(x, z)
            backward = discrete_target(z) * q(z, x) * kernel.acceptance_probability(z, x)
            if abs(forward - backward) > 1e-12:
                raise AssertionError(
                    f"detailed balance broken for ({x},{z}): {forward} vs {backward}"
                )


def test_discrete_chain_frequencies() -> None:
    kernel = build_metropolis_hastings_kernel(discrete_target, discrete_proposal())
    chain = simulate_chain(kernel, 1, 100_000, np.random.default_rng(0))
    values = chain.discard(1000).to_array()
    expected = (1.0 / STATES) / np.sum(1.0 / STATES)
    observed = np.array([np.mean(values == s) for s in STATES])
    worst = float(np.max(np.abs(observed - expected)))
    if worst > 0.02:
        raise AssertionError(f"empirical frequencies off by {worst:.4f}: {observed}")


def test_acceptance_is_one_outside_support() -> None:
    kernel = build_metropolis_hastings_kernel(uniform(0.0, 1.0).density, random_walk_proposal(1.0))
    if kernel.acceptance_probability(5.0, 0.5) != 1.0:
        raise AssertionError("move from a zero-density state must always be accepted")
    if kernel.acceptance_probability(0.5, 5.0) != 0.0:
        raise AssertionError("move to a zero-density state must be rejected")


def test_simulate_chain_is_deterministic() -> None:
    kernel = build_metropolis_hastings_kernel(normal().density, random_walk_proposal(1.0))
    first = simulate_chain(kernel, 3.0, 500, np.random.default_rng(42))
    second = simulate_chain(kernel, 3.0, 500, np.random.default_rng(42))
    if first.states != second.states:
        raise AssertionError("same seed and initial state must give the same chain")
    if len(first) != 500 or first[0] != 3.0:
        raise AssertionError("chain must have the requested length and start at the initial state")
    try:
        simulate_chain(kernel, 0.0, 0, np.random.default_rng(0))
    except ValueError:
        pass
    else:
        raise AssertionError("ValueError not raised for length=0")


def test_chain_helpers() -> None:
    chain = Chain((1, 1, 2, 3, 3))
    if chain.move_rate() != 0.5:
        raise AssertionError(f"unexpected move rate {chain.move_rate()}")
    if chain.discard(2).states != (2, 3, 3):
        raise AssertionError(f"unexpected discard result {chain.discard(2).states}")
    if chain.thin(2).states != (1, 2, 3):
        raise AssertionError(f"unexpected thin result {chain.thin(2).states}")
    for call in (lambda: chain.discard(5), lambda: chain.thin(0)):
        try:
            call()
        except ValueError:
            continue
        raise AssertionError("ValueError not raised for invalid burn-in or step")


def test_mixture_and_cycle_keep_target_invariant() -> None:
    target = normal().density
    small = build_metropolis_hastings_kernel(target, random_walk_proposal(0.5))
    large = build_metropolis_hastings_kernel(target, random_walk_proposal(2.5))
    composed = {
        "mixture": mix_kernels([small, large], [0.3, 0.7]),
        "cycle": cycle_kernels([small, large]),
    }
    for name, kernel in composed.items():
        chain = simulate_chain(kernel, 0.0, 20_000, np.random.default_rng(9))
        for label, f, truth in (("x", lambda x: x, 0.0), ("x^2", lambda x: x**2, 1.0)):
            estimate = ergodic_mean(chain, f, burn_in=500, vectorized=True)
            if abs(estimate.estimate - truth) > 5.0 * estimate.std_error:
                raise AssertionError(
                    f"{name}: E[{label}] = {estimate.estimate:.4f} "
                    f"(se={estimate.std_error:.4f}), expected {truth}"
                )


def test_mix_kernels_validation() -> None:
    kernel = FunctionKernel(lambda state, rng: state)
    bad_inputs = [
        ([], []),
        ([kernel, kernel], [1.0]),
        ([kernel, kernel], [1.5, -0.5]),
        ([kernel, kernel], [0.3, 0.3]),
        ([kernel], [math.nan]),
    ]
    for kernels, weights in bad_inputs:
        try:
            mix_kernels(kernels, weights)
        except ValueError:
            continue
        raise AssertionError(f"ValueError not raised for weights={weights}")
    try:
        cycle_kernels([])
    except ValueError:
        pass
    else:
        raise AssertionError("ValueError not raised for an empty cycle")


def test_plain_callables_are_wrapped() -> None:
    rng = np.random.default_rng(0)
    shift = cycle_kernels([lambda s, r: s + 1, lambda s, r: s * 2])
    if apply_kernel(shift, 3, rng) != 8:
        raise AssertionError("cycle must apply components in order")
    for call in (
        lambda: apply_kernel("not a kernel", 0, rng),
        lambda: mix_kernels([object()], [1.0]),
    ):
        try:
            call()
        except TypeError:
            continue
        raise AssertionError("TypeError not raised for a non-kernel")


def test_step_matches_apply_kernel() -> None:
    mh = build_metropolis_hastings_kernel(normal().density, random_walk_proposal(1.0))
    kernels = {
        "metropolis_hastings": mh,
        "mixture": mix_kernels([mh, FunctionKernel(lambda s, r: s)], [0.5, 0.5]),
        "cycle": cycle_kernels([mh, mh]),
        "function": FunctionKernel(lambda s, r: s + r.normal()),
    }
    for name, kernel in kernels.items():
        for seed in range(5):
            stepped = kernel.step(0.5, np.random.default_rng(seed))
            applied = apply_kernel(kernel, 0.5, np.random.default_rng(seed))
            called = kernel(0.5, np.random.default_rng(seed))
            if not stepped == applied == called:
                raise AssertionError(
                    f"{name}: step / apply_kernel / call disagree ({stepped}, {applied}, {called})"
                )

    discrete = build_metropolis_hastings_kernel(discrete_target, discrete_proposal())
    state = 5
    for seed in range(20):
        state = discrete.step(state, np.random.default_rng(seed))
        if state not in STATES:
            raise AssertionError(f"MH step left the state space: {state}")


def test_simulate_chains_independent_of_workers() -> None:
    kernel = build_metropolis_hastings_kernel(normal().density, random_walk_proposal(1.0))
    starts = [-3.0, 0.0, 3.0, 6.0]
    sequential = simulate_chains(kernel, starts, 300, np.random.default_rng(5))
    parallel = simulate_chains(kernel, starts, 300, np.random.default_rng(5), workers=3)
    for left, right in zip(sequential, parallel):
        if left.states != right.states:
            raise AssertionError("workers changed the simulated chains")
    if sequential[0].states == sequential[1].states:
        raise AssertionError("chains should use independent random streams")


def test_ergodic_mean_errors() -> None:
    chain = Chain((0.0, 1.0, 2.0))
    for kwargs in ({"n_batches": 1}, {"n_batches": 5}):
        try:
            ergodic_mean(chain, lambda x: x, **kwargs)
        except ValueError:
            continue
        raise AssertionError(f"ValueError not raised for {kwargs}")


def main() -> None:
    test_detailed_balance_with_asymmetric_proposal()
    test_discrete_chain_frequencies()
    test_acceptance_is_one_outside_support()
    test_simulate_chain_is_deterministic()
    test_chain_helpers()
    test_mixture_and_cycle_keep_target_invariant()
    test_mix_kernels_validation()
    test_plain_callables_are_wrapped()
    test_step_matches_apply_kernel()
    test_simulate_chains_independent_of_workers()
    test_ergodic_mean_errors()
    print("OK: MCMC tests passed")


if __name__ == "__main__":
    main()
