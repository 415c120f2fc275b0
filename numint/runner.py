"""設定セクションから求積・Monte Carlo の実験を組み立てて実行する。

main.py（CLI）から呼ばれ、結果を JSON に書き出せる素の dict として返す。
各エンジンの関数は純粋なので、ここでは名前解決と引数の受け渡しだけを行う。
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

import numpy as np

from ._evaluation import evaluate
from .catalog import exact_integral, get_distribution, get_integrand, get_test_function
from .distributions import random_walk_proposal
from .mcmc import build_metropolis_hastings_kernel, ergodic_mean, simulate_chain
from .montecarlo import (
    importance_sample_mean,
    monte_carlo_mean,
    rejection_sample_n,
    sample_mean,
    self_normalized_importance_sample_mean,
)
from .quadrature import composite_rule, estimate_convergence_order, rule_from_config

MONTE_CARLO_METHODS = (
    "iid",
    "importance",
    "self_normalized",
    "rejection",
    "metropolis_hastings",
)

# 結果 JSON に含める鎖の長さの上限。
MAX_TRACE_LENGTH = 5000


def run_quadrature(section: Mapping[str, Any]) -> Dict[str, Any]:
    """[quadrature] セクションを実行する。

    キー:
        integrand（既定 "sin"）, a（0.0）, b（1.0）, rule, Q, closed,
        n_intervals（10）, workers, convergence_ns（任意のリスト）
    """
    name = str(section.get("integrand", "sin"))
    f, _ = get_integrand(name)
    a = float(section.get("a", 0.0))
    b = float(section.get("b", 1.0))
    n = int(section.get("n_intervals", 10))
    workers = section.get("workers")
    rule = rule_from_config(
        {key: section[key] for key in ("rule", "Q", "closed") if key in section}
    )

    estimate = composite_rule(rule, f, a, b, n, vectorized=True, workers=workers)
    exact = exact_integral(name, a, b)
    result: Dict[str, Any] = {
        "integrand": name,
        "a": a,
        "b": b,
        "rule": rule.name,
        "n_points": rule.n_points,
        "degree": rule.degree,
        "order": rule.order,
        "n_intervals": n,
        "estimate": estimate,
        "exact": exact,
        "abs_error": abs(estimate - exact),
    }

    ns = section.get("convergence_ns")
    if ns:
        table: List[Dict[str, Any]] = []
        for n_k in ns:
            value = composite_rule(rule, f, a, b, int(n_k), vectorized=True)
            table.append({"n": int(n_k), "estimate": value, "abs_error": abs(value - exact)})
        result["convergence"] = table
        result["estimated_order"] = estimate_convergence_order(
            rule, f, a, b, exact, [int(n_k) for n_k in ns], vectorized=True
        )
    return result


def run_montecarlo(section: Mapping[str, Any]) -> Dict[str, Any]:
    """[montecarlo] セクションを実行する。

    キー:
        method: "iid" / "importance" / "self_normalized" / "rejection" /
                "metropolis_hastings"
        n, seed, workers, test_function,
        target, target_params, target_scale（目標密度に掛ける未知定数の代わり）,
        proposal, proposal_params, bound_m, max_attempts,
        （bound_m は正規化済み π に対する sup π/μ。rejection では target_scale 倍して使う）
        step_size, burn_in, initial_state（metropolis_hastings 用）

    Raises:
        ValueError: 未知の method、または必要なキーが欠けている場合。
    """
    method = str(section.get("method", "iid")).strip().lower()
    if method not in MONTE_CARLO_METHODS:
        raise ValueError(f"未知の method です: {method!r}（候補: {list(MONTE_CARLO_METHODS)}）")
    n = int(section.get("n", 10_000))
    seed = section.get("seed")
    rng = np.random.default_rng(seed)
    f = get_test_function(section.get("test_function", "identity"))
    target = get_distribution(
        section.get("target", "normal"), section.get("target_params")
    )
    scale = float(section.get("target_scale", 1.0))
    if not np.isfinite(scale) or scale <= 0.0:
        raise ValueError("target_scale は正の有限値である必要があります。")

    def target_density(x: Any) -> Any:
        return scale * target.density(x)

    result: Dict[str, Any] = {"method": method, "n": n, "seed": seed, "target": target.name}

    if method == "iid":
        estimate = monte_carlo_mean(
            target, f, n, rng, vectorized=True, workers=section.get("workers")
        )
    elif method in ("importance", "self_normalized", "rejection"):
        proposal = get_distribution(
            section.get("proposal", "laplace"), section.get("proposal_params")
        )
        result["proposal"] = proposal.name
        if method == "importance":
            # 正規化済みであることが前提なので target_scale は掛けない。
            estimate = importance_sample_mean(
                target.density, proposal, f, n, rng, vectorized=True
            )
        elif method == "self_normalized":
            estimate = self_normalized_importance_sample_mean(
                target_density, proposal, f, n, rng, vectorized=True
            )
        else:
            if "bound_m" not in section:
                raise ValueError("method='rejection' には bound_m が必要です。")
            # bound_m は正規化済みの π に対する定数なので、target_scale 倍した π に合わせる。
            bound_m = float(section["bound_m"]) * scale
            samples = rejection_sample_n(
                target_density,
                proposal,
                bound_m,
                n,
                rng,
                max_attempts=section.get("max_attempts"),
            )
            estimate = sample_mean(evaluate(f, samples.draws, vectorized=True))
            result["bound_m"] = bound_m
            result["acceptance_rate"] = samples.acceptance_rate
            result["attempts"] = samples.attempts
    else:
        kernel = build_metropolis_hastings_kernel(
            target_density, random_walk_proposal(float(section.get("step_size", 1.0)))
        )
        chain = simulate_chain(
            kernel,
            float(section.get("initial_state", 0.0)),
            n,
            rng,
            progress=bool(section.get("progress", False)),
        )
        burn_in = int(section.get("burn_in", 0))
        estimate = ergodic_mean(chain, f, burn_in=burn_in, vectorized=True)
        result["burn_in"] = burn_in
        result["move_rate"] = chain.move_rate()
        result["trace"] = [float(s) for s in chain.states[:MAX_TRACE_LENGTH]]

    low, high = estimate.confidence_interval(0.95)
    result["estimate"] = estimate.as_dict()
    result["ci95"] = [low, high]
    return result
