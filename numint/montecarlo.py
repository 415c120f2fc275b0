"""i.i.d. Monte Carlo 推定、rejection sampling、importance sampling。

目的:
    π(f) = E_π[f(X)] を標本平均で近似する。
    - monte_carlo_mean: π から直接 i.i.d. に引ける場合
    - rejection_sample: 支配的な提案 μ と定数 M で π の厳密な標本を作る
    - importance_sample_mean: 正規化済みの π に対する重み付き平均
    - self_normalized_importance_sample_mean: 正規化定数が未知の π でも使える比推定

乱数:
    すべて呼び出し側の np.random.Generator を受け取り、そこから乱数を消費する。
    同じ Generator（同じ seed）を渡せば結果は決定的になる。

呼び出し側の契約（実行時には検査しない）:
    - rejection sampling の bound_m は sup_x π(x)/μ(x) 以上であること
    - π が正の点で μ も正であること（そうでなければ無限ループや質量の欠落が起きる）
"""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

import numpy as np
from scipy import stats

from ._evaluation import density_value, evaluate, evaluate_density
from .distributions import ProposalDensity
from .errors import NonFiniteEvaluation, RejectionBoundExceeded
from .types import IIDSampler, Integrand, TargetDensity


@dataclass(frozen=True)
class MonteCarloEstimate:
    """点推定とその分散推定。

    Attributes:
        estimate: 点推定値。
        variance: 推定量の分散の推定値（標本分散 / n など）。n=1 では inf。
        n: 使用した標本数。
        effective_sample_size: 重み付き推定・MCMC での実効標本数（i.i.d. では n）。
    """

    estimate: float
    variance: float
    n: int
    effective_sample_size: float

    @property
    def std_error(self) -> float:
        return math.sqrt(self.variance)

    def confidence_interval(self, level: float = 0.95) -> Tuple[float, float]:
        """CLT にもとづく正規近似の信頼区間。"""
        if not 0.0 < level < 1.0:
            raise ValueError("level は (0,1) の範囲である必要があります。")
        z = float(stats.norm.ppf(0.5 + 0.5 * level))
        half = z * self.std_error
        return self.estimate - half, self.estimate + half

    def as_dict(self) -> dict:
        return {
            "estimate": self.estimate,
            "variance": self.variance,
            "std_error": self.std_error,
            "n": self.n,
            "effective_sample_size": self.effective_sample_size,
        }


@dataclass(frozen=True)
class RejectionSamples:
    """rejection sampling で得た標本と、提案の総試行回数。"""

    draws: np.ndarray
    attempts: int

    @property
    def acceptance_rate(self) -> float:
        # 期待値は 1/bound_m（π と μ がともに正規化されている場合）。
        return len(self.draws) / self.attempts if self.attempts else 0.0


def monte_carlo_mean(
    sampler: IIDSampler,
    f: Integrand,
    n: int,
    rng: np.random.Generator,
    vectorized: bool = False,
    workers: Optional[int] = None,
    chunk_size: int = 10_000,
) -> MonteCarloEstimate:
    """sampler から n 個の i.i.d. 標本を引き、(1/n) Σ f(x_i) を返す。

    標本は chunk_size ごとのチャンクに分け、各チャンクは rng から spawn した
    子 Generator で生成する。チャンク分割は workers に依存しないため、
    workers を変えても同じ標本・同じ推定値になる。

    Args:
        sampler: (rng, size) -> 長さ size の標本配列。
        f: テスト関数。
        n: 標本数（1 以上）。
        rng: 乱数生成器。
        vectorized: True なら f を標本配列で 1 回呼ぶ。
        workers: 指定するとチャンクをスレッドプールで並列に処理する。
        chunk_size: 1 チャンクあたりの標本数。

    Returns:
        MonteCarloEstimate（variance = 標本分散 / n）。

    Raises:
        ValueError: n < 1 または chunk_size < 1 の場合。
        NonFiniteEvaluation: f が NaN/inf を返した場合。
    """
    n = int(n)
    chunk_size = int(chunk_size)
    if n < 1:
        raise ValueError("標本数 n は 1 以上である必要があります。")
    if chunk_size < 1:
        raise ValueError("chunk_size は 1 以上である必要があります。")

    sizes = [chunk_size] * (n // chunk_size)
    if n % chunk_size:
        sizes.append(n % chunk_size)
    children = rng.spawn(len(sizes))

    def run_chunk(job: Tuple[np.random.Generator, int]) -> np.ndarray:
        child, size = job
        draws = sampler(child, size)
        return evaluate(f, draws, vectorized=vectorized)

    jobs = list(zip(children, sizes))
    if workers is not None and int(workers) > 1:
        with ThreadPoolExecutor(max_workers=int(workers)) as executor:
            chunks = list(executor.map(run_chunk, jobs))
    else:
        chunks = [run_chunk(job) for job in jobs]

    return sample_mean(np.concatenate(chunks))


def sample_mean(values: np.ndarray) -> MonteCarloEstimate:
    """i.i.d. な評価値列から平均と分散推定（標本分散 / n）を作る。"""
    values = np.asarray(values, dtype=float).reshape(-1)
    n = values.shape[0]
    if n < 1:
        raise ValueError("values が空です。")
    estimate = float(np.mean(values))
    variance = float(np.var(values, ddof=1)) / n if n > 1 else math.inf
    return MonteCarloEstimate(estimate, variance, n, float(n))


def rejection_sample(
    target_density: TargetDensity,
    proposal: ProposalDensity,
    bound_m: float,
    rng: np.random.Generator,
    max_attempts: Optional[int] = None,
) -> Any:
    """rejection sampling で目標分布の標本を 1 つ返す。

    z ~ μ を引き、確率 π(z) / (M μ(z)) で受理する。棄却なら引き直す。
    受理までの試行回数は Geometric(1/M) に従い、期待値は M 回になる。

    Args:
        target_density: 目標密度 π（正規化されていなくてもよい）。
        proposal: 提案分布 μ。
        bound_m: sup_x π(x)/μ(x) 以上の定数 M（呼び出し側の契約。検査しない）。
        rng: 乱数生成器。
        max_attempts: 試行回数の上限。None なら受理されるまで続ける。

    Raises:
        ValueError: bound_m が正の有限値でない、または max_attempts < 1 の場合。
        RejectionBoundExceeded: max_attempts 回以内に受理されなかった場合。
    """
    draw, _ = _rejection_draw(target_density, proposal, bound_m, rng, max_attempts)
    return draw


def rejection_sample_n(
    target_density: TargetDensity,
    proposal: ProposalDensity,
    bound_m: float,
    n: int,
    rng: np.random.Generator,
    max_attempts: Optional[int] = None,
) -> RejectionSamples:
    """rejection_sample を n 回繰り返し、標本と総試行回数を返す。

    max_attempts は標本 1 つあたりの上限として扱う。
    """
    n = int(n)
    if n < 1:
        raise ValueError("標本数 n は 1 以上である必要があります。")
    draws: List[Any] = []
    total = 0
    for _ in range(n):
        draw, attempts = _rejection_draw(
            target_density, proposal, bound_m, rng, max_attempts
        )
        draws.append(draw)
        total += attempts
    return RejectionSamples(draws=np.asarray(draws), attempts=total)


def rejection_sampler(
    target_density: TargetDensity,
    proposal: ProposalDensity,
    bound_m: float,
    max_attempts: Optional[int] = None,
) -> IIDSampler:
    """rejection sampling を IIDSampler として包む（monte_carlo_mean に渡せる）。"""

    def sampler(rng: np.random.Generator, size: Optional[int] = None) -> Any:
        if size is None:
            return rejection_sample(target_density, proposal, bound_m, rng, max_attempts)
        return rejection_sample_n(
            target_density, proposal, bound_m, size, rng, max_attempts
        ).draws

    return sampler


def importance_sample_mean(
    target_density: TargetDensity,
    proposal: ProposalDensity,
    f: Integrand,
    n: int,
    rng: np.random.Generator,
    vectorized: bool = False,
) -> MonteCarloEstimate:
    """importance sampling: (1/n) Σ f(x_i) w(x_i), w = π/μ, x_i ~ μ。

    target_density は正規化済み（積分が 1）である必要がある。
    正規化定数が未知なら推定値はその定数倍だけずれるため、
    self_normalized_importance_sample_mean を使う。

    Raises:
        ValueError: n < 1 の場合。
        NonFiniteEvaluation: f/密度が NaN/inf、または標本点で μ = 0 の場合。
        NegativeDensity: 密度が負の値を返した場合。
    """
    values, weights = _weighted_values(target_density, proposal, f, n, rng, vectorized)
    plain = sample_mean(values * weights)
    return MonteCarloEstimate(plain.estimate, plain.variance, plain.n, _kish_ess(weights))


def self_normalized_importance_sample_mean(
    target_density: TargetDensity,
    proposal: ProposalDensity,
    f: Integrand,
    n: int,
    rng: np.random.Generator,
    vectorized: bool = False,
) -> MonteCarloEstimate:
    """自己正規化 importance sampling: Σ w_i f(x_i) / Σ w_i。

    比をとるので π の正規化定数は打ち消し合い、π は定数倍まで分かっていればよい。
    有限 n ではバイアスを持つが n → ∞ で一致推定量になる。
    漸近分散 ∫(f - π(f))² w dπ は通常の importance sampling より小さいことが多く、
    実用上はこちらを優先する。

    variance にはデルタ法による推定 Σ w_i² (f_i - est)² / (Σ w_i)² を返す。

    Raises:
        NonFiniteEvaluation: 重みの和が 0 の場合（π と μ の台が重ならない）。
            重み π/μ がオーバーフローした場合も同様。
    """
    values, weights = _weighted_values(target_density, proposal, f, n, rng, vectorized)
    # 最大重みで割ってから和をとる。定数倍は推定値・分散・ESS のいずれでも打ち消し合う。
    scale = float(np.max(weights))
    if scale > 0.0:
        weights = weights / scale
    total = float(np.sum(weights))
    if total <= 0.0:
        raise NonFiniteEvaluation("重みの和が 0 です。π と μ の台を確認してください。")
    estimate = float(np.sum(weights * values) / total)
    variance = float(np.sum(weights**2 * (values - estimate) ** 2) / total**2)
    return MonteCarloEstimate(estimate, variance, int(n), _kish_ess(weights))


def _rejection_draw(
    target_density: TargetDensity,
    proposal: ProposalDensity,
    bound_m: float,
    rng: np.random.Generator,
    max_attempts: Optional[int],
) -> Tuple[Any, int]:
    bound = float(bound_m)
    if not np.isfinite(bound) or bound <= 0.0:
        raise ValueError("bound_m は正の有限値である必要があります。")
    if max_attempts is not None and int(max_attempts) < 1:
        raise ValueError("max_attempts は 1 以上である必要があります。")

    attempts = 0
    while max_attempts is None or attempts < int(max_attempts):
        attempts += 1
        z = proposal.sample(rng)
        mu = density_value(proposal.density, z, name="proposal.density")
        if mu == 0.0:
            continue
        pi = density_value(target_density, z, name="target_density")
        # u < π/(Mμ) を割り算なしで判定する。
        if rng.uniform() * bound * mu < pi:
            return z, attempts
    raise RejectionBoundExceeded(attempts)


def _weighted_values(
    target_density: TargetDensity,
    proposal: ProposalDensity,
    f: Callable[[Any], Any],
    n: int,
    rng: np.random.Generator,
    vectorized: bool,
) -> Tuple[np.ndarray, np.ndarray]:
    n = int(n)
    if n < 1:
        raise ValueError("標本数 n は 1 以上である必要があります。")
    xs = proposal.sample(rng, n)
    mu = evaluate_density(proposal.density, xs, vectorized=vectorized, name="proposal.density")
    if np.any(mu == 0.0):
        raise NonFiniteEvaluation("提案密度が自身の標本点で 0 になりました。")
    pi = evaluate_density(target_density, xs, vectorized=vectorized, name="target_density")
    values = evaluate(f, xs, vectorized=vectorized)
    with np.errstate(over="ignore"):
        weights = pi / mu
    if not np.all(np.isfinite(weights)):
        raise NonFiniteEvaluation("重み π/μ がオーバーフローしました。提案密度の裾を確認してください。")
    return values, weights


def _kish_ess(weights: np.ndarray) -> float:
    scale = float(np.max(weights)) if weights.size else 0.0
    if scale > 0.0:
        weights = weights / scale
    sum_sq = float(np.sum(weights**2))
    if sum_sq == 0.0:
        return 0.0
    return float(np.sum(weights)) ** 2 / sum_sq
