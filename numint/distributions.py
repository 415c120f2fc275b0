"""提案分布（proposal）の表現と、よく使う分布の構成関数。

ProposalDensity:
    i.i.d. の提案 μ。sample(rng, size) と density(x) の両方を持つ。
    rejection sampling / importance sampling で使う。

MarkovProposal:
    現在の状態に依存する提案 q(x, ·)。sample(x, rng) と density(x, z) を持つ。
    Metropolis-Hastings kernel の構成に使う。

乱数は常に呼び出し側が所有する np.random.Generator を引数で受け取り、
グローバルな乱数状態には触れない。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np

from .types import ArrayLike


@dataclass(frozen=True)
class ProposalDensity:
    """サンプリングと密度評価ができる i.i.d. 分布。

    Attributes:
        sampler: (rng, size) -> 標本。size=None なら 1 点、整数なら配列。
        density: x -> 密度値。配列を渡すと要素ごとの密度を返せることを推奨する。
        name: 表示用の名前。
    """

    sampler: Callable[[np.random.Generator, Optional[int]], Any]
    density: Callable[[Any], Any]
    name: str = "proposal"

    def sample(self, rng: np.random.Generator, size: Optional[int] = None) -> Any:
        return self.sampler(rng, size)

    def __call__(self, rng: np.random.Generator, size: Optional[int] = None) -> Any:
        # IIDSampler としてそのまま monte_carlo_mean に渡せるようにする。
        return self.sampler(rng, size)


@dataclass(frozen=True)
class MarkovProposal:
    """状態依存の提案分布 q(x, ·)。

    Attributes:
        sampler: (x, rng) -> 提案状態 z。
        density: (x, z) -> q(x, z)。対称である必要はない。
    """

    sampler: Callable[[Any, np.random.Generator], Any]
    density: Callable[[Any, Any], float]
    name: str = "markov_proposal"

    def sample(self, state: Any, rng: np.random.Generator) -> Any:
        return self.sampler(state, rng)


def normal(mean: float = 0.0, sd: float = 1.0) -> ProposalDensity:
    """正規分布 N(mean, sd^2)。"""
    mean = float(mean)
    sd = float(sd)
    if not np.isfinite(mean) or not np.isfinite(sd) or sd <= 0.0:
        raise ValueError("normal の mean は有限、sd は正の有限値である必要があります。")
    norm_const = 1.0 / (sd * np.sqrt(2.0 * np.pi))

    def density(x: ArrayLike) -> ArrayLike:
        z = (np.asarray(x, dtype=float) - mean) / sd
        return norm_const * np.exp(-0.5 * z * z)

    def sampler(rng: np.random.Generator, size: Optional[int] = None) -> Any:
        return rng.normal(mean, sd, size=size)

    return ProposalDensity(sampler=sampler, density=density, name=f"normal({mean}, {sd})")


def laplace(loc: float = 0.0, scale: float = 1.0) -> ProposalDensity:
    """Laplace 分布（両側指数分布）。密度は exp(-|x-loc|/scale) / (2 scale)。"""
    loc = float(loc)
    scale = float(scale)
    if not np.isfinite(loc) or not np.isfinite(scale) or scale <= 0.0:
        raise ValueError("laplace の loc は有限、scale は正の有限値である必要があります。")

    def density(x: ArrayLike) -> ArrayLike:
        return np.exp(-np.abs(np.asarray(x, dtype=float) - loc) / scale) / (2.0 * scale)

    def sampler(rng: np.random.Generator, size: Optional[int] = None) -> Any:
        return rng.laplace(loc, scale, size=size)

    return ProposalDensity(sampler=sampler, density=density, name=f"laplace({loc}, {scale})")


def uniform(low: float = 0.0, high: float = 1.0) -> ProposalDensity:
    """一様分布 U[low, high)。"""
    low = float(low)
    high = float(high)
    if not np.isfinite(low) or not np.isfinite(high) or high <= low:
        raise ValueError("uniform は有限な low < high が必要です。")
    height = 1.0 / (high - low)

    def density(x: ArrayLike) -> ArrayLike:
        x_arr = np.asarray(x, dtype=float)
        return np.where((x_arr >= low) & (x_arr < high), height, 0.0)

    def sampler(rng: np.random.Generator, size: Optional[int] = None) -> Any:
        return rng.uniform(low, high, size=size)

    return ProposalDensity(sampler=sampler, density=density, name=f"uniform({low}, {high})")


def random_walk_proposal(scale: float = 1.0) -> MarkovProposal:
    """ガウス型ランダムウォーク提案 z = x + scale·ε（対称）。"""
    scale = float(scale)
    if not np.isfinite(scale) or scale <= 0.0:
        raise ValueError("scale は正の有限値である必要があります。")
    norm_const = 1.0 / (scale * np.sqrt(2.0 * np.pi))

    def density(x: Any, z: Any) -> float:
        diff = (np.asarray(z, dtype=float) - np.asarray(x, dtype=float)) / scale
        # 多次元状態では成分ごとの密度の積になる。
        return float(np.prod(norm_const * np.exp(-0.5 * diff * diff)))

    def sampler(x: Any, rng: np.random.Generator) -> Any:
        x_arr = np.asarray(x, dtype=float)
        step = rng.normal(0.0, scale, size=x_arr.shape)
        if x_arr.ndim == 0:
            return float(x_arr + step)
        return x_arr + step

    return MarkovProposal(sampler=sampler, density=density, name=f"random_walk({scale})")
