"""Metropolis-Hastings kernel、kernel の合成、鎖のシミュレーション。

kernel は閉じた有限個の型（MetropolisHastingsKernel / MixtureKernel /
CycleKernel / FunctionKernel）のいずれかで表し、apply_kernel が型ごとに
処理を振り分ける。文字列タグによる動的な探索は行わない。

不変測度について:
    - MH kernel は提案 q の対称性によらず π に関して可逆（詳細釣り合い）
    - 混合（mix_kernels）は各構成要素が π 不変なら π 不変
    - 巡回（cycle_kernels）も各構成要素が π 不変なら π 不変だが、
      構成要素が可逆でも合成は一般に可逆ではない

simulate_chain は burn-in の除去や間引きを行わない（呼び出し側の責務）。
"""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
from tqdm.auto import tqdm

from ._evaluation import check_density, density_value, evaluate
from .distributions import MarkovProposal
from .montecarlo import MonteCarloEstimate
from .types import Integrand, TargetDensity


@dataclass(frozen=True)
class MetropolisHastingsKernel:
    """目標密度 π と提案 q から作る MH kernel。"""

    target_density: TargetDensity
    proposal: MarkovProposal

    def acceptance_probability(self, x: Any, z: Any) -> float:
        """min(1, π(z) q(z,x) / (π(x) q(x,z))) を返す。

        分母が 0（現在の状態が π の台の外など）の場合は比を +inf とみなして 1 を返す。
        """
        pi_x = density_value(self.target_density, x, name="target_density")
        pi_z = density_value(self.target_density, z, name="target_density")
        q_xz = check_density(self.proposal.density(x, z), name="proposal.density")
        q_zx = check_density(self.proposal.density(z, x), name="proposal.density")
        numerator = pi_z * q_zx
        denominator = pi_x * q_xz
        if denominator == 0.0:
            return 1.0
        return min(1.0, numerator / denominator)

    def step(self, state: Any, rng: np.random.Generator) -> Any:
        """kernel を 1 回適用して次の状態を返す。"""
        return apply_kernel(self, state, rng)

    def __call__(self, state: Any, rng: np.random.Generator) -> Any:
        return self.step(state, rng)


@dataclass(frozen=True)
class MixtureKernel:
    """確率 weights[i] で kernels[i] を 1 回適用する kernel。"""

    kernels: Tuple["MarkovKernel", ...]
    weights: Tuple[float, ...]

    def step(self, state: Any, rng: np.random.Generator) -> Any:
        return apply_kernel(self, state, rng)

    def __call__(self, state: Any, rng: np.random.Generator) -> Any:
        return self.step(state, rng)


@dataclass(frozen=True)
class CycleKernel:
    """kernels を順番に 1 回ずつ適用する kernel。"""

    kernels: Tuple["MarkovKernel", ...]

    def step(self, state: Any, rng: np.random.Generator) -> Any:
        return apply_kernel(self, state, rng)

    def __call__(self, state: Any, rng: np.random.Generator) -> Any:
        return self.step(state, rng)


@dataclass(frozen=True)
class FunctionKernel:
    """利用者が与える遷移関数 (state, rng) -> state を包む kernel。

    π 不変性は利用者の責任で保証する。
    """

    func: Callable[[Any, np.random.Generator], Any]

    def step(self, state: Any, rng: np.random.Generator) -> Any:
        return apply_kernel(self, state, rng)

    def __call__(self, state: Any, rng: np.random.Generator) -> Any:
        return self.step(state, rng)


MarkovKernel = Union[MetropolisHastingsKernel, MixtureKernel, CycleKernel, FunctionKernel]


def apply_kernel(kernel: MarkovKernel, state: Any, rng: np.random.Generator) -> Any:
    """kernel を 1 回適用して次の状態を返す。

    Raises:
        TypeError: kernel が既知の型でない場合。
    """
    if isinstance(kernel, MetropolisHastingsKernel):
        proposed = kernel.proposal.sample(state, rng)
        alpha = kernel.acceptance_probability(state, proposed)
        if rng.uniform() < alpha:
            return proposed
        return state
    if isinstance(kernel, MixtureKernel):
        index = int(rng.choice(len(kernel.kernels), p=kernel.weights))
        return apply_kernel(kernel.kernels[index], state, rng)
    if isinstance(kernel, CycleKernel):
        for component in kernel.kernels:
            state = apply_kernel(component, state, rng)
        return state
    if isinstance(kernel, FunctionKernel):
        return kernel.func(state, rng)
    raise TypeError(f"未知の kernel 型です: {type(kernel).__name__}")


def build_metropolis_hastings_kernel(
    target_density: TargetDensity, proposal: MarkovProposal
) -> MetropolisHastingsKernel:
    """π と提案 q から MH kernel を構成する。q は対称でなくてよい。"""
    if not callable(target_density):
        raise TypeError("target_density は呼び出し可能である必要があります。")
    if not isinstance(proposal, MarkovProposal):
        raise TypeError("proposal は MarkovProposal である必要があります。")
    return MetropolisHastingsKernel(target_density=target_density, proposal=proposal)


def mix_kernels(kernels: Sequence[Any], weights: Sequence[float]) -> MixtureKernel:
    """確率関数 weights による kernel の混合。

    Raises:
        ValueError: kernels が空、長さ不一致、weights が非負・有限・和 1 でない場合。
    """
    components = tuple(_as_kernel(k) for k in kernels)
    if not components:
        raise ValueError("kernels が空です。")
    w = np.asarray(weights, dtype=float).reshape(-1)
    if w.shape[0] != len(components):
        raise ValueError("kernels と weights の長さが一致しません。")
    if not np.all(np.isfinite(w)) or np.any(w < 0.0):
        raise ValueError("weights は非負の有限値である必要があります。")
    if not math.isclose(float(np.sum(w)), 1.0, rel_tol=0.0, abs_tol=1e-9):
        raise ValueError("weights の和は 1 である必要があります。")
    w = w / np.sum(w)
    return MixtureKernel(kernels=components, weights=tuple(float(x) for x in w))


def cycle_kernels(kernels: Sequence[Any]) -> CycleKernel:
    """kernels を順に適用する合成 kernel。"""
    components = tuple(_as_kernel(k) for k in kernels)
    if not components:
        raise ValueError("kernels が空です。")
    return CycleKernel(kernels=components)


@dataclass(frozen=True)
class Chain:
    """kernel の反復適用で得た状態列。states[0] は初期状態。"""

    states: Tuple[Any, ...]

    def __len__(self) -> int:
        return len(self.states)

    def __getitem__(self, index: int) -> Any:
        return self.states[index]

    def __iter__(self) -> Iterator[Any]:
        return iter(self.states)

    def to_array(self) -> np.ndarray:
        return np.asarray(self.states)

    def discard(self, burn_in: int) -> "Chain":
        """先頭 burn_in 個を捨てた鎖を返す。"""
        burn_in = int(burn_in)
        if burn_in < 0 or burn_in >= len(self.states):
            raise ValueError("burn_in は 0 以上かつ鎖の長さ未満である必要があります。")
        return Chain(self.states[burn_in:])

    def thin(self, step: int) -> "Chain":
        step = int(step)
        if step < 1:
            raise ValueError("step は 1 以上である必要があります。")
        return Chain(self.states[::step])

    def move_rate(self) -> float:
        """隣接する状態が異なっていた割合（MH では受理率の推定になる）。"""
        if len(self.states) < 2:
            return 0.0
        moves = sum(
            1
            for prev, curr in zip(self.states[:-1], self.states[1:])
            if not np.array_equal(prev, curr)
        )
        return moves / (len(self.states) - 1)


def simulate_chain(
    kernel: MarkovKernel,
    initial_state: Any,
    length: int,
    rng: np.random.Generator,
    progress: bool = False,
) -> Chain:
    """初期状態から kernel を length-1 回適用し、長さ length の鎖を返す。

    同じ rng の状態と initial_state からは常に同じ鎖が得られる。
    各ステップは直前の状態に依存するため、鎖の内部では並列化できない。

    Args:
        kernel: 遷移 kernel。
        initial_state: 初期状態（鎖の先頭に含める）。
        length: 鎖の長さ（1 以上）。
        rng: 乱数生成器。
        progress: True なら tqdm の進捗バーを表示する。
    """
    length = int(length)
    if length < 1:
        raise ValueError("length は 1 以上である必要があります。")
    kernel = _as_kernel(kernel)
    state = initial_state
    states: List[Any] = [state]
    for _ in tqdm(range(length - 1), desc="MCMC", leave=False, disable=not progress):
        state = apply_kernel(kernel, state, rng)
        states.append(state)
    return Chain(tuple(states))


def simulate_chains(
    kernel: MarkovKernel,
    initial_states: Sequence[Any],
    length: int,
    rng: np.random.Generator,
    workers: Optional[int] = None,
) -> List[Chain]:
    """独立な複数の鎖を生成する。各鎖は rng から spawn した Generator を使う。

    鎖ごとに乱数列が固定されるため、workers の値によらず同じ鎖が得られる。
    """
    initial = list(initial_states)
    if not initial:
        raise ValueError("initial_states が空です。")
    children = rng.spawn(len(initial))

    def run(job: Tuple[Any, np.random.Generator]) -> Chain:
        start, child = job
        return simulate_chain(kernel, start, length, child)

    jobs = list(zip(initial, children))
    if workers is not None and int(workers) > 1:
        with ThreadPoolExecutor(max_workers=int(workers)) as executor:
            return list(executor.map(run, jobs))
    return [run(job) for job in jobs]


def ergodic_mean(
    chain: Chain,
    f: Integrand,
    burn_in: int = 0,
    n_batches: Optional[int] = None,
    vectorized: bool = False,
) -> MonteCarloEstimate:
    """鎖に沿ったエルゴード平均と、バッチ平均法による分散推定を返す。

    Args:
        chain: 状態列。
        f: テスト関数。
        burn_in: 先頭から捨てる状態数。
        n_batches: バッチ数。既定は floor(sqrt(m))（m は burn-in 後の長さ）。
        vectorized: True なら f を状態配列で 1 回呼ぶ。
    """
    if burn_in:
        chain = chain.discard(burn_in)
    values = evaluate(f, chain.to_array(), vectorized=vectorized)
    m = values.shape[0]
    estimate = float(np.mean(values))

    b = int(n_batches) if n_batches is not None else max(2, int(math.sqrt(m)))
    size = m // b if b > 0 else 0
    if b < 2 or size < 1:
        raise ValueError("バッチ平均には 2 個以上のバッチと各バッチ 1 点以上が必要です。")
    batch_means = values[: b * size].reshape(b, size).mean(axis=1)
    variance = size * float(np.var(batch_means, ddof=1)) / m
    sample_var = float(np.var(values, ddof=1)) if m > 1 else 0.0
    ess = sample_var / variance if variance > 0.0 else float(m)
    return MonteCarloEstimate(estimate, variance, m, ess)


def _as_kernel(kernel: Any) -> MarkovKernel:
    if isinstance(kernel, (MetropolisHastingsKernel, MixtureKernel, CycleKernel, FunctionKernel)):
        return kernel
    if callable(kernel):
        return FunctionKernel(kernel)
    raise TypeError(f"kernel として扱えません: {type(kernel).__name__}")
