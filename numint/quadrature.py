"""区間積分を数値近似するための求積（Quadrature）則。

目的:
    ∫_a^b f(x) dx を、評価点 v と重み w による加重和 Σ w_i f(v_i) で近似する。
    規則（IntervalRule）は参照区間 [-1,1] 上で一度だけ構成し、
    アフィン変換 x = a + (b-a)(t+1)/2 で各小区間へ写して使い回す。

提供する規則:
    - Newton-Cotes（k=1,2,3 / 閉・開）: rectangle, trapezoid, simpson, midpoint ほか
    - Gauss-Legendre（k=1..5）: 次数 2k-1 までの多項式で厳密

大域的な精度は composite_rule の小区間数 n で制御する。
合成則の誤差は O(n^{-r}) で減少する（r は IntervalRule.order）。

注意:
    a > b は InvalidInterval とする（向き付き積分として符号反転はしない）。
    a == b は f を一度も評価せず 0.0 を返す。
"""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from ._evaluation import evaluate
from .errors import InvalidInterval, RuleNotImplemented
from .interpolation import lagrange_basis
from .partition import Partition

SUPPORTED_NEWTON_COTES = (1, 2, 3)
SUPPORTED_GAUSS_LEGENDRE = (1, 2, 3, 4, 5)

_CLOSED_NAMES = {1: "rectangle", 2: "trapezoid", 3: "simpson"}
_OPEN_NAMES = {1: "midpoint", 2: "open_newton_cotes_2", 3: "open_newton_cotes_3"}


@dataclass(frozen=True)
class IntervalRule:
    """参照区間 [-1,1] 上の求積則。

    Attributes:
        name: 規則名。
        points: 参照区間上の評価点（昇順）。
        weights: 対応する重み。定数関数 1 を厳密に積分するので和は 2。
        degree: 厳密に積分できる多項式の最大次数。
        order: 合成則の誤差の減衰次数 r（誤差 = O(n^{-r})）。
    """

    name: str
    points: Tuple[float, ...]
    weights: Tuple[float, ...]
    degree: int
    order: int

    def __post_init__(self) -> None:
        if len(self.points) == 0:
            raise ValueError("points が空です。")
        if len(self.points) != len(self.weights):
            raise ValueError("points と weights の長さが一致しません。")

    @property
    def n_points(self) -> int:
        return len(self.points)

    def nodes_weights(self, a: float, b: float) -> Tuple[np.ndarray, np.ndarray]:
        """区間 [a,b] に写した評価点と重みを返す。

        Returns:
            (v, w)
            - v: 評価点（形状 (k,)）
            - w: 重み（形状 (k,)、和は b-a）
        """
        half = 0.5 * (float(b) - float(a))
        t = np.asarray(self.points, dtype=float)
        v = float(a) + half * (t + 1.0)
        w = half * np.asarray(self.weights, dtype=float)
        return v, w


def newton_cotes_rule(k: int, closed: bool = True) -> IntervalRule:
    """k 点の Newton-Cotes 則を返す。

    重みは各 Lagrange 基底多項式を [-1,1] で厳密に積分して求める。
    閉じた k=1 は慣例により左端点（rectangle）を使う。

    Args:
        k: 評価点数（1, 2, 3）。
        closed: True なら端点を含む閉公式、False なら内点のみの開公式。

    Raises:
        ValueError: k < 1 の場合。
        RuleNotImplemented: k が未対応の場合。
    """
    k = int(k)
    if k < 1:
        raise ValueError("評価点数 k は 1 以上である必要があります。")
    if k not in SUPPORTED_NEWTON_COTES:
        raise RuleNotImplemented(
            f"Newton-Cotes は k={SUPPORTED_NEWTON_COTES} のみ対応しています（k={k}）。"
        )

    if closed:
        points = np.array([-1.0]) if k == 1 else np.linspace(-1.0, 1.0, k)
        name = _CLOSED_NAMES[k]
    else:
        points = np.linspace(-1.0, 1.0, k + 2)[1:-1]
        name = _OPEN_NAMES[k]

    weights = []
    for i in range(k):
        antiderivative = lagrange_basis(points, i).integ()
        weights.append(float(antiderivative(1.0) - antiderivative(-1.0)))

    # 対称な点配置では奇数点の規則が 1 次余分に厳密になる。左端点則は非対称なので 0 次。
    if closed and k == 1:
        degree = 0
    else:
        degree = k if k % 2 == 1 else k - 1
    return IntervalRule(
        name=name,
        points=tuple(float(p) for p in points),
        weights=tuple(weights),
        degree=degree,
        order=degree + 1,
    )


def gauss_legendre_rule(k: int) -> IntervalRule:
    """k 点の Gauss-Legendre 則を返す。次数 2k-1 までの多項式で厳密。

    Raises:
        ValueError: k < 1 の場合。
        RuleNotImplemented: k が未対応の場合。
    """
    k = int(k)
    if k < 1:
        raise ValueError("評価点数 k は 1 以上である必要があります。")
    if k not in SUPPORTED_GAUSS_LEGENDRE:
        raise RuleNotImplemented(
            f"Gauss-Legendre は k={SUPPORTED_GAUSS_LEGENDRE} のみ対応しています（k={k}）。"
        )
    nodes, weights = np.polynomial.legendre.leggauss(k)
    return IntervalRule(
        name=f"gauss_legendre_{k}",
        points=tuple(float(p) for p in nodes),
        weights=tuple(float(w) for w in weights),
        degree=2 * k - 1,
        order=2 * k,
    )


def rule_from_config(config: Optional[Dict[str, Any]]) -> IntervalRule:
    """設定辞書から求積則を構成する。

    config の想定:
        - "rule": "gauss_legendre" / "newton_cotes" / "rectangle" / "midpoint" /
          "trapezoid" / "simpson"
        - "Q": 評価点数（gauss_legendre, newton_cotes のみ。既定は 5 と 3）
        - "closed": newton_cotes の閉/開（既定 True）

    Raises:
        ValueError: 未知の rule、または名前付き規則と Q が矛盾する場合。
        RuleNotImplemented: Q が未対応の場合。
    """
    config = config or {}
    rule = _normalize_rule(config.get("rule", "gauss_legendre"))
    q = config.get("Q")

    if rule == "gauss_legendre":
        return gauss_legendre_rule(5 if q is None else int(q))
    if rule == "newton_cotes":
        closed = bool(config.get("closed", True))
        return newton_cotes_rule(3 if q is None else int(q), closed=closed)

    named = {
        "rectangle": (1, True),
        "midpoint": (1, False),
        "trapezoid": (2, True),
        "simpson": (3, True),
    }
    if rule not in named:
        raise ValueError(f"未知の rule が指定されました: {rule!r}")
    k, closed = named[rule]
    if q is not None and int(q) != k:
        raise ValueError(f"rule={rule!r} の Q は {k} である必要があります（Q={q}）。")
    return newton_cotes_rule(k, closed=closed)


def apply_rule(
    rule: IntervalRule,
    f: Callable[[Any], Any],
    a: float,
    b: float,
    vectorized: bool = False,
) -> float:
    """Σ w_i f(v_i) を [a,b] 上で 1 回だけ評価する。"""
    a_float, b_float = _validate_bounds(a, b)
    if a_float == b_float:
        return 0.0
    v, w = rule.nodes_weights(a_float, b_float)
    values = evaluate(f, v, vectorized=vectorized)
    return float(np.dot(values, w))


def composite_rule(
    rule: IntervalRule,
    f: Callable[[Any], Any],
    a: float,
    b: float,
    n: int,
    vectorized: bool = False,
    workers: Optional[int] = None,
) -> float:
    """[a,b] を n 等分し、各小区間に rule を適用して合計する。

    Args:
        rule: 各小区間で使う求積則。
        f: 被積分関数。
        a, b: 積分区間（a <= b）。
        n: 小区間数（1 以上）。
        vectorized: True なら f を評価点の配列で呼ぶ。
        workers: 指定するとスレッドプールで小区間ごとに並列評価する。

    Returns:
        積分の近似値。小区間ごとの部分和を math.fsum で合計するため、
        workers の値によらず同じ結果になる。

    Raises:
        ValueError: n < 1、または [a,b] を n 等分できないほど区間が狭い場合。
        InvalidInterval: a, b が非有限、または a > b の場合。
        NonFiniteEvaluation: f が NaN/inf を返した場合。
    """
    if int(n) < 1:
        raise ValueError("小区間数 n は 1 以上である必要があります。")
    a_float, b_float = _validate_bounds(a, b)
    if a_float == b_float:
        return 0.0
    partition = Partition.uniform(a_float, b_float, int(n))

    if workers is not None and int(workers) > 1:

        def interval_sum(bounds: Tuple[int, float, float]) -> float:
            _, lo, hi = bounds
            v, w = rule.nodes_weights(lo, hi)
            return float(np.dot(evaluate(f, v, vectorized=vectorized), w))

        with ThreadPoolExecutor(max_workers=int(workers)) as executor:
            partials = list(executor.map(interval_sum, partition.intervals()))
        return math.fsum(partials)

    nodes = []
    weights = []
    for _, lo, hi in partition.intervals():
        v, w = rule.nodes_weights(lo, hi)
        nodes.append(v)
        weights.append(w)
    values = evaluate(f, np.concatenate(nodes), vectorized=vectorized)
    values = values.reshape(partition.n_intervals, rule.n_points)
    partials = [float(np.dot(values[k], weights[k])) for k in range(len(weights))]
    return math.fsum(partials)


def integrate_nd(
    f: Callable[[np.ndarray], float],
    lower_bounds: Sequence[float],
    upper_bounds: Sequence[float],
    n: int,
    rule: Optional[IntervalRule] = None,
) -> float:
    """d 次元の直方体上の積分を Fubini の定理で 1 次元積分の入れ子に帰着する。

    各次元で合成 Gauss-Legendre（k=5）を用い、1 次元ごとに 1 段の再帰を行う。
    f の評価回数は (n·k)^d で、次元 d に対して指数的に増える（次元の呪い）。
    これは手法の性質であり、d が大きい場合は Monte Carlo 法を使う。

    Args:
        f: 長さ d の 1 次元配列を受け取り実数を返す関数。
        lower_bounds: 各次元の下端。
        upper_bounds: 各次元の上端。
        n: 各次元の小区間数。
        rule: 各次元で使う求積則（既定は gauss_legendre_rule(5)）。

    Raises:
        ValueError: 次元数が 0、または上下端の長さが一致しない場合。
        InvalidInterval: 端点が非有限、または下端 > 上端の場合。
    """
    lower = tuple(float(x) for x in lower_bounds)
    upper = tuple(float(x) for x in upper_bounds)
    if len(lower) == 0:
        raise ValueError("次元数は 1 以上である必要があります。")
    if len(lower) != len(upper):
        raise ValueError("lower_bounds と upper_bounds の長さが一致しません。")
    if int(n) < 1:
        raise ValueError("小区間数 n は 1 以上である必要があります。")
    for lo, hi in zip(lower, upper):
        _validate_bounds(lo, hi)
    if any(lo == hi for lo, hi in zip(lower, upper)):
        return 0.0
    if rule is None:
        rule = gauss_legendre_rule(5)
    return _integrate_axis(f, lower, upper, int(n), rule, ())


def _integrate_axis(
    f: Callable[[np.ndarray], float],
    lower: Tuple[float, ...],
    upper: Tuple[float, ...],
    n: int,
    rule: IntervalRule,
    prefix: Tuple[float, ...],
) -> float:
    axis = len(prefix)
    # prefix は既定引数で束縛し、構成時の値を固定する。
    if axis == len(lower) - 1:

        def inner(t: float, prefix: Tuple[float, ...] = prefix) -> float:
            return f(np.array(prefix + (float(t),), dtype=float))

    else:

        def inner(t: float, prefix: Tuple[float, ...] = prefix) -> float:
            return _integrate_axis(f, lower, upper, n, rule, prefix + (float(t),))

    return composite_rule(rule, inner, lower[axis], upper[axis], n)


def estimate_convergence_order(
    rule: IntervalRule,
    f: Callable[[Any], Any],
    a: float,
    b: float,
    exact: float,
    ns: Sequence[int],
    vectorized: bool = False,
) -> float:
    """log|誤差| を log n に最小二乗で回帰し、傾きの符号を反転して返す。

    合成則の誤差が O(n^{-r}) なら戻り値はおよそ r になる。

    Raises:
        ValueError: ns が 2 点未満、または誤差が 0 になる n が含まれる場合。
    """
    ns_array = np.asarray(list(ns), dtype=int)
    if ns_array.size < 2:
        raise ValueError("ns は 2 点以上必要です。")
    errors = np.array(
        [
            abs(composite_rule(rule, f, a, b, int(n), vectorized=vectorized) - exact)
            for n in ns_array
        ],
        dtype=float,
    )
    if np.any(errors <= 0.0):
        raise ValueError("誤差が 0 になる n があるため、収束次数を推定できません。")
    slope, _ = np.polyfit(np.log(ns_array), np.log(errors), 1)
    return float(-slope)


def _validate_bounds(a: float, b: float) -> Tuple[float, float]:
    a_float = float(a)
    b_float = float(b)
    if not np.isfinite(a_float) or not np.isfinite(b_float):
        raise InvalidInterval("a,b は有限値である必要があります。")
    if a_float > b_float:
        raise InvalidInterval("a は b 以下である必要があります。")
    return a_float, b_float


def _normalize_rule(rule: Any) -> str:
    if rule is None:
        return "gauss_legendre"
    return str(rule).strip().lower().replace("-", "_")
