"""Lagrange 補間多項式。

目的:
    点列 {(x_i, f(x_i))} を通る唯一の多項式 p（次数 len(points)-1）を構成する。
    Newton-Cotes 則の重みは、この Lagrange 基底多項式を区間上で厳密に積分して得る。

設計意図:
    - 基底多項式は numpy.polynomial.Polynomial として保持し、積分は integ() で閉形式に行う
    - 重複点は Lagrange 基底の分母が 0 になるため、構成時に DegenerateInterpolation とする
"""

from __future__ import annotations

from typing import Callable, List, Sequence

import numpy as np
from numpy.polynomial import Polynomial

from ._evaluation import evaluate
from .errors import DegenerateInterpolation, InvalidInterval
from .types import ArrayLike


def lagrange_basis(points: Sequence[float], i: int) -> Polynomial:
    """i 番目の Lagrange 基底多項式 ℓ_i(x) = Π_{j≠i} (x - x_j) / (x_i - x_j) を返す。"""
    x = np.asarray(points, dtype=float)
    others = np.delete(x, i)
    denom = float(np.prod(x[i] - others))
    if denom == 0.0:
        raise DegenerateInterpolation("補間点に重複があります。")
    return Polynomial.fromroots(others) / denom


class LagrangePolynomial:
    """補間点と値を保持する Lagrange 補間多項式。"""

    def __init__(self, points: Sequence[float], values: Sequence[float]) -> None:
        self.points = _validate_points(points)
        self.values = np.asarray(values, dtype=float).reshape(-1)
        if self.values.shape != self.points.shape:
            raise ValueError("points と values の長さが一致しません。")
        self._basis: List[Polynomial] = [
            lagrange_basis(self.points, i) for i in range(len(self.points))
        ]

    @property
    def degree(self) -> int:
        return len(self.points) - 1

    def basis(self, i: int) -> Polynomial:
        return self._basis[i]

    def as_polynomial(self) -> Polynomial:
        """Σ f(x_i) ℓ_i(x) を 1 本の Polynomial にまとめて返す。"""
        total = Polynomial([0.0])
        for value, ell in zip(self.values, self._basis):
            total = total + float(value) * ell
        return total

    def __call__(self, x: ArrayLike) -> ArrayLike:
        # 基底ごとの評価を足し合わせる（as_polynomial の係数は丸め誤差を拾いやすい）。
        x_arr = np.asarray(x, dtype=float)
        result = np.zeros_like(x_arr)
        for value, ell in zip(self.values, self._basis):
            result = result + value * ell(x_arr)
        if result.ndim == 0:
            return float(result)
        return result

    def integrate(self, a: float, b: float) -> float:
        """∫_a^b p(x) dx を基底多項式の原始関数から閉形式で計算する。"""
        total = 0.0
        for value, ell in zip(self.values, self._basis):
            antiderivative = ell.integ()
            total += float(value) * float(antiderivative(b) - antiderivative(a))
        return total


def interpolate(
    f: Callable[[float], float],
    points: Sequence[float],
    vectorized: bool = False,
) -> LagrangePolynomial:
    """f を points で補間する Lagrange 多項式を返す。

    Args:
        f: 補間対象の関数。
        points: 補間点（重複不可）。
        vectorized: True なら f を配列で 1 回だけ呼ぶ。

    Returns:
        次数 len(points)-1 の LagrangePolynomial。

    Raises:
        DegenerateInterpolation: points が空、または重複を含む場合。
        InvalidInterval: points に NaN/inf が含まれる場合。
        NonFiniteEvaluation: f の値に NaN/inf が含まれる場合。
    """
    x = _validate_points(points)
    values = evaluate(f, x, vectorized=vectorized)
    return LagrangePolynomial(x, values)


def _validate_points(points: Sequence[float]) -> np.ndarray:
    x = np.asarray(points, dtype=float).reshape(-1)
    if x.size == 0:
        raise DegenerateInterpolation("補間点が空です。")
    if not np.all(np.isfinite(x)):
        raise InvalidInterval("補間点に NaN/inf が含まれています。")
    if np.unique(x).size != x.size:
        raise DegenerateInterpolation("補間点に重複があります。")
    return x
