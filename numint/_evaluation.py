"""関数評価の共通処理。

求積と Monte Carlo の両方で「点列で f を評価し、有限値であることを確認する」
処理が必要になるため、ここにまとめる。
"""

from __future__ import annotations

from typing import Any, Callable, Sequence

import numpy as np

from .errors import NegativeDensity, NonFiniteEvaluation


def evaluate(
    f: Callable[[Any], Any],
    xs: Sequence[Any],
    *,
    vectorized: bool = False,
    name: str = "f",
) -> np.ndarray:
    """点列 xs で f を評価し、float 配列として返す。

    Args:
        f: 評価する関数。
        xs: 評価点の列。
        vectorized: True なら f(xs) を 1 回だけ呼ぶ。False なら点ごとに呼ぶ。
        name: エラーメッセージに使う関数名。

    Raises:
        NonFiniteEvaluation: 評価値に NaN/inf が含まれる場合。
        ValueError: vectorized=True で戻り値の長さが点数と一致しない場合。
    """
    if vectorized:
        values = np.asarray(f(xs), dtype=float).reshape(-1)
        if values.shape[0] != len(xs):
            raise ValueError(
                f"{name} の戻り値の長さ {values.shape[0]} が評価点数 {len(xs)} と一致しません。"
            )
    else:
        values = np.fromiter((float(f(x)) for x in xs), dtype=float, count=len(xs))
    ensure_finite(values, name=name)
    return values


def ensure_finite(values: np.ndarray, *, name: str = "f") -> None:
    if not np.all(np.isfinite(values)):
        bad = int(np.count_nonzero(~np.isfinite(values)))
        raise NonFiniteEvaluation(f"{name} が NaN/inf を返しました（{bad} 点）。")


def evaluate_density(
    density: Callable[[Any], Any],
    xs: Sequence[Any],
    *,
    vectorized: bool = False,
    name: str = "density",
) -> np.ndarray:
    """密度を評価し、有限かつ非負であることを確認する。"""
    values = evaluate(density, xs, vectorized=vectorized, name=name)
    if np.any(values < 0.0):
        raise NegativeDensity(f"{name} が負の値を返しました。")
    return values


def density_value(density: Callable[[Any], Any], x: Any, *, name: str = "density") -> float:
    """1 点での密度評価（rejection sampling・Markov kernel 用）。"""
    return check_density(density(x), name=name)


def check_density(raw: Any, *, name: str = "density") -> float:
    value = float(raw)
    if not np.isfinite(value):
        raise NonFiniteEvaluation(f"{name} が NaN/inf を返しました。")
    if value < 0.0:
        raise NegativeDensity(f"{name} が負の値を返しました。")
    return value
