"""区間 [a,b] の分割（Partition）を扱うユーティリティ。

責務:
    - 境界点列 (x0, x1, ..., xn) を保持する
    - 点 x が属する小区間インデックス k を計算する
    - 合成則のための小区間列 (k, a_k, b_k) を生成する
"""

from __future__ import annotations

from typing import Iterator, Sequence, Tuple

import numpy as np

from .errors import InvalidInterval
from .types import ArrayLike


class Partition:
    """狭義単調増加な境界点列による区間分割。"""

    def __init__(self, boundaries: Sequence[float]) -> None:
        # 境界は後で参照しやすいよう tuple 化して保持する（不変化）。
        self.boundaries = tuple(float(t) for t in boundaries)
        if len(self.boundaries) < 2:
            raise ValueError("boundaries は 2 点以上である必要があります")
        if any(not np.isfinite(t) for t in self.boundaries):
            raise InvalidInterval("boundaries に NaN/inf が含まれています")
        if np.any(np.diff(np.asarray(self.boundaries, dtype=float)) <= 0):
            raise InvalidInterval("boundaries は狭義単調増加である必要があります")

    @classmethod
    def uniform(cls, a: float, b: float, n: int) -> "Partition":
        """[a,b] を n 個の等幅小区間に分割する。

        端点は a, b と厳密に一致させる（linspace の最後の点は丸めで b からずれ得る）。

        Raises:
            ValueError: n < 1、または n が大きすぎて小区間幅が浮動小数点の刻みを下回る場合。
            InvalidInterval: a, b が非有限、または a >= b の場合。
        """
        n_int = int(n)
        if n_int < 1:
            raise ValueError("小区間数 n は 1 以上である必要があります")
        a_float = float(a)
        b_float = float(b)
        if not np.isfinite(a_float) or not np.isfinite(b_float):
            raise InvalidInterval("a,b は有限値である必要があります")
        if a_float >= b_float:
            raise InvalidInterval("等幅分割には a < b が必要です")
        grid = np.linspace(a_float, b_float, n_int + 1, dtype=float)
        grid[0] = a_float
        grid[-1] = b_float
        if np.any(np.diff(grid) <= 0.0):
            raise ValueError(
                f"n={n_int} は区間 [{a_float!r}, {b_float!r}] の浮動小数点分解能に対して大きすぎます"
            )
        return cls(grid)

    @property
    def n_intervals(self) -> int:
        return len(self.boundaries) - 1

    @property
    def lower(self) -> float:
        return self.boundaries[0]

    @property
    def upper(self) -> float:
        return self.boundaries[-1]

    def interval_index(self, x: ArrayLike) -> ArrayLike:
        """各点 x が属する小区間インデックス k（1-based）を返す。

        x_{k-1} <= x < x_k を満たす k を返す。右端 x == x_n のみ k = n に丸める。

        Raises:
            ValueError: x に NaN/inf、または分割の範囲外の点が含まれる場合。
        """
        x_array = np.asarray(x, dtype=float)
        if np.any(~np.isfinite(x_array)):
            raise ValueError("x に NaN/inf が含まれています")
        grid = np.asarray(self.boundaries, dtype=float)
        if np.any(x_array < grid[0]) or np.any(x_array > grid[-1]):
            raise ValueError("x に分割の範囲外の点が含まれています")

        # searchsorted(side='right') は x==x_k のとき k+1 を返すので、右端だけ n に丸める。
        idx = np.searchsorted(grid, x_array, side="right")
        idx = np.clip(idx, 1, self.n_intervals)
        return idx.astype(int)

    def intervals(self) -> Iterator[Tuple[int, float, float]]:
        """小区間 (k, a_k, b_k) を k = 1..n の順に列挙する。"""
        for k in range(1, len(self.boundaries)):
            yield k, self.boundaries[k - 1], self.boundaries[k]

    def widths(self) -> np.ndarray:
        return np.diff(np.asarray(self.boundaries, dtype=float))
