"""設定ファイルから名前で参照できる関数・分布の一覧。

設定ファイルには Python の関数を書けないため、被積分関数・テスト関数・分布を
名前で登録しておき、runner がここから取り出す。
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

from .distributions import ProposalDensity, laplace, normal, uniform


def _poly5(x: Any) -> Any:
    return 1.0 + x + x**2 + x**3 + x**4 + x**5


def _poly5_antiderivative(x: Any) -> Any:
    return x + x**2 / 2 + x**3 / 3 + x**4 / 4 + x**5 / 5 + x**6 / 6


# 名前 -> (被積分関数, 原始関数)。原始関数は誤差の評価に使う。
INTEGRANDS: Dict[str, Tuple[Callable[[Any], Any], Callable[[Any], Any]]] = {
    "sin": (np.sin, lambda x: -np.cos(x)),
    "cos": (np.cos, np.sin),
    "exp": (np.exp, np.exp),
    "poly5": (_poly5, _poly5_antiderivative),
}

TEST_FUNCTIONS: Dict[str, Callable[[Any], Any]] = {
    "identity": lambda x: np.asarray(x, dtype=float),
    "square": lambda x: np.asarray(x, dtype=float) ** 2,
    "sin": np.sin,
    "cos": np.cos,
}

DISTRIBUTIONS: Dict[str, Callable[..., ProposalDensity]] = {
    "normal": normal,
    "laplace": laplace,
    "uniform": uniform,
}


def get_integrand(name: str) -> Tuple[Callable[[Any], Any], Callable[[Any], Any]]:
    try:
        return INTEGRANDS[str(name).strip().lower()]
    except KeyError:
        raise ValueError(
            f"未知の integrand です: {name!r}（候補: {sorted(INTEGRANDS)}）"
        ) from None


def exact_integral(name: str, a: float, b: float) -> float:
    """登録済み被積分関数の [a,b] 上の厳密な積分値。"""
    _, antiderivative = get_integrand(name)
    return float(antiderivative(float(b)) - antiderivative(float(a)))


def get_test_function(name: str) -> Callable[[Any], Any]:
    try:
        return TEST_FUNCTIONS[str(name).strip().lower()]
    except KeyError:
        raise ValueError(
            f"未知の test_function です: {name!r}（候補: {sorted(TEST_FUNCTIONS)}）"
        ) from None


def get_distribution(name: str, params: Optional[Dict[str, Any]] = None) -> ProposalDensity:
    """名前とパラメータ（例: {"mean": 2.0, "sd": 1.0}）から分布を構成する。

    Raises:
        ValueError: 未知の分布名の場合。
        TypeError: パラメータ名が分布の引数と一致しない場合。
    """
    key = str(name).strip().lower()
    if key not in DISTRIBUTIONS:
        raise ValueError(
            f"未知の分布です: {name!r}（候補: {sorted(DISTRIBUTIONS)}）"
        )
    return DISTRIBUTIONS[key](**dict(params or {}))
