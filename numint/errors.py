"""numint の例外階層。

すべて検出した地点で送出し、呼び出し側へそのまま伝播させる。
既定値での握りつぶしや NaN の黙った伝播は行わない。

呼び出し側の契約違反のうち実行時に検出できないもの
（rejection sampling の bound_m 不足、目標の台で提案密度が 0 になる等）は
例外にはならず、結果の正しさが保証されなくなる。
"""

from __future__ import annotations


class NumIntError(Exception):
    """numint が送出する例外の基底クラス。"""


class InvalidInterval(NumIntError, ValueError):
    """積分区間が不正（NaN/inf を含む、または a > b）。"""


class DegenerateInterpolation(NumIntError, ValueError):
    """補間点が空、または重複した x 座標を含む。"""


class RuleNotImplemented(NumIntError, NotImplementedError):
    """要求された Newton-Cotes / Gauss-Legendre の次数が未対応。"""


class RejectionBoundExceeded(NumIntError, RuntimeError):
    """rejection sampling の試行回数上限に達した。

    多くの場合 bound_m の指定ミスか、目標と提案の台が重なっていないことを示す。
    """

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"rejection sampling が {attempts} 回の試行で受理されませんでした。"
            " bound_m と提案分布の台を確認してください。"
        )
        self.attempts = attempts


class NonFiniteEvaluation(NumIntError, ArithmeticError):
    """関数・密度の評価値が NaN/inf だった。"""


class NegativeDensity(NumIntError, ValueError):
    """密度の評価値が負だった。"""
