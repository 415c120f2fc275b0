"""型定義。

数値計算側は NumPy 配列・Python の float・任意の状態オブジェクトを受け付けるため、
厳密な型ではなく「何として扱うか」を表す別名をここに集約する。
"""

from typing import Any, Callable, Optional

import numpy as np

# ArrayLike:
# - 「配列のように扱える」入力を表す型。np.asarray に渡せるものを想定する。
ArrayLike = Any

# 被積分関数・テスト関数 f。点 x を受け取り実数を返す。
# vectorized=True で呼ぶ場合は配列を受け取り同じ形状の配列を返す前提。
Integrand = Callable[[Any], Any]

# 目標密度 π（正規化されていなくてもよい）。非負の実数を返す。
TargetDensity = Callable[[Any], Any]

# i.i.d. サンプラ。NumPy の Generator API と同じく size=None なら 1 点、
# 整数なら長さ size の配列を返す。
IIDSampler = Callable[[np.random.Generator, Optional[int]], Any]
