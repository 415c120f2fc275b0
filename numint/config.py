"""設定ファイル（TOML/JSON）を読み込むユーティリティ。

目的:
    求積・Monte Carlo の実験を「設定ファイルで再現可能」にするため、
    規則名・区間・標本数・seed などを TOML/JSON として外部化し、辞書としてロードする。

想定する構成:
    [quadrature]  求積の実験（integrand, a, b, rule, Q, n_intervals, ...）
    [montecarlo]  Monte Carlo の実験（method, n, seed, target, proposal, ...）
"""

from __future__ import annotations

import json
import tomllib
from pathlib import Path
from typing import Any, Dict

KNOWN_SECTIONS = ("quadrature", "montecarlo")


def load_config(path: Path) -> Dict[str, Any]:
    """設定ファイルを読み込み、Python の辞書として返す。

    Args:
        path: 設定ファイルへのパス。拡張子（大文字小文字は区別しない）でフォーマットを判定する。

    Returns:
        設定内容を表す辞書。

    Raises:
        FileNotFoundError: 指定パスが存在しない場合。
        ValueError: 対応していない拡張子、または既知のセクションが 1 つもない場合。
        json.JSONDecodeError: JSON のパースに失敗した場合。
        tomllib.TOMLDecodeError: TOML のパースに失敗した場合。
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".toml":
        # tomllib.load はバイナリファイルオブジェクトを想定する。
        with path.open("rb") as handle:
            config = tomllib.load(handle)
    elif suffix == ".json":
        with path.open("r", encoding="utf-8") as handle:
            config = json.load(handle)
    else:
        raise ValueError(f"Unsupported config format: {path.suffix}")

    if not isinstance(config, dict) or not any(key in config for key in KNOWN_SECTIONS):
        raise ValueError(
            f"Config must contain at least one of {list(KNOWN_SECTIONS)}: {path}"
        )
    return config


def get_section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """指定セクションを dict のコピーとして返す。無ければ空 dict。

    Raises:
        ValueError: セクションがテーブル（dict）でない場合。
    """
    section = config.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ValueError(f"[{name}] はテーブルである必要があります。")
    return dict(section)
