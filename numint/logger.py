"""WandB ロギング用のユーティリティ。

方針:
    - WandB は任意依存。未インストールでも計算自体は動作させる。
    - ライブラリ本体はログを出さず、外側（main 等）で結果を記録する。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence


def _import_wandb():
    try:
        import importlib

        return importlib.import_module("wandb")
    except Exception as exc:  # noqa: BLE001 - 任意依存のため広めに捕捉
        raise RuntimeError(
            "wandb がインストールされていません。"
            " `pip install wandb` を実行するか、ロギングを無効化してください。"
        ) from exc


def wandb_available() -> bool:
    """wandb が利用可能かを返す。"""

    try:
        _import_wandb()
        return True
    except RuntimeError:
        return False


def flatten_scalars(payload: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """入れ子 dict からスカラー値だけを "a/b" 形式のキーで取り出す。

    リスト（収束表・鎖のトレース）は log_series / log_trace で別に送るため除外する。
    """

    flat: Dict[str, Any] = {}
    for key, value in payload.items():
        name = f"{prefix}/{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten_scalars(value, name))
        elif isinstance(value, (int, float, str, bool)) or value is None:
            flat[name] = value
    return flat


@dataclass
class WandBLogger:
    """WandB へのロギングを行うクラス。"""

    project: str
    entity: Optional[str] = None
    name: Optional[str] = None
    tags: Optional[Iterable[str]] = None
    enabled: bool = True
    _run: Any = field(default=None, init=False, repr=False)

    def start_run(
        self,
        config: Optional[Dict[str, Any]] = None,
        name: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> None:
        """WandB run を開始する。"""

        if not self.enabled:
            return
        wandb = _import_wandb()
        self._run = wandb.init(
            project=self.project,
            entity=self.entity,
            name=name or self.name,
            tags=(
                list(tags)
                if tags is not None
                else (list(self.tags) if self.tags else None)
            ),
            config=config,
        )

    def log_result(self, result: Dict[str, Any], prefix: str) -> None:
        """runner の結果 dict のスカラー部分を summary として記録する。"""

        if not self.enabled:
            return
        wandb = _import_wandb()
        wandb.log(flatten_scalars(result, prefix))

    def log_series(
        self, rows: Sequence[Dict[str, Any]], step_key: str, prefix: str
    ) -> None:
        """収束表のような行の列を、step_key（例: n）を横軸とする系列として記録する。"""

        if not self.enabled or not rows:
            return
        wandb = _import_wandb()
        for step, row in enumerate(rows):
            payload = {
                f"{prefix}/{key}": value
                for key, value in row.items()
                if key != step_key
            }
            payload[f"{prefix}/{step_key}"] = row.get(step_key, step)
            wandb.log(payload)

    def log_trace(self, values: List[float], key: str = "chain/state") -> None:
        """鎖の状態列をステップごとに記録する。"""

        if not self.enabled:
            return
        wandb = _import_wandb()
        for step, value in enumerate(values):
            wandb.log({key: value, "chain/step": step})

    def finish(self) -> None:
        """WandB run を終了する。"""

        if not self.enabled:
            return
        wandb = _import_wandb()
        wandb.finish()
        self._run = None
