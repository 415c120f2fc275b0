"""CLI エントリポイント。

目的:
    設定ファイル（TOML/JSON）の [quadrature] / [montecarlo] セクションから実験を組み立てて実行し、
    結果を表示・JSON 出力・プロット・WandB 記録するためのコマンドライン実行口を提供する。

想定される例外:
    - 設定ファイルが存在しない: FileNotFoundError
    - JSON/TOML の構文エラー: パーサ由来の例外
    - 規則名・分布名などの指定ミス: ValueError / RuleNotImplemented
"""

import argparse
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import pandas as pd

try:
    import matplotlib.pyplot as plt
except ImportError:
    plt = None

from numint.config import get_section, load_config
from numint.logger import WandBLogger, wandb_available
from numint.runner import run_montecarlo, run_quadrature


def main(argv: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    """コマンドライン引数を解釈し、設定に書かれた実験を実行する。

    Args:
        argv: 引数リスト。None の場合は `sys.argv` を argparse が参照する。

    Returns:
        実行結果（セクション名 -> 結果 dict）。
    """

    parser = argparse.ArgumentParser(description="numint runner")

    # --config 引数:
    # - 設定ファイルの場所を受け取る
    # - 既定ではカレントディレクトリの config.toml を使う
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config.toml"),
        help="Path to a TOML or JSON config file.",
    )

    # --only 引数:
    # - 片方のセクションだけを実行したい場合に指定する
    parser.add_argument(
        "--only",
        choices=["quadrature", "montecarlo"],
        default=None,
        help="Run only one section of the config.",
    )

    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Path to write result JSON (optional).",
    )

    # --plot 引数:
    # - 収束の log-log プロット、または鎖のトレースを保存するか
    parser.add_argument(
        "--plot",
        action="store_true",
        help="Save convergence / trace plots (requires matplotlib).",
    )

    args = parser.parse_args(argv)

    # 設定を読み込む。ファイル不在・拡張子非対応・パース失敗は例外として伝播する。
    config = load_config(args.config)

    # WandB ログの準備（任意）。
    wandb_logger = None
    wandb_project = os.getenv("WANDB_PROJECT")
    wandb_enabled = os.getenv("WANDB_ENABLED", "").lower() in {"1", "true", "yes"}
    if wandb_project or wandb_enabled:
        if wandb_project is None or wandb_project == "":
            wandb_project = "numint"
        if wandb_available():
            wandb_logger = WandBLogger(project=wandb_project, name="numint-run")
            wandb_logger.start_run(config={"config": config})
        else:
            print("WandB が利用できないためロギングをスキップします。")

    print("\n=== Run parameters ===")
    print(
        {
            "config_path": str(args.config),
            "only": args.only,
            "output_path": str(args.output) if args.output is not None else None,
            "plot": bool(args.plot),
            "config": config,
        }
    )

    results: Dict[str, Any] = {}

    quad_section = get_section(config, "quadrature")
    if quad_section and args.only in (None, "quadrature"):
        quad = run_quadrature(quad_section)
        results["quadrature"] = quad
        print("\n=== Quadrature ===")
        print({key: value for key, value in quad.items() if key != "convergence"})
        if "convergence" in quad:
            table = pd.DataFrame(quad["convergence"]).set_index("n")
            print("\n=== Convergence ===")
            print(table)
            print(f"estimated order: {quad['estimated_order']:.3f} (documented: {quad['order']})")
            if args.plot:
                _plot_convergence(table, quad)

    mc_section = get_section(config, "montecarlo")
    if mc_section and args.only in (None, "montecarlo"):
        mc = run_montecarlo(mc_section)
        results["montecarlo"] = mc
        print("\n=== Monte Carlo ===")
        summary = pd.Series(mc["estimate"], name=mc["method"])
        print(summary)
        print({key: value for key, value in mc.items() if key not in {"estimate", "trace"}})
        if args.plot and "trace" in mc:
            _plot_trace(mc)

    if args.output is not None:
        output_path = args.output
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8") as handle:
            json.dump({"config": config, "results": results}, handle, ensure_ascii=False, indent=2)
        print(f"Saved result JSON to {output_path}")

    if wandb_logger is not None:
        for section_name, result in results.items():
            wandb_logger.log_result(result, prefix=section_name)
        if "quadrature" in results and "convergence" in results["quadrature"]:
            wandb_logger.log_series(
                results["quadrature"]["convergence"], step_key="n", prefix="convergence"
            )
        if "montecarlo" in results and "trace" in results["montecarlo"]:
            wandb_logger.log_trace(results["montecarlo"]["trace"])
        wandb_logger.finish()

    return results


def _plot_convergence(table: pd.DataFrame, quad: Dict[str, Any]) -> None:
    if plt is None:
        print("matplotlib が利用できないため収束プロットをスキップします。")
        return
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.loglog(table.index, table["abs_error"], marker="o", label=quad["rule"])
    ax.set_xlabel("n (subintervals)")
    ax.set_ylabel("|error|")
    ax.set_title(f"Composite {quad['rule']} on {quad['integrand']}")
    ax.legend(loc="best")
    ax.grid(True, which="both", linestyle=":", alpha=0.6)
    output_path = Path("convergence.png")
    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    print(f"Saved convergence plot to {output_path}")


def _plot_trace(mc: Dict[str, Any]) -> None:
    if plt is None:
        print("matplotlib が利用できないためトレースプロットをスキップします。")
        return
    fig, ax = plt.subplots(figsize=(8, 3))
    ax.plot(mc["trace"], linewidth=0.6)
    if mc.get("burn_in"):
        ax.axvline(mc["burn_in"], color="gray", linestyle="--", label="burn-in")
        ax.legend(loc="best")
    ax.set_xlabel("step")
    ax.set_ylabel("state")
    ax.set_title(f"Metropolis-Hastings trace (move rate {mc['move_rate']:.2f})")
    output_path = Path("trace.png")
    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    print(f"Saved trace plot to {output_path}")


if __name__ == "__main__":
    # 直接実行時のみ main() を呼び出す（import された場合に副作用を起こさない）。
    main()
