#!/usr/bin/env python3
"""合成求積則の収束次数を比較するスクリプト

目的:
    登録済みの被積分関数について、rectangle / midpoint / trapezoid / simpson /
    Gauss-Legendre の合成則の誤差を n ごとに計算し、log-log プロットと CSV にまとめる。
    直線の傾きが -r（r は各規則の次数）になることを目視で確認するためのもの。

使い方:
    python scripts/visualize_convergence.py --integrand sin --a 0 --b 10
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, List

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from numint.catalog import exact_integral, get_integrand
from numint.quadrature import (
    IntervalRule,
    composite_rule,
    estimate_convergence_order,
    gauss_legendre_rule,
    newton_cotes_rule,
)


def default_rules() -> List[IntervalRule]:
    return [
        newton_cotes_rule(1, closed=True),
        newton_cotes_rule(1, closed=False),
        newton_cotes_rule(2, closed=True),
        newton_cotes_rule(3, closed=True),
        gauss_legendre_rule(2),
    ]


def collect_errors(
    integrand: str, a: float, b: float, ns: List[int]
) -> pd.DataFrame:
    """規則 × n ごとの誤差を縦持ちの DataFrame にまとめる"""
    f, _ = get_integrand(integrand)
    exact = exact_integral(integrand, a, b)
    rows: List[Dict[str, float]] = []
    for rule in default_rules():
        for n in ns:
            value = composite_rule(rule, f, a, b, n, vectorized=True)
            rows.append(
                {
                    "rule": rule.name,
                    "order": rule.order,
                    "n": n,
                    "estimate": value,
                    "abs_error": abs(value - exact),
                }
            )
    return pd.DataFrame(rows)


def plot_errors(df: pd.DataFrame, output_dir: Path) -> None:
    fig, ax = plt.subplots(figsize=(8, 5))
    for rule_name, subset in df.groupby("rule", sort=False):
        subset = subset.sort_values("n")
        ax.loglog(subset["n"], subset["abs_error"], marker="o", label=rule_name)
    ax.set_xlabel("n (subintervals, log scale)")
    ax.set_ylabel("|error| (log scale)")
    ax.set_title("Composite rule convergence")
    ax.legend(loc="best", fontsize="small")
    ax.grid(True, which="both", alpha=0.3)

    fig.tight_layout()
    output_path = output_dir / "convergence.png"
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    print(f"Saved plot to: {output_path}")
    plt.close(fig)


def main() -> None:
    parser = argparse.ArgumentParser(description="合成求積則の収束比較")
    parser.add_argument("--integrand", default="sin", help="登録済みの被積分関数名")
    parser.add_argument("--a", type=float, default=0.0, help="区間の左端")
    parser.add_argument("--b", type=float, default=10.0, help="区間の右端")
    parser.add_argument(
        "--ns",
        type=int,
        nargs="+",
        default=[10, 20, 50, 100, 200, 500],
        help="比較する小区間数",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("outputs/convergence"),
        help="プロットと CSV の保存先ディレクトリ",
    )
    args = parser.parse_args()

    args.output_dir.mkdir(parents=True, exist_ok=True)
    df = collect_errors(args.integrand, args.a, args.b, args.ns)
    csv_path = args.output_dir / "convergence.csv"
    df.to_csv(csv_path, index=False)
    print(f"Saved table to: {csv_path}")

    f, _ = get_integrand(args.integrand)
    exact = exact_integral(args.integrand, args.a, args.b)
    print("\nEstimated orders (documented in parentheses):")
    for rule in default_rules():
        errors = df.loc[df["rule"] == rule.name, "abs_error"].to_numpy()
        if np.any(errors <= np.finfo(float).eps):
            print(f"  {rule.name}: 丸め誤差に達したため推定をスキップ ({rule.order})")
            continue
        order = estimate_convergence_order(
            rule, f, args.a, args.b, exact, args.ns, vectorized=True
        )
        print(f"  {rule.name}: {order:.2f} ({rule.order})")

    plot_errors(df, args.output_dir)


if __name__ == "__main__":
    main()
