from __future__ import annotations

import math
import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from numint.quadrature import (
    composite_rule,
    estimate_convergence_order,
    gauss_legendre_rule,
    newton_cotes_rule,
)

A = 0.0
B = 10.0
EXACT = 1.0 - math.cos(10.0)
NS = [20, 50, 100, 200, 500]
# rectangle は h^2 の項が小さい n で効くため、大きめの n で回帰する。
RECTANGLE_NS = [50, 100, 200, 500, 1000]


def test_newton_cotes_convergence_slopes() -> None:
    # log|誤差| を log n に回帰した傾きが -r になることを確認する。
    cases = [
        (newton_cotes_rule(1, closed=True), 1),
        (newton_cotes_rule(1, closed=False), 2),
        (newton_cotes_rule(2, closed=True), 2),
        (newton_cotes_rule(3, closed=True), 4),
        (newton_cotes_rule(2, closed=False), 2),
        (newton_cotes_rule(3, closed=False), 4),
    ]
    for rule, expected in cases:
        if rule.order != expected:
            raise AssertionError(f"{rule.name}: documented order {rule.order} != {expected}")
        ns = RECTANGLE_NS if rule.name == "rectangle" else NS
        order = estimate_convergence_order(rule, np.sin, A, B, EXACT, ns, vectorized=True)
        if abs(order - expected) > 0.25:
            raise AssertionError(
                f"{rule.name}: estimated order {order:.3f}, expected {expected}"
            )


def test_gauss_legendre_convergence_slopes() -> None:
    # k が大きいと丸め誤差に早く達するため、k=1,2 を少なめの n で確認する。
    ns = [10, 20, 40, 80, 160]
    for k in (1, 2):
        rule = gauss_legendre_rule(k)
        order = estimate_convergence_order(rule, np.sin, A, B, EXACT, ns, vectorized=True)
        if abs(order - 2 * k) > 0.25:
            raise AssertionError(f"GL{k}: estimated order {order:.3f}, expected {2 * k}")


def test_error_decreases_monotonically() -> None:
    rule = newton_cotes_rule(2, closed=True)
    errors = [
        abs(composite_rule(rule, np.sin, A, B, n, vectorized=True) - EXACT) for n in NS
    ]
    if any(later >= earlier for earlier, later in zip(errors, errors[1:])):
        raise AssertionError(f"trapezoid errors are not decreasing: {errors}")


def test_estimate_convergence_order_requires_two_points() -> None:
    try:
        estimate_convergence_order(newton_cotes_rule(3), np.sin, A, B, EXACT, [10])
    except ValueError:
        return
    raise AssertionError("ValueError not raised for a single n")


def main() -> None:
    test_newton_cotes_convergence_slopes()
    test_gauss_legendre_convergence_slopes()
    test_error_decreases_monotonically()
    test_estimate_convergence_order_requires_two_points()
    print("OK: composite convergence tests passed")


if __name__ == "__main__":
    main()
