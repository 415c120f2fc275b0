from __future__ import annotations

import math
import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from numint.errors import InvalidInterval, NonFiniteEvaluation, RuleNotImplemented
from numint.quadrature import (
    apply_rule,
    composite_rule,
    gauss_legendre_rule,
    newton_cotes_rule,
    rule_from_config,
)

INTERVALS = [(0.0, 1.0), (-3.0, 2.5), (1e-3, 7.0), (-0.7, 1.3)]


def all_rules():
    rules = [newton_cotes_rule(k, closed=c) for k in (1, 2, 3) for c in (True, False)]
    rules += [gauss_legendre_rule(k) for k in range(1, 6)]
    return rules


def assert_close(actual: float, expected: float, *, tol: float, name: str) -> None:
    if not math.isfinite(actual):
        raise AssertionError(f"{name}: result is not finite ({actual})")
    if abs(actual - expected) > tol * max(1.0, abs(expected)):
        raise AssertionError(
            f"{name}: not close (actual={actual:.15e}, expected={expected:.15e}, tol={tol:.1e})"
        )


def exact_poly_integral(coefs: np.ndarray, a: float, b: float) -> float:
    antiderivative = np.polynomial.Polynomial(coefs).integ()
    return float(antiderivative(b) - antiderivative(a))


def test_newton_cotes_reference_weights() -> None:
    expected = {
        (1, True): ((-1.0,), (2.0,)),
        (2, True): ((-1.0, 1.0), (1.0, 1.0)),
        (3, True): ((-1.0, 0.0, 1.0), (1.0 / 3.0, 4.0 / 3.0, 1.0 / 3.0)),
        (1, False): ((0.0,), (2.0,)),
        (2, False): ((-1.0 / 3.0, 1.0 / 3.0), (1.0, 1.0)),
        (3, False): ((-0.5, 0.0, 0.5), (4.0 / 3.0, -2.0 / 3.0, 4.0 / 3.0)),
    }
    for (k, closed), (points, weights) in expected.items():
        rule = newton_cotes_rule(k, closed=closed)
        if not np.allclose(rule.points, points, atol=1e-14):
            raise AssertionError(f"{rule.name}: points {rule.points} != {points}")
        if not np.allclose(rule.weights, weights, atol=1e-14):
            raise AssertionError(f"{rule.name}: weights {rule.weights} != {weights}")

    names = [newton_cotes_rule(k, closed=True).name for k in (1, 2, 3)]
    if names != ["rectangle", "trapezoid", "simpson"]:
        raise AssertionError(f"unexpected closed rule names: {names}")
    if newton_cotes_rule(1, closed=False).name != "midpoint":
        raise AssertionError("open k=1 rule must be the midpoint rule")


def test_rectangle_uses_left_endpoint() -> None:
    v, w = newton_cotes_rule(1, closed=True).nodes_weights(2.0, 5.0)
    if v.tolist() != [2.0] or w.tolist() != [3.0]:
        raise AssertionError(f"rectangle nodes/weights unexpected: {v}, {w}")


def test_constant_function_integrates_to_interval_length() -> None:
    for rule in all_rules():
        for a, b in INTERVALS:
            value = apply_rule(rule, lambda x: 1.0, a, b)
            assert_close(value, b - a, tol=1e-13, name=f"{rule.name} on [{a},{b}]")
            _, w = rule.nodes_weights(a, b)
            assert_close(float(np.sum(w)), b - a, tol=1e-13, name=f"{rule.name} weight sum")


def test_exactness_degree() -> None:
    rng = np.random.default_rng(0)
    for rule in all_rules():
        for a, b in INTERVALS:
            coefs = rng.normal(size=rule.degree + 1)
            poly = np.polynomial.Polynomial(coefs)
            value = apply_rule(rule, poly, a, b, vectorized=True)
            assert_close(
                value,
                exact_poly_integral(coefs, a, b),
                tol=1e-11,
                name=f"{rule.name} degree {rule.degree} on [{a},{b}]",
            )


def test_not_exact_one_degree_above() -> None:
    for rule in all_rules():
        d = rule.degree + 1
        value = apply_rule(rule, lambda x: x**d, 0.0, 1.0)
        if abs(value - 1.0 / (d + 1)) < 1e-8:
            raise AssertionError(f"{rule.name} unexpectedly exact for degree {d}")


def test_gauss_legendre_pinned_degree_five() -> None:
    # k=3 は 2k-1 = 5 次まで厳密なので、5 次多項式は厳密に積分される。
    rule = gauss_legendre_rule(3)
    value = apply_rule(rule, lambda x: 1 + x + x**2 + x**3 + x**4 + x**5, -1.0, 1.0)
    assert_close(value, 2.0 + 2.0 / 3.0 + 2.0 / 5.0, tol=1e-13, name="GL3 degree 5")


def test_composite_simpson_on_sin() -> None:
    value = composite_rule(newton_cotes_rule(3), np.sin, 0.0, 10.0, 50, vectorized=True)
    exact = 1.0 - math.cos(10.0)
    # 漸近誤差は h^4/180 (f'''(b) - f'''(a)) ≈ 1.02e-6（h = 0.1）。
    if abs(value - exact) > 1.5e-6:
        raise AssertionError(f"composite simpson error too large: {abs(value - exact):.3e}")
    if abs(value - 1.8391) > 1e-4:
        raise AssertionError(f"composite simpson value unexpected: {value}")


def test_empty_interval_does_not_evaluate() -> None:
    def boom(x: float) -> float:
        raise AssertionError("f must not be evaluated on an empty interval")

    for rule in all_rules():
        if apply_rule(rule, boom, 2.0, 2.0) != 0.0:
            raise AssertionError(f"{rule.name}: apply_rule on [2,2] must be 0")
        if composite_rule(rule, boom, -1.5, -1.5, 7) != 0.0:
            raise AssertionError(f"{rule.name}: composite_rule on [-1.5,-1.5] must be 0")


def test_invalid_bounds_are_rejected() -> None:
    rule = gauss_legendre_rule(2)
    bad = [(1.0, 0.0), (math.nan, 1.0), (0.0, math.inf), (-math.inf, 0.0)]
    for a, b in bad:
        for call in (
            lambda: apply_rule(rule, math.sin, a, b),
            lambda: composite_rule(rule, math.sin, a, b, 4),
        ):
            try:
                call()
            except InvalidInterval:
                continue
            raise AssertionError(f"InvalidInterval not raised for [{a}, {b}]")


def test_non_finite_function_values_are_rejected() -> None:
    rule = newton_cotes_rule(3)
    for f in (lambda x: math.nan, lambda x: math.inf if x == 0.5 else x):
        try:
            composite_rule(rule, f, 0.0, 1.0, 1)
        except NonFiniteEvaluation:
            continue
        raise AssertionError("NonFiniteEvaluation not raised")


def test_unsupported_orders_and_counts() -> None:
    for call in (lambda: newton_cotes_rule(4), lambda: gauss_legendre_rule(6)):
        try:
            call()
        except RuleNotImplemented:
            continue
        raise AssertionError("RuleNotImplemented not raised")
    for call in (
        lambda: newton_cotes_rule(0),
        lambda: gauss_legendre_rule(0),
        lambda: composite_rule(gauss_legendre_rule(2), math.sin, 0.0, 1.0, 0),
    ):
        try:
            call()
        except ValueError:
            continue
        raise AssertionError("ValueError not raised for k < 1 or n < 1")


def test_rule_from_config() -> None:
    cases = {
        "simpson": {"rule": "Simpson"},
        "gauss_legendre_3": {"rule": "gauss-legendre", "Q": 3},
        "gauss_legendre_5": {},
        "midpoint": {"rule": "newton_cotes", "Q": 1, "closed": False},
        "trapezoid": {"rule": "trapezoid", "Q": 2},
        "rectangle": {"rule": "rectangle"},
    }
    for expected, config in cases.items():
        name = rule_from_config(config).name
        if name != expected:
            raise AssertionError(f"rule_from_config({config}) -> {name}, expected {expected}")
    for config in ({"rule": "simpson", "Q": 5}, {"rule": "boole"}):
        try:
            rule_from_config(config)
        except ValueError:
            continue
        raise AssertionError(f"ValueError not raised for {config}")


def test_composite_result_independent_of_workers() -> None:
    for rule in (newton_cotes_rule(3), gauss_legendre_rule(4)):
        sequential = composite_rule(rule, math.sin, 0.0, 10.0, 64)
        parallel = composite_rule(rule, math.sin, 0.0, 10.0, 64, workers=4)
        if sequential != parallel:
            raise AssertionError(
                f"{rule.name}: workers changed the result ({sequential!r} vs {parallel!r})"
            )


def test_composite_rule_on_narrow_interval() -> None:
    rule = gauss_legendre_rule(2)
    try:
        composite_rule(rule, lambda x: 1.0, 1e6, 1e6 + 1e-9, 1000)
    except InvalidInterval as exc:
        raise AssertionError(f"valid bounds reported as malformed: {exc}")
    except ValueError:
        pass
    else:
        raise AssertionError("ValueError not raised for n beyond float resolution")
    a, b = 1e6, 1e6 + 1e-9
    value = composite_rule(rule, lambda x: 1.0, a, b, 2)
    if abs(value - (b - a)) > 1e-6 * (b - a):
        raise AssertionError(f"narrow interval length: {value!r} vs {b - a!r}")


def main() -> None:
    test_newton_cotes_reference_weights()
    test_rectangle_uses_left_endpoint()
    test_constant_function_integrates_to_interval_length()
    test_exactness_degree()
    test_not_exact_one_degree_above()
    test_gauss_legendre_pinned_degree_five()
    test_composite_simpson_on_sin()
    test_empty_interval_does_not_evaluate()
    test_invalid_bounds_are_rejected()
    test_non_finite_function_values_are_rejected()
    test_unsupported_orders_and_counts()
    test_rule_from_config()
    test_composite_result_independent_of_workers()
    test_composite_rule_on_narrow_interval()
    print("OK: quadrature rule tests passed")


if __name__ == "__main__":
    main()
