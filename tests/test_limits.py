import pytest

from Calculus.codegen import generate_code
from Calculus.errors import LimitFailure, LimitFailureKind
from Calculus.expression import Number
from Calculus.limits import find_limit
from Calculus.parser import parse_expression


def limit(source, point, direction="both", variable="x"):
    return generate_code(find_limit(parse_expression(source), variable, point, direction))


@pytest.mark.parametrize("source, point, expected", [
    ("x^2", "3", "9"),
    ("sin(x)/x", "0", "1"),
    ("(x^2 - 1)/(x - 1)", "1", "2"),
    ("(1 - cos(x))/x^2", "0", "1/2"),
    ("1/x - 1/sin(x)", "0", "0"),
    ("(1 + x)^(1/x)", "0", "e"),
    ("(exp(x) - 1)/x", "0", "1"),
])
def test_finite_points(source, point, expected):
    assert limit(source, point) == expected


def test_zero_times_infinity():
    assert limit("x*ln(x)", "0", "right") == "0"


@pytest.mark.parametrize("source, point, expected", [
    ("1/x", "inf", "0"),
    ("(2*x + 1)/(x + 3)", "inf", "2"),
    ("exp(-x)", "inf", "0"),
    ("x^2 - x", "inf", "inf"),
    ("x - ln(x)", "inf", "inf"),
    ("atan(x)", "inf", "pi/2"),
    ("x", "-inf", "-inf"),
    ("exp(x)", "-inf", "0"),
    ("x/exp(x)", "+inf", "0"),
    ("1/x", "∞", "0"),
])
def test_at_infinity(source, point, expected):
    assert limit(source, point) == expected


def test_one_sided_limits():
    assert limit("1/x", "0", "right") == "inf"
    assert limit("1/x", "0", "left") == "-inf"
    assert limit("1/x^2", "0") == "inf"


def test_numeric_point():
    assert generate_code(find_limit(parse_expression("x + 1"), "x", 2)) == "3"
    assert generate_code(find_limit(parse_expression("x + 1"), "x", Number(2))) == "3"


@pytest.mark.parametrize("source, point", [
    ("1/x", "0"),
    ("tan(x)", "pi/2"),
    ("sin(x)", "inf"),
])
def test_nonexistent(source, point):
    with pytest.raises(LimitFailure) as info:
        find_limit(parse_expression(source), "x", point)
    assert info.value.kind is LimitFailureKind.NONEXISTENT


def test_point_must_be_a_number():
    with pytest.raises(LimitFailure) as info:
        find_limit(parse_expression("x"), "x", "y")
    assert info.value.kind is LimitFailureKind.UNSUPPORTED


def test_invalid_direction():
    with pytest.raises(ValueError):
        find_limit(parse_expression("x"), "x", "0", "up")


@pytest.mark.parametrize("source, expected", [
    ("x*sin(1/x)", "0"),
    ("x^2*cos(1/x)", "0"),
])
def test_vanishing_times_bounded_oscillation(source, expected):
    assert limit(source, "0") == expected


def test_unbounded_oscillation_does_not_exist():
    for source in ("sin(1/x)", "x*tan(1/x)"):
        with pytest.raises(LimitFailure) as info:
            find_limit(parse_expression(source), "x", "0")
        assert info.value.kind is LimitFailureKind.NONEXISTENT


def test_sign_jump_at_the_point():
    assert limit("abs(x)/x", "0", "right") == "1"
    assert limit("abs(x)/x", "0", "left") == "-1"
    assert limit("x/abs(x - 2)", "2", "right") == "inf"
    with pytest.raises(LimitFailure) as info:
        find_limit(parse_expression("abs(x)/x"), "x", "0")
    assert info.value.kind is LimitFailureKind.NONEXISTENT


def test_matching_sides_through_abs():
    assert limit("abs(x)^2/x^2", "0") == "1"
