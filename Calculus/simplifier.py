"""Algebraic normalization used by every transformation.

Bottom-up rewriting repeated until the tree stops changing:

* sums are flattened and like terms collected, keeping the order in which each
  term first appears (``1 + x + x^2/2`` keeps its shape);
* products and quotients are flattened into one exact coefficient times a list
  of factors with combined numeric exponents, then rebuilt as
  ``coefficient*factors/denominator``;
* integer division stays exact (``1/3`` is kept, ``6/3`` folds to ``2``);
* a literal zero denominator raises :class:`DivisionByZeroError`.
"""
import math
import logging
from fractions import Fraction

from Calculus.errors import DivisionByZeroError, InternalError, SimplificationError
from Calculus.expression import (
    BinaryOp, BinaryOperator, Call, Constant, ConstantKind, E, Function, Number,
    ONE, PI, UnaryOp, Variable, ZERO, add, call, div, is_binary, is_neg, is_number,
    mul, neg, power, sub,
)

# --- Logger Setup ---
logger = logging.getLogger(__name__)

MAX_SIMPLIFY_PASSES = 25

ODD_FUNCTIONS = {Function.SIN, Function.TAN, Function.ASIN, Function.ATAN, Function.SINH, Function.TANH}
EVEN_FUNCTIONS = {Function.COS, Function.COSH, Function.ABS}


def simplify(node):
    current = node
    for _ in range(MAX_SIMPLIFY_PASSES):
        try:
            result = _simplify(current)
        except OverflowError:
            # exact coefficients outgrew a float
            raise SimplificationError("Numeric overflow: a constant is too large to represent")
        if result == current:
            return result
        current = result
    logger.debug("Simplifier stopped after %d passes without reaching a fixed point", MAX_SIMPLIFY_PASSES)
    return current


# --- Numeric helpers ---
def _exact(value):
    """Integral values become Fractions so that coefficient arithmetic stays exact."""
    if isinstance(value, Fraction):
        return value
    if isinstance(value, int):
        return Fraction(value)
    if float(value).is_integer():
        return Fraction(int(value))
    return float(value)


def _is_integral(value):
    return isinstance(_exact(value), Fraction) and _exact(value).denominator == 1


def _contains_infinity(node):
    if isinstance(node, Constant):
        return node.kind is ConstantKind.INFINITY
    if isinstance(node, BinaryOp):
        return _contains_infinity(node.left) or _contains_infinity(node.right)
    if isinstance(node, UnaryOp):
        return _contains_infinity(node.operand)
    if isinstance(node, Call):
        return _contains_infinity(node.argument)
    return False


def _is_product_shape(node):
    return (
        isinstance(node, Number)
        or is_neg(node)
        or is_binary(node, BinaryOperator.MUL)
        or is_binary(node, BinaryOperator.DIV)
    )


# --- Recursive driver ---
def _simplify(node):
    if isinstance(node, (Number, Constant, Variable)):
        return node

    if isinstance(node, Call):
        return _simplify_call(node.function, _simplify(node.argument))

    if isinstance(node, UnaryOp):
        operand = _simplify(node.operand)
        if _contains_infinity(operand):
            return operand.operand if is_neg(operand) else neg(operand)
        return _simplify_negation(operand)

    if isinstance(node, BinaryOp):
        left = _simplify(node.left)
        right = _simplify(node.right)
        if _contains_infinity(left) or _contains_infinity(right):
            # infinities only show up in limit results; leave their arithmetic alone
            return BinaryOp(node.op, left, right)
        if node.op in (BinaryOperator.ADD, BinaryOperator.SUB):
            return _simplify_sum(BinaryOp(node.op, left, right))
        if node.op in (BinaryOperator.MUL, BinaryOperator.DIV):
            return _simplify_product(BinaryOp(node.op, left, right))
        if node.op is BinaryOperator.POW:
            return _simplify_power(left, right)

    raise InternalError(f"Simplifier has no rule for node {node!r}")


def _simplify_negation(operand):
    if isinstance(operand, Number):
        return Number(-operand.value)
    if is_neg(operand):
        return operand.operand
    if is_binary(operand, BinaryOperator.ADD) or is_binary(operand, BinaryOperator.SUB):
        return _simplify_sum(neg(operand))
    return _simplify_product(neg(operand))


# --- Products and quotients ---
class _Product:
    """Accumulates ``coefficient * base1^e1 * base2^e2 ...`` from a Mul/Div/Neg tree."""

    def __init__(self):
        self.coefficient = Fraction(1)
        self.factors = []
        self.index = {}
        self.zero = False

    def multiply(self, node, exponent):
        if isinstance(node, Number):
            self._scale(node.value, exponent)
        elif is_neg(node):
            if exponent.denominator == 1 and exponent.numerator % 2:
                self.coefficient = -self.coefficient
            self.multiply(node.operand, exponent)
        elif is_binary(node, BinaryOperator.MUL):
            self.multiply(node.left, exponent)
            self.multiply(node.right, exponent)
        elif is_binary(node, BinaryOperator.DIV):
            self.multiply(node.left, exponent)
            self.multiply(node.right, -exponent)
        elif is_binary(node, BinaryOperator.POW) and isinstance(node.right, Number):
            n = _exact(node.right.value)
            base = node.left
            nested_power = is_binary(base, BinaryOperator.POW) and isinstance(base.right, Number)
            if _is_integral(n) and (_is_product_shape(base) or nested_power):
                self.multiply(base, exponent * n)
            else:
                self._add_factor(base, _exact(exponent * n))
        else:
            self._add_factor(node, exponent)

    def _scale(self, value, exponent):
        if value == 0:
            if exponent < 0:
                raise DivisionByZeroError()
            self.zero = True
            return
        self.coefficient = _exact(self.coefficient * _exact(value) ** int(exponent))

    def _add_factor(self, base, exponent):
        key = repr(base)
        if key in self.index:
            entry = self.factors[self.index[key]]
            entry[1] = _exact(entry[1] + exponent)
        else:
            self.index[key] = len(self.factors)
            self.factors.append([base, _exact(exponent)])

    def terms(self):
        return [(base, exponent) for base, exponent in self.factors if exponent != 0]


def _collect(node):
    product = _Product()
    product.multiply(node, Fraction(1))
    if product.zero:
        return Fraction(0), []
    return product.coefficient, product.terms()


def _power_node(base, exponent):
    if exponent == 1:
        return base
    return power(base, Number(float(exponent)))


def _chain(parts):
    result = parts[0]
    for part in parts[1:]:
        result = mul(result, part)
    return result


def _build_product(coefficient, factors):
    coefficient = _exact(coefficient)
    if coefficient == 0:
        return ZERO
    negative = coefficient < 0
    magnitude = -coefficient if negative else coefficient
    if isinstance(magnitude, Fraction):
        top, bottom = magnitude.numerator, magnitude.denominator
    else:
        top, bottom = magnitude, 1

    numerator_parts = [_power_node(base, e) for base, e in factors if e > 0]
    denominator_parts = [_power_node(base, -e) for base, e in factors if e < 0]

    sign_absorbed = False
    if top != 1 or not numerator_parts:
        numerator_parts.insert(0, Number(-top if negative else top))
        sign_absorbed = True
    if bottom != 1:
        denominator_parts.insert(0, Number(bottom))

    result = _chain(numerator_parts)
    if denominator_parts:
        result = div(result, _chain(denominator_parts))
    if negative and not sign_absorbed:
        result = neg(result)
    return result


def _simplify_product(node):
    coefficient, factors = _collect(node)
    return _build_product(coefficient, factors)


# --- Sums ---
def _flatten_sum(node, sign, terms):
    if is_binary(node, BinaryOperator.ADD):
        _flatten_sum(node.left, sign, terms)
        _flatten_sum(node.right, sign, terms)
    elif is_binary(node, BinaryOperator.SUB):
        _flatten_sum(node.left, sign, terms)
        _flatten_sum(node.right, -sign, terms)
    elif is_neg(node):
        _flatten_sum(node.operand, -sign, terms)
    else:
        terms.append((sign, node))


def _factor_key(factors):
    return tuple(sorted((repr(base), float(exponent)) for base, exponent in factors))


def _simplify_sum(node):
    terms = []
    _flatten_sum(node, 1, terms)
    groups = []
    index = {}
    for sign, term in terms:
        coefficient, factors = _collect(term)
        coefficient = coefficient * sign
        key = _factor_key(factors)
        if key in index:
            group = groups[index[key]]
            group[0] = _exact(group[0] + coefficient)
        else:
            index[key] = len(groups)
            groups.append([coefficient, factors])
    return _build_sum([(c, f) for c, f in groups if c != 0])


def _build_sum(groups):
    if not groups:
        return ZERO
    result = None
    for coefficient, factors in groups:
        if result is None:
            result = _build_product(coefficient, factors)
        elif coefficient < 0:
            result = sub(result, _build_product(-coefficient, factors))
        else:
            result = add(result, _build_product(coefficient, factors))
    return result


# --- Powers ---
def _fold_power(base, exponent):
    if _is_integral(exponent):
        if abs(exponent) * abs(math.log10(abs(base))) > 300:
            return None
        return _build_product(_exact(base) ** int(exponent), [])
    if base > 0:
        result = base ** exponent
        if result.is_integer() and abs(result) < 1e15:
            return Number(result)
    return None


def _simplify_power(base, exponent):
    if is_number(exponent, 0):
        # 0^0 is taken as 1 by convention
        return ONE
    if is_number(exponent, 1):
        return base
    if is_number(base, 1):
        return ONE
    if is_number(base, 0):
        if isinstance(exponent, Number):
            if exponent.value < 0:
                raise DivisionByZeroError("Division by zero: 0 raised to a negative power")
            return ZERO
        return power(base, exponent)
    if isinstance(base, Number) and isinstance(exponent, Number):
        folded = _fold_power(base.value, exponent.value)
        return folded if folded is not None else power(base, exponent)
    if base == E and isinstance(exponent, Call) and exponent.function is Function.LN:
        return exponent.argument
    if isinstance(exponent, Number):
        nested_power = is_binary(base, BinaryOperator.POW) and isinstance(base.right, Number)
        if _is_integral(exponent.value) and (_is_product_shape(base) or nested_power):
            return _simplify_product(power(base, exponent))
        if exponent.value < 0:
            return _simplify_product(power(base, exponent))
    return power(base, exponent)


# --- Functions ---
def _negated_argument(argument):
    """Return ``a`` when ``argument`` is ``-a``, otherwise None."""
    if is_neg(argument):
        return argument.operand
    if isinstance(argument, Number) and argument.value < 0:
        return Number(-argument.value)
    if is_binary(argument, BinaryOperator.MUL) or is_binary(argument, BinaryOperator.DIV):
        coefficient, factors = _collect(argument)
        if coefficient < 0:
            return _build_product(-coefficient, factors)
    return None


def _pi_multiple(argument):
    """Return k when ``argument`` is ``k*pi`` with a numeric k, otherwise None."""
    if argument == PI:
        return Fraction(1)
    if is_binary(argument, BinaryOperator.MUL) or is_binary(argument, BinaryOperator.DIV):
        coefficient, factors = _collect(argument)
        if len(factors) == 1 and factors[0][0] == PI and factors[0][1] == 1:
            return coefficient
    return None


def _signed_one(sign):
    return ONE if sign > 0 else Number(-1)


def _simplify_call(function, argument):
    positive = _negated_argument(argument)
    if positive is not None:
        if function in ODD_FUNCTIONS:
            return _simplify_negation(_simplify_call(function, positive))
        if function in EVEN_FUNCTIONS:
            return _simplify_call(function, positive)

    value = argument.value if isinstance(argument, Number) else None
    k = _pi_multiple(argument)
    half_k = _exact(k * 2) if k is not None else None

    if function is Function.SIN:
        if value == 0 or (k is not None and _is_integral(k)):
            return ZERO
        if half_k is not None and _is_integral(half_k) and int(half_k) % 2:
            return _signed_one(1 if (int(half_k) - 1) % 4 == 0 else -1)
    elif function is Function.COS:
        if value == 0:
            return ONE
        if k is not None and _is_integral(k):
            return _signed_one(1 if int(k) % 2 == 0 else -1)
        if half_k is not None and _is_integral(half_k):
            return ZERO
    elif function is Function.TAN:
        if value == 0 or (k is not None and _is_integral(k)):
            return ZERO
    elif function in (Function.ASIN, Function.ATAN, Function.SINH, Function.TANH):
        if value == 0:
            return ZERO
    elif function is Function.ACOS:
        if value == 1:
            return ZERO
    elif function is Function.COSH:
        if value == 0:
            return ONE
    elif function is Function.EXP:
        if value == 0:
            return ONE
        if value == 1:
            return E
        if isinstance(argument, Call) and argument.function is Function.LN:
            return argument.argument
    elif function is Function.LN:
        if value == 1:
            return ZERO
        if argument == E:
            return ONE
        if isinstance(argument, Call) and argument.function is Function.EXP:
            return argument.argument
        if is_binary(argument, BinaryOperator.POW) and argument.left == E:
            return argument.right
    elif function is Function.LOG10:
        if value is not None and value > 0:
            exponent = round(math.log10(value))
            if 10.0 ** exponent == value:
                return Number(exponent)
    elif function is Function.SQRT:
        if value is not None and value >= 0 and value.is_integer() and value < 1e15:
            root = math.isqrt(int(value))
            if root * root == int(value):
                return Number(root)
        if is_binary(argument, BinaryOperator.POW) and is_number(argument.right, 2):
            return call(Function.ABS, argument.left)
    elif function is Function.ABS:
        if value is not None:
            return Number(abs(value))
        if isinstance(argument, Call) and argument.function is Function.ABS:
            return argument
    return call(function, argument)


# --- Views used by the integrator and the limit evaluator ---
def sum_terms(node):
    """Signed terms ``[(+1|-1, term), ...]`` of a (possibly nested) sum."""
    terms = []
    _flatten_sum(node, 1, terms)
    return terms


def product_factors(node):
    """``(coefficient, [(base, exponent), ...])`` of a product or quotient."""
    return _collect(node)


def build_product(coefficient, factors):
    return _build_product(coefficient, factors)


def power_node(base, exponent):
    return _power_node(base, exponent)
