"""Limits by direct substitution, limit algebra and L'Hôpital's rule.

Direct substitution is tried first. When it fails, the limit is worked out
structurally: each node combines the limits of its children, and the
indeterminate forms are rewritten:

* ``0/0`` and ``inf/inf`` go through L'Hôpital's rule, at most
  ``MAX_LHOPITAL_ROUNDS`` times;
* ``0*inf`` becomes a quotient;
* ``inf - inf`` becomes a single fraction, or at infinity is settled by
  comparing the growth of the diverging terms;
* ``f^g`` becomes ``exp(g*ln(f))``.

Only the sign of a divergence is read numerically, from one-sided probes.
"""
import math
import logging

from Calculus.codegen import generate_code
from Calculus.differentiator import differentiate
from Calculus.errors import (
    CalculusError, DivisionByZeroError, EvaluationError, LimitFailure, LimitFailureKind,
)
from Calculus.evaluator import evaluate
from Calculus.expression import (
    BinaryOp, BinaryOperator, Call, Expression, Function, INFINITY, Number, ONE,
    PI, TWO, UnaryOp, Variable, ZERO, add, call, contains_variable, div,
    free_variables, is_binary, is_infinite, is_neg, mul, neg, power, substitute,
)
from Calculus.parser import parse_expression
from Calculus.simplifier import (
    build_product, power_node, product_factors, simplify, sum_terms,
)

# --- Logger Setup ---
logger = logging.getLogger(__name__)

MAX_LHOPITAL_ROUNDS = 5
PROBE_STEP = 1e-6
PROBE_STEPS = (1e-4, PROBE_STEP)
INFINITY_PROBES = (1e3, 1e2, 1e1)
ZERO_TOLERANCE = 1e-12
DIVERGENCE_THRESHOLD = 1e15

SIDES = {
    "both": (-1, 1),
    "left": (-1,),
    "right": (1,),
}


class _Value:
    """Limit of a subexpression: a finite constant, a signed infinity or a bounded oscillation.

    ``sign`` of an infinite value is 1, -1, or 0 when the two sides diverge
    in opposite directions.
    """

    FINITE = "finite"
    INFINITE = "infinite"
    BOUNDED = "bounded"

    def __init__(self, kind, expression=None, sign=0):
        self.kind = kind
        self.expression = expression
        self.sign = sign

    @classmethod
    def finite(cls, expression):
        return cls(cls.FINITE, expression=expression)

    @classmethod
    def infinite(cls, sign):
        return cls(cls.INFINITE, sign=sign)

    @classmethod
    def bounded(cls):
        return cls(cls.BOUNDED)

    def negated(self):
        if self.kind == self.FINITE:
            return _Value.finite(neg(self.expression))
        if self.kind == self.INFINITE:
            return _Value.infinite(-self.sign)
        return self

    def __repr__(self):
        if self.kind == self.FINITE:
            return f"_Value(finite, {generate_code(self.expression)})"
        if self.kind == self.INFINITE:
            return f"_Value(infinite, sign={self.sign})"
        return "_Value(bounded)"


# Limits of each function as its argument tends to +inf and -inf; None means undefined.
AT_INFINITY = {
    Function.EXP: (_Value.infinite(1), _Value.finite(ZERO)),
    Function.LN: (_Value.infinite(1), None),
    Function.LOG10: (_Value.infinite(1), None),
    Function.SQRT: (_Value.infinite(1), None),
    Function.ABS: (_Value.infinite(1), _Value.infinite(1)),
    Function.SINH: (_Value.infinite(1), _Value.infinite(-1)),
    Function.COSH: (_Value.infinite(1), _Value.infinite(1)),
    Function.TANH: (_Value.finite(ONE), _Value.finite(Number(-1))),
    Function.ATAN: (_Value.finite(div(PI, TWO)), _Value.finite(neg(div(PI, TWO)))),
    Function.SIN: (_Value.bounded(), _Value.bounded()),
    Function.COS: (_Value.bounded(), _Value.bounded()),
}

# Keep oscillating between -1 and 1 however their argument diverges.
BOUNDED_FUNCTIONS = {Function.SIN, Function.COS}


def _unsupported(message):
    return LimitFailure(LimitFailureKind.UNSUPPORTED, message)


class LimitEvaluator:
    """Limit algebra for one approach: ``point`` is None for ``x -> +inf``."""

    def __init__(self, variable, point=None, sides=(-1, 1)):
        self.variable = variable
        self.x = Variable(variable)
        self.point = point
        self.sides = sides
        self.rounds = 0
        self.at_infinity = point is None
        self.point_value = None if point is None else evaluate(point)

    def limit(self, node: Expression) -> _Value:
        if not contains_variable(node, self.variable):
            return _Value.finite(node)
        if isinstance(node, Variable):
            return _Value.infinite(1) if self.at_infinity else _Value.finite(self.point)
        if is_neg(node):
            return self.limit(node.operand).negated()
        if is_binary(node, BinaryOperator.ADD) or is_binary(node, BinaryOperator.SUB):
            return self._limit_sum(node)
        if is_binary(node, BinaryOperator.MUL) or is_binary(node, BinaryOperator.DIV):
            return self._limit_product(node)
        if is_binary(node, BinaryOperator.POW):
            return self._limit_power(node)
        if isinstance(node, Call):
            return self._limit_call(node)
        raise _unsupported(f"Cannot take the limit of {generate_code(node)}")

    # --- Numeric helpers ---
    def _numeric(self, value):
        try:
            return evaluate(value.expression)
        except EvaluationError:
            raise _unsupported(f"Cannot evaluate {generate_code(value.expression)}")

    def _is_zero(self, value):
        return value.kind == _Value.FINITE and abs(self._numeric(value)) < ZERO_TOLERANCE

    def _sign(self, value):
        if value.kind == _Value.INFINITE:
            return value.sign
        return 1 if self._numeric(value) > 0 else -1

    def _probe(self, node, side):
        if self.at_infinity:
            probes = INFINITY_PROBES
        else:
            probes = [self.point_value + side * step for step in PROBE_STEPS]
        for x in probes:
            try:
                value = evaluate(node, {self.variable: x})
            except EvaluationError:
                continue
            if value != 0:
                return value
        return None

    def _divergence_sign(self, node):
        signs = set()
        for side in self.sides:
            value = self._probe(node, side)
            if value is not None:
                signs.add(1 if value > 0 else -1)
        if not signs:
            raise _unsupported(f"Cannot determine how {generate_code(node)} behaves near the limit point")
        return signs.pop() if len(signs) == 1 else 0

    def _continuous(self, candidate, node):
        """``candidate`` is ``node`` with its children replaced by their finite limits."""
        try:
            value = evaluate(candidate)
            if abs(value) < DIVERGENCE_THRESHOLD:
                return _Value.finite(simplify(candidate))
        except (EvaluationError, DivisionByZeroError):
            pass
        # singular point of node
        return _Value.infinite(self._divergence_sign(node))

    # --- Sums ---
    def _limit_sum(self, node):
        terms = sum_terms(node)
        values = []
        for sign, term in terms:
            value = self.limit(term)
            values.append(value if sign > 0 else value.negated())

        infinite = [v for v in values if v.kind == _Value.INFINITE]
        signs = {v.sign for v in infinite}
        if any(v.kind == _Value.BOUNDED for v in values):
            if not infinite:
                return _Value.bounded()
            if len(signs) == 1 and 0 not in signs:
                return infinite[0]
            raise _unsupported(f"Cannot take the limit of {generate_code(node)}")

        if not infinite:
            total = values[0].expression
            for value in values[1:]:
                total = add(total, value.expression)
            return _Value.finite(simplify(total))
        if len(infinite) == 1 or (len(signs) == 1 and 0 not in signs):
            return infinite[0]

        logger.debug("inf - inf in %s", generate_code(node))
        if self.at_infinity:
            return self._dominant_term(terms, values)
        return self._combine_fractions(terms)

    def _combine_fractions(self, terms):
        numerators, denominators = [], []
        for sign, term in terms:
            coefficient, factors = product_factors(term)
            numerators.append(build_product(coefficient * sign, [(b, e) for b, e in factors if e > 0]))
            denominators.append(build_product(1, [(b, -e) for b, e in factors if e < 0]))
        if all(d == ONE for d in denominators):
            raise _unsupported("Cannot resolve the form inf - inf")

        numerator = None
        for i, top in enumerate(numerators):
            for j, bottom in enumerate(denominators):
                if j != i and bottom != ONE:
                    top = mul(top, bottom)
            numerator = top if numerator is None else add(numerator, top)
        denominator = None
        for bottom in denominators:
            if bottom != ONE:
                denominator = bottom if denominator is None else mul(denominator, bottom)
        return self._ratio(numerator, denominator)

    # --- Growth comparison at infinity ---
    def _linear_rate(self, u):
        slope = differentiate(u, self.variable)
        if contains_variable(slope, self.variable):
            return None
        return evaluate(slope)

    def _growth(self, node):
        """Growth order ``(exponential rate, polynomial degree, log power)`` as x -> +inf."""
        if not contains_variable(node, self.variable):
            return (0.0, 0.0, 0.0)
        if isinstance(node, Variable):
            return (0.0, 1.0, 0.0)
        if is_binary(node, BinaryOperator.ADD) or is_binary(node, BinaryOperator.SUB):
            growths = [self._growth(term) for _, term in sum_terms(node)]
            return None if None in growths else max(growths)
        if is_neg(node) or is_binary(node, BinaryOperator.MUL) or is_binary(node, BinaryOperator.DIV):
            total = (0.0, 0.0, 0.0)
            for base, exponent in product_factors(node)[1]:
                growth = self._growth(base)
                if growth is None:
                    return None
                total = tuple(t + float(exponent) * g for t, g in zip(total, growth))
            return total
        if is_binary(node, BinaryOperator.POW):
            base, exponent = node.left, node.right
            if isinstance(exponent, Number):
                growth = self._growth(base)
                return None if growth is None else tuple(exponent.value * g for g in growth)
            if contains_variable(base, self.variable):
                return None
            rate = self._linear_rate(exponent)
            if rate is None or evaluate(base) <= 0:
                return None
            return (rate * math.log(evaluate(base)), 0.0, 0.0)
        if isinstance(node, Call):
            return self._growth_of_call(node)
        return None

    def _growth_of_call(self, node):
        function, argument = node.function, node.argument
        if function in (Function.EXP, Function.SINH, Function.COSH):
            rate = self._linear_rate(argument)
            if rate is None:
                return None
            return (rate if function is Function.EXP else abs(rate), 0.0, 0.0)
        if function in (Function.LN, Function.LOG10):
            growth = self._growth(argument)
            if growth is None or growth[0] != 0 or growth[1] <= 0:
                return None
            return (0.0, 0.0, 1.0)
        if function is Function.SQRT:
            growth = self._growth(argument)
            return None if growth is None else tuple(g / 2 for g in growth)
        if function is Function.ABS:
            return self._growth(argument)
        if function in (Function.ATAN, Function.TANH):
            return (0.0, 0.0, 0.0)
        return None

    def _dominant_term(self, terms, values):
        ranked = []
        for (_, term), value in zip(terms, values):
            if value.kind != _Value.INFINITE:
                continue
            growth = self._growth(term)
            if growth is None:
                raise _unsupported(f"Cannot compare the growth of {generate_code(term)}")
            ranked.append((growth, value.sign))
        fastest = max(growth for growth, _ in ranked)
        leaders = {sign for growth, sign in ranked if growth == fastest}
        if len(leaders) != 1:
            raise _unsupported("Cannot resolve the form inf - inf: the leading terms grow at the same rate")
        return _Value.infinite(leaders.pop())

    # --- Products and quotients ---
    def _limit_product(self, node):
        coefficient, factors = product_factors(node)
        numerator = [(b, e) for b, e in factors if e > 0]
        denominator = [(b, -e) for b, e in factors if e < 0]
        if denominator:
            return self._ratio(build_product(coefficient, numerator), build_product(1, denominator))

        values = [self.limit(power_node(b, e)) for b, e in numerator]
        if coefficient != 1:
            scale = build_product(coefficient, [])
            numerator = [(scale, 1)] + numerator
            values = [_Value.finite(scale)] + values
        return self._multiply(numerator, values)

    def _multiply(self, factors, values):
        zeros = [i for i, v in enumerate(values) if self._is_zero(v)]
        infinite = [i for i, v in enumerate(values) if v.kind == _Value.INFINITE]
        if zeros and infinite:
            return self._zero_times_infinity(factors, zeros)
        if zeros:
            return _Value.finite(ZERO)
        if any(v.kind == _Value.BOUNDED for v in values):
            return _Value.bounded()
        if infinite:
            sign = 1
            for value in values:
                sign *= self._sign(value)
            return _Value.infinite(sign)
        product = values[0].expression
        for value in values[1:]:
            product = mul(product, value.expression)
        return _Value.finite(simplify(product))

    def _is_monomial(self, factors):
        return all(base == self.x for base, _ in factors)

    def _zero_times_infinity(self, factors, zeros):
        """``f*g`` with ``f -> 0`` and ``g -> inf`` becomes ``g/(1/f)`` or ``f/(1/g)``."""
        vanishing = [factors[i] for i in zeros]
        rest = [factor for i, factor in enumerate(factors) if i not in zeros]
        zero_part = build_product(1, vanishing)
        other_part = build_product(1, rest)
        attempts = [(other_part, zero_part), (zero_part, other_part)]
        if not self._is_monomial(vanishing):
            attempts.reverse()

        logger.debug("0*inf: rewriting %s as a quotient", generate_code(mul(zero_part, other_part)))
        saved = self.rounds
        for attempt, (top, flipped) in enumerate(attempts):
            try:
                return self._ratio(top, div(ONE, flipped))
            except LimitFailure as error:
                if error.kind is not LimitFailureKind.INDETERMINATE or attempt == len(attempts) - 1:
                    raise
                self.rounds = saved

    def _ratio(self, numerator, denominator):
        top = self.limit(numerator)
        bottom = self.limit(denominator)

        if bottom.kind == _Value.BOUNDED:
            raise _unsupported(f"Cannot take the limit of {generate_code(div(numerator, denominator))}")
        if bottom.kind == _Value.INFINITE:
            if top.kind == _Value.INFINITE:
                return self._lhopital(numerator, denominator)
            return _Value.finite(ZERO)
        if not self._is_zero(bottom):
            if top.kind == _Value.FINITE:
                return _Value.finite(simplify(div(top.expression, bottom.expression)))
            if top.kind == _Value.INFINITE:
                return _Value.infinite(top.sign * self._sign(bottom))
            return _Value.bounded()

        # denominator tends to zero
        if self._is_zero(top):
            if not self.at_infinity and (_contains_abs(numerator) or _contains_abs(denominator)):
                split = self._split_sides(numerator, denominator)
                if split is not None:
                    return split
            return self._lhopital(numerator, denominator)
        if top.kind == _Value.BOUNDED:
            raise _unsupported(f"Cannot take the limit of {generate_code(div(numerator, denominator))}")
        return _Value.infinite(self._divergence_sign(div(numerator, denominator)))

    def _unfold_abs(self, node, side):
        """Replace ``abs(u)`` by ``u`` or ``-u`` according to the sign of ``u`` on ``side``."""
        if isinstance(node, Call):
            argument = self._unfold_abs(node.argument, side)
            if node.function is Function.ABS:
                value = self._probe(argument, side)
                if value is not None:
                    return argument if value > 0 else neg(argument)
            return Call(node.function, argument)
        if isinstance(node, BinaryOp):
            return BinaryOp(node.op, self._unfold_abs(node.left, side), self._unfold_abs(node.right, side))
        if isinstance(node, UnaryOp):
            return UnaryOp(node.op, self._unfold_abs(node.operand, side))
        return node

    def _agree(self, first, second):
        if first.kind != second.kind:
            return False
        if first.kind == _Value.FINITE:
            return math.isclose(self._numeric(first), self._numeric(second), rel_tol=1e-9, abs_tol=ZERO_TOLERANCE)
        if first.kind == _Value.INFINITE:
            return first.sign == second.sign
        return True

    def _split_sides(self, numerator, denominator):
        """0/0 with an ``abs`` that changes sign at the point: take each one-sided limit separately.

        Returns None when no ``abs`` could be resolved on some side.
        """
        values = []
        for side in self.sides:
            top = self._unfold_abs(numerator, side)
            bottom = self._unfold_abs(denominator, side)
            if top == numerator and bottom == denominator:
                return None
            one_sided = LimitEvaluator(self.variable, self.point, (side,))
            one_sided.rounds = self.rounds
            values.append(one_sided._ratio(top, bottom))

        logger.debug("One-sided limits of %s: %s", generate_code(div(numerator, denominator)), values)
        for other in values[1:]:
            if not self._agree(values[0], other):
                raise LimitFailure(
                    LimitFailureKind.NONEXISTENT,
                    "The limit does not exist: the left and right limits differ",
                )
        return values[0]

    def _lhopital(self, numerator, denominator):
        if self.rounds >= MAX_LHOPITAL_ROUNDS:
            raise LimitFailure(
                LimitFailureKind.INDETERMINATE,
                f"Limit is still indeterminate after {MAX_LHOPITAL_ROUNDS} applications of L'Hôpital's rule",
            )
        self.rounds += 1
        try:
            ratio = simplify(div(
                differentiate(numerator, self.variable),
                differentiate(denominator, self.variable),
            ))
        except DivisionByZeroError:
            raise LimitFailure(LimitFailureKind.INDETERMINATE, "L'Hôpital's rule does not apply: the denominator's derivative is zero")
        logger.debug("L'Hôpital round %d: %s", self.rounds, generate_code(ratio))
        return self.limit(ratio)

    # --- Powers and functions ---
    def _limit_power(self, node):
        base, exponent = node.left, node.right
        if isinstance(exponent, Number):
            return self._raise(self.limit(base), exponent.value, node)
        if not contains_variable(base, self.variable):
            value = self.limit(exponent)
            if value.kind == _Value.FINITE:
                return self._continuous(power(base, value.expression), node)
        # f^g = exp(g*ln(f))
        return self.limit(call(Function.EXP, mul(exponent, call(Function.LN, base))))

    def _raise(self, value, n, node):
        if value.kind == _Value.BOUNDED:
            if n > 0:
                return value
            raise _unsupported(f"Cannot take the limit of {generate_code(node)}")
        if value.kind == _Value.FINITE:
            if self._is_zero(value):
                if n > 0:
                    return _Value.finite(ZERO)
                return _Value.infinite(self._divergence_sign(node))
            return self._continuous(power(value.expression, Number(n)), node)

        if n < 0:
            return _Value.finite(ZERO)
        even = n.is_integer() and int(n) % 2 == 0
        if even or value.sign > 0:
            return _Value.infinite(1)
        if not n.is_integer():
            raise _unsupported(f"{generate_code(node)} is not real as its base tends to -inf")
        return _Value.infinite(value.sign)

    def _limit_call(self, node):
        inner = self.limit(node.argument)
        function = node.function
        if inner.kind == _Value.FINITE:
            return self._continuous(call(function, inner.expression), node)
        if inner.kind == _Value.BOUNDED:
            return inner

        if function in BOUNDED_FUNCTIONS:
            return _Value.bounded()
        if function is Function.TAN:
            raise LimitFailure(
                LimitFailureKind.NONEXISTENT,
                f"The limit does not exist: {generate_code(node)} oscillates without bound",
            )
        if inner.sign == 0:
            if function in (Function.ABS, Function.COSH):
                return _Value.infinite(1)
            raise LimitFailure(
                LimitFailureKind.NONEXISTENT,
                f"The limit does not exist: {generate_code(node)} behaves differently on each side",
            )
        table = AT_INFINITY.get(function)
        result = None if table is None else table[0 if inner.sign > 0 else 1]
        if result is None:
            direction = "inf" if inner.sign > 0 else "-inf"
            raise _unsupported(f"{function.value} is undefined as its argument tends to {direction}")
        return result


def _parse_point(point):
    if isinstance(point, Expression):
        target = point
    elif isinstance(point, (int, float)):
        target = Number(point)
    else:
        text = str(point).strip()
        if text.startswith("+"):
            text = text[1:]
        target = parse_expression(text)
    target = simplify(target)
    if free_variables(target):
        raise _unsupported(f"Limit point must be a number or inf, got {generate_code(target)}")
    if is_infinite(target):
        return target
    try:
        evaluate(target)
    except EvaluationError:
        raise _unsupported(f"Limit point {generate_code(target)} is not a real number")
    return target


def _direct_substitution(node, variable, point):
    candidate = substitute(node, variable, point)
    try:
        value = evaluate(candidate)
        if math.isinf(value) or abs(value) >= DIVERGENCE_THRESHOLD:
            return None
        return simplify(candidate)
    except (EvaluationError, DivisionByZeroError):
        return None


def find_limit(node: Expression, variable: str, point, direction: str = "both") -> Expression:
    """Limit of ``node`` as ``variable`` tends to ``point``.

    ``point`` is a number, an expression such as ``pi/2``, or ``inf`` /
    ``-inf``. ``direction`` is ``both``, ``left`` or ``right`` and is ignored
    at infinity. Infinite limits come back as ``inf`` or ``-inf``.
    """
    if direction not in SIDES:
        raise ValueError("Direction must be one of: both, left, right")
    target = _parse_point(point)
    node = simplify(node)

    if is_infinite(target):
        if is_neg(target):
            node = simplify(substitute(node, variable, neg(Variable(variable))))
        evaluator = LimitEvaluator(variable)
    else:
        direct = _direct_substitution(node, variable, target)
        if direct is not None:
            logger.debug("Limit found by direct substitution: %s", generate_code(direct))
            return direct
        evaluator = LimitEvaluator(variable, target, SIDES[direction])

    try:
        value = evaluator.limit(node)
    except LimitFailure:
        raise
    except CalculusError as error:
        raise _unsupported(f"Cannot take the limit: {error.message}")

    if value.kind == _Value.FINITE:
        return simplify(value.expression)
    if value.kind == _Value.INFINITE:
        if value.sign > 0:
            return INFINITY
        if value.sign < 0:
            return neg(INFINITY)
        raise LimitFailure(
            LimitFailureKind.NONEXISTENT,
            "The limit does not exist: the left and right limits diverge in opposite directions",
        )
    raise LimitFailure(LimitFailureKind.NONEXISTENT, "The limit does not exist: the expression oscillates")


def _contains_abs(node):
    if isinstance(node, Call):
        return node.function is Function.ABS or _contains_abs(node.argument)
    if isinstance(node, BinaryOp):
        return _contains_abs(node.left) or _contains_abs(node.right)
    if isinstance(node, UnaryOp):
        return _contains_abs(node.operand)
    return False
