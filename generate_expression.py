import random
from sympy import (
    symbols, S, sin, cos, tan, asin, acos, atan, sinh, cosh, tanh, exp, log, Abs,
    Add, Mul, Pow, Symbol, Integer, Rational, Float, pi, E, oo,
)

from Calculus.codegen import generate_code, to_latex
from Calculus import expression as ast

# SymPy function class -> engine function
SYMPY_FUNCTIONS = {
    sin: ast.Function.SIN,
    cos: ast.Function.COS,
    tan: ast.Function.TAN,
    asin: ast.Function.ASIN,
    acos: ast.Function.ACOS,
    atan: ast.Function.ATAN,
    sinh: ast.Function.SINH,
    cosh: ast.Function.COSH,
    tanh: ast.Function.TANH,
    exp: ast.Function.EXP,
    log: ast.Function.LN,
    Abs: ast.Function.ABS,
}


def from_sympy(expr):
    """Convert a SymPy expression into the engine's expression tree."""
    if isinstance(expr, Symbol):
        return ast.Variable(expr.name)
    if expr is pi:
        return ast.PI
    if expr is E:
        return ast.E
    if expr == oo:
        return ast.INFINITY
    if expr == -oo:
        return ast.neg(ast.INFINITY)
    if isinstance(expr, Integer):
        return ast.Number(int(expr))
    if isinstance(expr, Rational):
        return ast.div(ast.Number(expr.p), ast.Number(expr.q))
    if isinstance(expr, Float):
        return ast.Number(float(expr))

    if isinstance(expr, Add):
        args = [from_sympy(arg) for arg in expr.args]
        result = args[0]
        for arg in args[1:]:
            result = ast.add(result, arg)
        return result

    if isinstance(expr, Mul):
        numerator, denominator = [], []
        for arg in expr.args:
            if isinstance(arg, Pow) and arg.exp.is_Number and arg.exp < 0:
                denominator.append(from_sympy(Pow(arg.base, -arg.exp)))
            else:
                numerator.append(from_sympy(arg))
        result = numerator[0] if numerator else ast.ONE
        for part in numerator[1:]:
            result = ast.mul(result, part)
        for part in denominator:
            result = ast.div(result, part)
        return result

    if isinstance(expr, Pow):
        base, exponent = expr.base, expr.exp
        if exponent == S.Half:
            return ast.call(ast.Function.SQRT, from_sympy(base))
        if exponent.is_Number and exponent < 0:
            return ast.div(ast.ONE, from_sympy(Pow(base, -exponent)))
        return ast.power(from_sympy(base), from_sympy(exponent))

    function = SYMPY_FUNCTIONS.get(expr.func)
    if function is not None and len(expr.args) == 1:
        return ast.call(function, from_sympy(expr.args[0]))

    raise ValueError(f"Cannot convert SymPy expression {expr} ({expr.func.__name__})")


def generate_random_expression(variables, num_terms=3, max_depth=2, rng=None):
    """Random SymPy sum of ``num_terms`` terms built from + * ^ and sin cos tan exp.

    Returns the SymPy expression, its engine code string and its LaTeX.
    Pass ``rng`` (a ``random.Random``) for reproducible output.
    """
    rng = rng or random

    # Ensure all variables are SymPy symbols
    variables = [symbols(v) if isinstance(v, str) else v for v in variables]

    operators = ["add", "mul", "pow"]
    functions = [sin, cos, tan, exp]

    def create_leaf():
        if rng.random() < 0.7:
            return rng.choice(variables)  # variable
        else:
            return S(rng.randint(1, 10))  # constant

    # Exponents stay small positive integers, so no x^y or x^sin(x)
    def safe_exponent():
        return S(rng.randint(1, 5))

    def create_node(current_depth):
        if current_depth >= max_depth or rng.random() < 0.4:
            return create_leaf()

        choice = rng.choice(operators + ["func"])

        # function node
        if choice == "func":
            func = rng.choice(functions)
            return func(create_node(current_depth + 1))

        # operator node
        left = create_node(current_depth + 1)
        right = create_node(current_depth + 1)

        if choice == "add":
            return left + right

        elif choice == "mul":
            return left * right

        return Pow(left, safe_exponent())

    terms = [create_node(0) for _ in range(num_terms)]
    expr = Add(*terms)
    expression_ast = from_sympy(expr)

    return expr, generate_code(expression_ast), to_latex(expression_ast)


if __name__ == '__main__':
    x, y = symbols('x y')
    expr, expr_str, expr_latex = generate_random_expression([x, y], num_terms=2, max_depth=3)
    print(f"Generated Expression: {expr}")
    print(f"Generated Expression String: {expr_str}")
    print(f"Generated Expression LaTeX: {expr_latex}")
