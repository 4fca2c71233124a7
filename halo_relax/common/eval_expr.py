import ast
import math
import operator

__all__ = ["eval_expr"]

_operators = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Pow: operator.pow,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_math_constants = {"pi": math.pi}


def eval_expr(expr: str):
    """Evaluate the expression from the given string to get a numerical result. Only simple operations are allowed
    (+, -, *, /, //, **) along with a few named constants, so that a config file can say `boundary_value = pi/4`."""
    return _eval(ast.parse(expr.strip(), mode="eval").body)


def _eval(node):
    match node:
        case ast.Constant(value) if isinstance(value, (float, int)) and not isinstance(value, bool):
            return value
        case ast.Name(name):
            try:
                return _math_constants[name.lower()]
            except KeyError as e:
                raise ValueError(f"Unknown constant '{name}'") from e
        case ast.BinOp(left, op, right) if type(op) in _operators:
            return _operators[type(op)](_eval(left), _eval(right))
        case ast.UnaryOp(op, operand) if type(op) in _operators:
            return _operators[type(op)](_eval(operand))
        case _:
            raise TypeError(f"Unsupported expression element {ast.dump(node)}")
