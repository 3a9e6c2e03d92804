"""
Layered unit context and dimension expression evaluation.

Dimensions in an outline config are either plain numbers or arithmetic
strings over named bases ("u - 1", "2 * sx / 3"). Shapes extend the ambient
context with their own bases (a rectangle's ``sx``/``sy``) before resolving
the fields that depend on them.
"""
import ast
import math
import operator
from typing import Any, Dict, Mapping, Optional

from plategen.errors import ValidationError

DEFAULT_UNITS: Dict[str, float] = {
    "U": 19.05,  # 0.75 inch key pitch
    "u": 19.0,
    "cx": 18.0,  # choc spacing
    "cy": 17.0,
}

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

# largest |exponent| accepted by **
_MAX_EXPONENT = 1000

_FUNCTIONS = {
    "min": min,
    "max": max,
    "abs": abs,
    "sqrt": math.sqrt,
    "sin": lambda deg: math.sin(math.radians(deg)),
    "cos": lambda deg: math.cos(math.radians(deg)),
    "tan": lambda deg: math.tan(math.radians(deg)),
    "round": round,
    "floor": math.floor,
    "ceil": math.ceil,
}


class Units:
    """Immutable name -> number context, optionally layered over a parent."""

    def __init__(self, values: Optional[Mapping[str, float]] = None,
                 parent: Optional["Units"] = None):
        self._values = dict(values or {})
        self._parent = parent

    def extend(self, values: Mapping[str, Any]) -> "Units":
        """New context with ``values`` layered on top.

        Values may be expressions; each is evaluated against the context
        built so far, so later entries can use earlier ones.
        """
        layer = Units({}, parent=self)
        for key, value in values.items():
            layer._values[key] = layer.evaluate(value, f"units.{key}")
        return layer

    def get(self, key: str, default: Optional[float] = None) -> Optional[float]:
        if key in self._values:
            return self._values[key]
        if self._parent is not None:
            return self._parent.get(key, default)
        return default

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __getitem__(self, key: str) -> float:
        value = self.get(key)
        if value is None:
            raise KeyError(key)
        return value

    def as_dict(self) -> Dict[str, float]:
        merged = self._parent.as_dict() if self._parent is not None else {}
        merged.update(self._values)
        return merged

    def evaluate(self, value: Any, name: str) -> float:
        """Resolve a number or an arithmetic expression string to a float."""
        if isinstance(value, bool):
            raise ValidationError(name, "should be a number, not a boolean")
        if isinstance(value, (int, float)):
            return float(value)
        if not isinstance(value, str):
            raise ValidationError(name, f"should be a number or an expression, got {type(value).__name__}")
        try:
            tree = ast.parse(value.strip(), mode="eval")
        except SyntaxError as exc:
            raise ValidationError(name, f"could not parse expression {value!r}") from exc
        result = self._eval_node(tree.body, name, value)
        if isinstance(result, complex):
            raise ValidationError(name, f"expression {value!r} has no real value")
        try:
            return float(result)
        except OverflowError as exc:
            raise ValidationError(name, f"expression {value!r} is out of range") from exc

    # ─── Internal helpers ────────────────────────────────────────────────────

    def _eval_node(self, node: ast.AST, name: str, source: str):
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) \
                and not isinstance(node.value, bool):
            return node.value
        if isinstance(node, ast.Name):
            resolved = self.get(node.id)
            if resolved is None:
                raise ValidationError(name, f"unknown unit {node.id!r} in expression {source!r}")
            return resolved
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
            left = self._eval_node(node.left, name, source)
            right = self._eval_node(node.right, name, source)
            if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
                raise ValidationError(name, f"exponent too large in expression {source!r}")
            try:
                if isinstance(node.op, ast.Pow):
                    return float(left) ** right
                return _BINARY_OPS[type(node.op)](left, right)
            except ZeroDivisionError as exc:
                raise ValidationError(name, f"division by zero in expression {source!r}") from exc
            except (ValueError, OverflowError, TypeError) as exc:
                raise ValidationError(name, f"cannot evaluate {source!r}: {exc}") from exc
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            return _UNARY_OPS[type(node.op)](self._eval_node(node.operand, name, source))
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) \
                and node.func.id in _FUNCTIONS and not node.keywords:
            args = [self._eval_node(arg, name, source) for arg in node.args]
            try:
                return _FUNCTIONS[node.func.id](*args)
            except (ValueError, OverflowError, TypeError, ZeroDivisionError) as exc:
                raise ValidationError(name, f"cannot evaluate {source!r}: {exc}") from exc
        raise ValidationError(name, f"unsupported syntax in expression {source!r}")
