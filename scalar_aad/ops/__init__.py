# scalar_aad/ops/__init__.py

# Convenience re-exports so users can do: from scalar_aad.ops import mul, tanh, ...
from .arithmetic import (
    leaf, add, sub, mul, pow, sum, neg, div,
    subtract, multiply, power,
)
from .transcendental import tanh

__all__ = [
    "leaf", "add", "sub", "mul", "pow", "sum", "neg", "div",
    "subtract", "multiply", "power",
    "tanh",
]
