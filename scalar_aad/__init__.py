# scalar_aad/__init__.py
# Scalar reverse-mode Automatic Adjoint Differentiation library

from .core.config import EngineConfig
from .core.node import Node, Op
from .core.var import ADVar
from .core.tape import Tape, global_tape, use_tape
from .core.engine import (
    sequence,
    backward,
    zero_grad,
    zero_adjoints,
)
from .core.seeds import grad, grads, grads_list, value
from .core.graph_utils import trace, draw_dot
from .ops import leaf, add, sub, mul, pow, sum, neg, div, tanh, subtract, multiply, power

# Network composition on top of the engine
from . import nn

__all__ = [
    # Core
    'EngineConfig',
    'Node',
    'Op',
    'ADVar',
    'Tape',
    'global_tape',
    'use_tape',
    # Engine
    'sequence',
    'backward',
    'zero_grad',
    'zero_adjoints',
    # Drivers
    'grad',
    'grads',
    'grads_list',
    'value',
    # Graph
    'trace',
    'draw_dot',
    # Ops
    'leaf',
    'add',
    'sub',
    'mul',
    'pow',
    'sum',
    'neg',
    'div',
    'tanh',
    'subtract',
    'multiply',
    'power',
    # Networks
    'nn',
]
