# scalar_aad/core/__init__.py

"""
Core public API for the scalar AAD package.

Exports:
    ADVar         : Handle to one node of the computation graph.
    Op, Node      : Operation tags and the arena record behind each handle.
    Tape          : The node arena; `global_tape` is the default one.
    use_tape      : Context manager to temporarily switch the active tape.
    EngineConfig  : Per-tape engine options.
    sequence      : Topological order of the graph below a node.
    backward      : Run a single reverse pass to accumulate grads.
    zero_grad     : Reset the grads of given handles.
    zero_adjoints : Reset all grads on a tape.
    grad, grads, grads_list, value : Convenience drivers.
"""

from .config import EngineConfig
from .node import Node, Op
from .var import ADVar
from .tape import Tape, global_tape, use_tape
from .engine import sequence, backward, zero_grad, zero_adjoints
from .seeds import grad, grads, grads_list, value

__all__ = [
    "EngineConfig",
    "Node", "Op",
    "ADVar",
    "Tape", "global_tape", "use_tape",
    "sequence", "backward", "zero_grad", "zero_adjoints",
    "grad", "grads", "grads_list", "value",
]
