# scalar_aad/core/var.py
from __future__ import annotations
import numbers
import numpy as np
from typing import Optional, Tuple

from . import tape as tape_mod  # Use module access for use_tape() compatibility
from .node import Node, Op


def _ops():
    # ops import this module; resolve them lazily
    from .. import ops
    return ops


class ADVar:
    """
    Handle to one node of a tape.

    Creating an ADVar from a number records a new leaf on the active tape
    (or on `tape` when given). Arithmetic on handles records new nodes and
    returns new handles; existing nodes are never modified.

    Attributes
    ----------
    tape : Tape
        Arena that owns the node.
    idx  : int
        Index of the node in `tape`.
    gen  : int
        Tape generation the node was created in. Once the node is dropped by
        Tape.truncate/reset the handle is stale and any access to the node
        raises ReferenceError.

    Two handles are equal iff they refer to the same node; values are never
    compared.
    """

    __slots__ = ("tape", "idx", "gen")

    def __init__(self, val, *, name: Optional[str] = None, tape=None):
        # Only real scalars: no tensors, no complex numbers
        if isinstance(val, bool) or not isinstance(val, numbers.Real):
            raise TypeError(
                f"ADVar only accepts real scalars (int, float, numpy scalar), "
                f"but got {type(val)}"
            )
        self.tape = tape if tape is not None else tape_mod.global_tape
        self.idx = self.tape.push_node(data=val, op=Op.NONE, label=name)
        self.gen = self.tape.generation

    @classmethod
    def _from_index(cls, tape, idx: int) -> "ADVar":
        v = cls.__new__(cls)
        v.tape = tape
        v.idx = idx
        v.gen = tape.nodes[idx].gen
        return v

    # ---- node fields ----
    @property
    def is_stale(self) -> bool:
        return not self.tape.is_live(self.idx, self.gen)

    @property
    def node(self) -> Node:
        if self.is_stale:
            raise ReferenceError(
                f"ADVar points at node {self.idx}, which was discarded by Tape.truncate/reset"
            )
        return self.tape.nodes[self.idx]

    @property
    def id(self) -> int:
        return self.idx

    @property
    def data(self):
        return self.node.data

    @data.setter
    def data(self, value):
        # parameter updates between training steps
        self.node.data = np.float64(value)

    @property
    def grad(self):
        return self.node.grad

    @grad.setter
    def grad(self, value):
        self.node.grad = float(value)

    @property
    def op(self) -> Op:
        return self.node.op

    @property
    def label(self) -> Optional[str]:
        return self.node.label

    @label.setter
    def label(self, value: Optional[str]):
        self.node.label = value

    @property
    def parents(self) -> Tuple["ADVar", ...]:
        return tuple(ADVar._from_index(self.tape, p) for p in self.node.parents)

    @property
    def is_leaf(self) -> bool:
        return self.node.is_leaf

    # ---- identity ----
    def __eq__(self, other):
        if not isinstance(other, ADVar):
            return NotImplemented
        return self.tape is other.tape and self.idx == other.idx and self.gen == other.gen

    def __hash__(self):
        return hash((id(self.tape), self.idx, self.gen))

    def __repr__(self):
        if self.is_stale:
            return f"ADVar(<discarded node {self.idx}>)"
        return f"ADVar(label={self.label!r}, data={float(self.data)!r}, grad={float(self.grad)!r})"

    def __float__(self):
        return float(self.data)

    # ---- arithmetic: each operator records one node (or a short composition) ----
    def __add__(self, other): return _ops().add(self, other)
    def __radd__(self, other): return _ops().add(other, self)
    def __sub__(self, other): return _ops().sub(self, other)
    def __rsub__(self, other): return _ops().sub(other, self)
    def __mul__(self, other): return _ops().mul(self, other)
    def __rmul__(self, other): return _ops().mul(other, self)
    def __truediv__(self, other): return _ops().div(self, other)
    def __rtruediv__(self, other): return _ops().div(other, self)
    def __pow__(self, other): return _ops().pow(self, other)
    def __rpow__(self, other): return _ops().pow(other, self)
    def __neg__(self): return _ops().neg(self)

    def tanh(self):
        return _ops().tanh(self)
