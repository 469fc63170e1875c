# scalar_aad/ops/arithmetic.py
import numpy as np
from typing import Iterable, Optional
from ..core.var import ADVar
from ..core.node import Op
from ..core import tape as tape_mod  # Use module access for use_tape() compatibility


def _tape_of(*xs):
    """Tape shared by the ADVar operands; the active tape if there are none."""
    tapes = {id(x.tape): x.tape for x in xs if isinstance(x, ADVar)}
    if len(tapes) > 1:
        raise ValueError("Cannot combine ADVars recorded on different tapes")
    if tapes:
        return next(iter(tapes.values()))
    return tape_mod.global_tape


def _as_ad(x, tape):
    """Ensure x is an ADVar; otherwise wrap it as a constant leaf on `tape`."""
    return x if isinstance(x, ADVar) else ADVar(x, tape=tape)


def _record(tape, data, op, parents, label=None):
    # p.node raises for a discarded operand
    idx = tape.push_node(data=data, op=op, parents=[p.node.id for p in parents], label=label)
    return ADVar._from_index(tape, idx)


def _binary(x, y, f, op, label):
    """
    Generic binary primitive:
      - computes out.data = f(x.data, y.data)
      - records a node with parents (x, y) in that order
    """
    tape = _tape_of(x, y)
    x = _as_ad(x, tape)
    y = _as_ad(y, tape)
    # inf/nan propagate silently
    with np.errstate(all="ignore"):
        out = f(np.float64(x.data), np.float64(y.data))
    return _record(tape, out, op, (x, y), label)


def leaf(data, label: Optional[str] = None) -> ADVar:
    """Input or parameter node: no op, no parents, grad 0.0."""
    return ADVar(data, name=label)


def add(x, y, *, label=None): return _binary(x, y, lambda a, b: a + b, Op.ADD, label)
def sub(x, y, *, label=None): return _binary(x, y, lambda a, b: a - b, Op.SUB, label)
def mul(x, y, *, label=None): return _binary(x, y, lambda a, b: a * b, Op.MUL, label)


def pow(x, y, *, label=None):
    """
    Real power:
      out.data = x.data ** y.data

    The exponent is a constant for the reverse pass. For x <= 0 with a
    non-integral exponent the value is NaN (and 0 ** negative is inf); these
    propagate as ordinary floats.
    """
    return _binary(x, y, np.power, Op.POW, label)


def sum(xs: Iterable, *, label=None):
    """
    N-ary fan-in: out.data = Σ x_i, recorded as a single add node whose
    parents are all the operands. An empty sequence gives data 0.0.
    """
    xs = list(xs)
    tape = _tape_of(*xs)
    xs = [_as_ad(x, tape) for x in xs]
    total = np.float64(0.0)
    with np.errstate(all="ignore"):
        for x in xs:
            total = total + x.data
    return _record(tape, total, Op.ADD, xs, label)


def neg(x, *, label=None):
    """-x, recorded as x * (-1)."""
    return mul(x, -1.0, label=label)


def div(x, y, *, label=None):
    """x / y, recorded as x * y ** (-1)."""
    tape = _tape_of(x, y)
    return mul(x, pow(_as_ad(y, tape), -1.0), label=label)


# Descriptive aliases
subtract = sub
multiply = mul
power = pow
