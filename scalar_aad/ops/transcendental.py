# scalar_aad/ops/transcendental.py
import numpy as np
from ..core.node import Op
from .arithmetic import _as_ad, _record, _tape_of


def tanh(x, *, label=None):
    """
    Hyperbolic tangent via (e^{2x} - 1) / (e^{2x} + 1).
    For large x, e^{2x} overflows and the value is NaN (inf/inf); not guarded.
    """
    tape = _tape_of(x)
    x = _as_ad(x, tape)
    with np.errstate(all="ignore"):
        e2x = np.exp(2.0 * np.float64(x.data))
        t = (e2x - 1.0) / (e2x + 1.0)
    return _record(tape, t, Op.TANH, (x,), label)
