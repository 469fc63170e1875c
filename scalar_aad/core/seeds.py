# scalar_aad/core/seeds.py

#-----------------------------------------------------------------------------
# One-call drivers: record f on a private tape, seed the output with 1.0,
# run one backward pass and read the input grads off as plain floats.
#-----------------------------------------------------------------------------
from __future__ import annotations
from typing import Any, Callable, Dict, Iterable, List

from .var import ADVar
from .tape import use_tape
from .engine import backward


def value(x: Any) -> Any:
    """Forward value of an ADVar; numbers are returned as they are."""
    return x.data if isinstance(x, ADVar) else x


def _ensure_ad(v: Any, *, name: str) -> ADVar:
    return v if isinstance(v, ADVar) else ADVar(v, name=name)


def _as_output(y: Any) -> ADVar:
    if not isinstance(y, ADVar):
        # f did not depend on its inputs: a constant output
        y = ADVar(y, name="y")
    return y


def grad(f: Callable[[ADVar], ADVar], x0: float) -> float:
    """df/dx at x0 for a scalar function of one scalar."""
    with use_tape():
        x = _ensure_ad(x0, name="x")
        y = _as_output(f(x))
        backward(y, seed=1.0)
        return float(x.grad)


def grads(f: Callable[[Dict[str, ADVar]], ADVar],
          inputs: Dict[str, float]) -> Dict[str, float]:
    """
    Partials of a scalar f with respect to named scalar inputs.

    `f` receives {name: ADVar leaf} and returns one ADVar (or a number when it
    ignores its inputs). A single backward pass fills every partial; the
    result maps each name to a float, in the key order of `inputs`. Inputs f
    does not use get 0.0.
    """
    if not inputs:
        raise ValueError("grads(f, inputs) needs at least one input")
    with use_tape():
        vars_ad: Dict[str, ADVar] = {k: _ensure_ad(v, name=k) for k, v in inputs.items()}
        y = _as_output(f(vars_ad))
        backward(y, seed=1.0)
        return {k: float(vars_ad[k].grad) for k in inputs.keys()}


def grads_list(f: Callable[[List[ADVar]], ADVar],
               x0_list: Iterable[float]) -> List[float]:
    """
    Positional form of grads(): f gets a list of leaves named x0, x1, ...

        grads_list(lambda xs: xs[0]*xs[0] + 3*xs[1], [2.0, 4.0])  # [4.0, 3.0]
    """
    with use_tape():
        xs: List[ADVar] = [_ensure_ad(v, name=f"x{i}") for i, v in enumerate(x0_list)]
        y = _as_output(f(xs))
        backward(y, seed=1.0)
        return [float(x.grad) for x in xs]
