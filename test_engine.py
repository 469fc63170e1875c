"""
Reverse pass: topological order, local derivative rules, accumulation.
"""

import numpy as np
import pytest

from scalar_aad import (
    ADVar, EngineConfig, Op, Tape, use_tape,
    leaf, add, subtract, multiply, power, tanh, sum,
    sequence, backward, zero_grad, zero_adjoints,
)


def test_leaf_backward_keeps_seeded_grad():
    a = leaf(3.0)
    assert a.op is Op.NONE
    assert a.parents == ()
    a.grad = 1.0
    backward(a)
    assert a.grad == 1.0


def test_add_order_and_grads():
    a, b = leaf(1.5), leaf(-4.0)
    c = add(a, b)
    rev = list(reversed(sequence(c)))
    assert rev[0] == c
    assert rev.index(c) < rev.index(a)
    assert rev.index(c) < rev.index(b)

    c.grad = 1.0
    backward(c)
    assert a.grad == 1.0
    assert b.grad == 1.0


def test_multiply_rule():
    a, b = leaf(2.0), leaf(-3.0)
    c = multiply(a, b)
    c.grad = 1.0
    backward(c)
    assert a.grad == -3.0
    assert b.grad == 2.0


def test_shared_subgraph_accumulates_both_paths():
    a, b = leaf(2.0), leaf(3.0)
    s = add(a, b)
    d = multiply(s, a)
    assert d.data == 10.0

    d.grad = 1.0
    backward(d)
    # direct path: s.data = 5 ; through s: a.data = 2
    assert a.grad == pytest.approx(5.0 + 2.0)
    assert b.grad == pytest.approx(2.0)
    assert s.grad == pytest.approx(2.0)


def test_shared_node_sequenced_once():
    a = leaf(2.0)
    s = add(a, a)
    d = multiply(s, a)
    order = sequence(d)
    assert [v.id for v in order] == [a.id, s.id, d.id]


def test_sequence_follows_parent_order():
    a, b, c = leaf(1.0), leaf(2.0), leaf(3.0)
    ab = multiply(a, b)
    out = add(c, ab)
    assert sequence(out) == [c, a, b, ab, out]


def test_sequence_parents_precede_children():
    x = leaf(0.5)
    y = tanh(x)
    z = multiply(add(y, x), subtract(y, power(x, 2.0)))
    order = sequence(z)
    pos = {v: i for i, v in enumerate(order)}
    for v in order:
        for p in v.parents:
            assert pos[p] < pos[v]
    assert order[-1] == z


def test_equal_values_are_distinct_nodes():
    a = leaf(1.0, label="x")
    b = leaf(1.0, label="x")
    c = add(a, b)
    assert a != b
    assert len(sequence(c)) == 3

    c.grad = 1.0
    backward(c)
    assert a.grad == 1.0
    assert b.grad == 1.0


def test_square_via_multiply():
    x = leaf(3.0)
    y = multiply(x, x)
    backward(y, seed=1.0)
    assert x.grad == 6.0


def test_tanh_at_zero():
    a = leaf(0.0)
    t = tanh(a)
    assert t.data == 0.0
    t.grad = 1.0
    backward(t)
    assert a.grad == 1.0


def test_tanh_rule():
    a = leaf(0.3)
    t = tanh(a)
    backward(t, seed=1.0)
    assert t.data == pytest.approx(np.tanh(0.3), abs=1e-12)
    assert a.grad == pytest.approx(1.0 - np.tanh(0.3) ** 2, abs=1e-12)


def test_power_rule_exponent_is_constant():
    a, b = leaf(3.0), leaf(2.0)
    c = power(a, b)
    assert c.data == 9.0
    backward(c, seed=1.0)
    assert a.grad == pytest.approx(6.0)
    assert b.grad == 0.0


def test_power_fractional_exponent():
    a = leaf(4.0)
    c = power(a, 0.5)
    backward(c, seed=1.0)
    assert c.data == pytest.approx(2.0)
    assert a.grad == pytest.approx(0.25)


def test_subtract_rule():
    a, b = leaf(5.0), leaf(3.0)
    c = subtract(a, b)
    assert c.data == 2.0
    backward(c, seed=1.0)
    assert a.grad == 1.0
    assert b.grad == -1.0


def test_subtract_legacy_rule_gives_plus_grad_to_second_operand():
    with use_tape(Tape(EngineConfig(legacy_subtract_grad=True))):
        a, b = leaf(5.0), leaf(3.0)
        c = subtract(a, b)
        backward(c, seed=1.0)
        assert c.data == 2.0
        assert a.grad == 1.0
        # mathematically this should be -1.0
        assert b.grad == 1.0


def test_self_subtraction():
    x = leaf(7.0)
    y = subtract(x, x)
    backward(y, seed=1.0)
    assert y.data == 0.0
    assert x.grad == 0.0


def test_sum_is_nary_add():
    xs = [leaf(float(i)) for i in range(5)]
    s = sum(xs)
    assert s.op is Op.ADD
    assert s.parents == tuple(xs)
    assert s.data == 10.0
    backward(s, seed=1.0)
    assert all(x.grad == 1.0 for x in xs)


def test_sum_of_nothing():
    s = sum([])
    assert s.data == 0.0
    assert s.parents == ()
    backward(s, seed=1.0)
    assert s.grad == 1.0


def test_worked_example():
    x1 = leaf(2.0, label="x1")
    x2 = leaf(0.0, label="x2")
    w1 = leaf(-3.0, label="w1")
    w2 = leaf(1.0, label="w2")
    b = leaf(6.8813735870195432, label="b")

    m = add(add(multiply(x1, w1), multiply(x2, w2)), b)
    o = tanh(m)
    o.grad = 1.0
    backward(o)

    assert o.data == pytest.approx(0.7071067811865476, abs=1e-9)
    assert x1.grad == pytest.approx(-1.5, abs=1e-9)
    assert w1.grad == pytest.approx(1.0, abs=1e-9)
    assert x2.grad == pytest.approx(0.5, abs=1e-9)
    assert w2.grad == pytest.approx(0.0, abs=1e-9)
    assert b.grad == pytest.approx(0.5, abs=1e-9)


def test_worked_example_with_operators():
    x1, x2 = ADVar(2.0, name="x1"), ADVar(0.0, name="x2")
    w1, w2 = ADVar(-3.0, name="w1"), ADVar(1.0, name="w2")
    b = ADVar(6.8813735870195432, name="b")
    o = (x1 * w1 + x2 * w2 + b).tanh()
    backward(o, seed=1.0)
    np.testing.assert_allclose(
        [x1.grad, w1.grad, x2.grad, w2.grad], [-1.5, 1.0, 0.5, 0.0], atol=1e-9
    )


def test_builders_return_new_nodes():
    a, b = leaf(2.0), leaf(3.0)
    p = multiply(a, b)
    q = multiply(a, b)
    assert p != q
    assert p.id != q.id
    assert p.data == q.data
    assert a.data == 2.0 and b.data == 3.0
    assert a.grad == 0.0 and b.grad == 0.0


def test_repeated_backward_accumulates():
    a, b = leaf(2.0), leaf(-3.0)
    c = multiply(a, b)
    c.grad = 1.0
    backward(c)
    backward(c)
    assert a.grad == -6.0
    assert b.grad == 4.0


def test_zero_grad_between_passes():
    a, b = leaf(2.0), leaf(-3.0)
    c = multiply(a, b)
    c.grad = 1.0
    backward(c)
    zero_grad([a, b])
    backward(c)
    assert a.grad == -3.0
    assert b.grad == 2.0


def test_zero_adjoints_clears_tape(tape):
    a = leaf(2.0)
    c = tanh(multiply(a, a))
    backward(c, seed=1.0)
    zero_adjoints()
    assert all(node.grad == 0.0 for node in tape.nodes)


def test_unseeded_root_fails_fast():
    c = add(leaf(1.0), leaf(2.0))
    with pytest.raises(AssertionError):
        backward(c)


def test_arity_mismatch_fails_fast():
    tape = Tape(EngineConfig(check_arity=False))
    a = ADVar(1.0, tape=tape)
    idx = tape.push_node(data=1.0, op=Op.MUL, parents=[a.idx])
    bad = ADVar._from_index(tape, idx)
    with pytest.raises(AssertionError):
        backward(bad, seed=1.0)


def test_power_domain_error_propagates_nan():
    with np.errstate(all="raise"):
        a = leaf(-8.0)
        c = power(a, 0.5)
        assert np.isnan(c.data)
        backward(c, seed=1.0)
        assert np.isnan(a.grad)


def test_power_of_zero_negative_exponent_is_inf():
    c = power(leaf(0.0), -1.0)
    assert np.isinf(c.data)


def test_tanh_overflow_is_nan():
    a = leaf(400.0)
    t = tanh(a)
    assert np.isnan(t.data)
    backward(t, seed=1.0)
    assert np.isnan(a.grad)


def test_deep_chain_does_not_recurse():
    x = leaf(1.0)
    y = x
    for _ in range(5000):
        y = add(y, 0.0)
    assert len(sequence(y)) == 1 + 2 * 5000
    backward(y, seed=1.0)
    assert x.grad == 1.0


def test_verbose_backward_prints(capsys):
    with use_tape(Tape(EngineConfig(verbose=True))):
        c = multiply(leaf(2.0), leaf(3.0))
        backward(c, seed=1.0)
    assert "backward: 3 nodes" in capsys.readouterr().out


def test_seed_cancelling_earlier_pass_is_allowed():
    a, b = leaf(2.0), leaf(-3.0)
    c = multiply(a, b)
    backward(c, seed=1.0)
    backward(c, seed=-1.0)
    assert c.grad == 0.0
    assert a.grad == -3.0
    assert b.grad == 2.0


def test_explicit_zero_seed_on_leaf():
    a = leaf(4.0)
    backward(a, seed=0.0)
    assert a.grad == 0.0
