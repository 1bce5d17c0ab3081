from __future__ import annotations

import random

import pytest
from hypothesis import assume, given, strategies as st

from logoot.crdt.errors import OrderInversionError
from logoot.crdt.position import (
    MAX_ATOM_IDENT,
    MAX_POS,
    MIN_ATOM_IDENT,
    AtomIdent,
    Ident,
    compare_atom_idents,
    compare_idents,
    compare_positions,
    generate_atom_ident,
    generate_position,
)


def ident(n, site):
    return Ident(n, site)


def atom_ident(*pairs, clock=0):
    return AtomIdent(tuple(Ident(n, s) for n, s in pairs), clock)


# Generated idents never carry MAX_POS with a real site, and real sites sort above 0.
idents = st.builds(Ident, st.integers(0, MAX_POS - 1), st.integers(1, 4))
atom_idents = st.builds(
    AtomIdent,
    st.lists(idents, min_size=1, max_size=4).map(tuple),
    st.integers(0, 100),
)


def test_compare_min_max():
    assert compare_atom_idents(MIN_ATOM_IDENT, MAX_ATOM_IDENT) == -1
    assert compare_atom_idents(MAX_ATOM_IDENT, MIN_ATOM_IDENT) == 1
    assert compare_atom_idents(MIN_ATOM_IDENT, MIN_ATOM_IDENT) == 0


def test_clock_is_not_used_for_ordering():
    assert compare_atom_idents(atom_ident((3, 1), clock=1), atom_ident((3, 1), clock=9)) == 0


def test_shorter_prefix_sorts_first():
    assert compare_positions([ident(3, 1)], [ident(3, 1), ident(0, 0)]) == -1
    assert compare_positions([ident(3, 1), ident(0, 0)], [ident(3, 1)]) == 1
    assert compare_positions([], []) == 0


def test_string_sites_sort_above_sentinel_site():
    assert compare_idents(ident(0, 0), ident(0, "a")) == -1
    assert compare_idents(ident(MAX_POS, "a"), ident(MAX_POS, 0)) == 1
    assert compare_idents(ident(4, "a"), ident(4, "b")) == -1


@given(atom_idents)
def test_compare_is_reflexive(a):
    assert compare_atom_idents(a, a) == 0


@given(atom_idents, atom_idents)
def test_compare_is_antisymmetric(a, b):
    result = compare_atom_idents(a, b)
    assert result in (-1, 0, 1)
    assert result == -compare_atom_idents(b, a)


@given(atom_idents, atom_idents, atom_idents)
def test_compare_is_transitive(a, b, c):
    a, b, c = sorted([a, b, c], key=lambda x: [(i.n, i.site) for i in x.position])
    assert compare_atom_idents(a, b) <= 0
    assert compare_atom_idents(b, c) <= 0
    assert compare_atom_idents(a, c) <= 0


@given(atom_idents, atom_idents, st.integers(1, 5), st.integers(0, 2**32))
def test_generated_ident_is_strictly_between(a, b, site, seed):
    assume(compare_atom_idents(a, b) != 0)
    prev, nxt = (a, b) if compare_atom_idents(a, b) < 0 else (b, a)

    g = generate_atom_ident(site, 7, prev, nxt, random.Random(seed))

    assert compare_atom_idents(prev, g) == -1
    assert compare_atom_idents(g, nxt) == -1
    assert g.clock == 7


@given(st.integers(1, 1000), st.integers(0, 2**32))
def test_between_min_and_max_allocates_top_level(site, seed):
    g = generate_atom_ident(site, 1, MIN_ATOM_IDENT, MAX_ATOM_IDENT, random.Random(seed))
    assert len(g.position) == 1
    assert 0 < g.position[0].n < MAX_POS
    assert g.position[0].site == site


def test_scenario_a_site_one_between_min_and_max():
    g = generate_atom_ident(1, 1, MIN_ATOM_IDENT, MAX_ATOM_IDENT)
    (only,) = g.position
    assert only.site == 1
    assert 0 < only.n < 32767


def test_scenario_b_tight_space_descends():
    prev = atom_ident((1, 1), (3, 2))
    nxt = atom_ident((1, 1), (5, 4))

    g = generate_atom_ident(3, 5, prev, nxt)

    assert g.position == (ident(1, 1), ident(4, 3))
    assert compare_atom_idents(prev, g) == -1
    assert compare_atom_idents(g, nxt) == -1


def test_scenario_c_random_draw_ignores_site_order():
    assert generate_position(1, [ident(3, 2)], [ident(5, 4)]) == (ident(4, 1),)


def test_adjacent_integers_use_site_tiebreak():
    assert generate_position(2, [ident(3, 1)], [ident(4, 1)]) == (ident(3, 2),)


def test_adjacent_integers_without_tiebreak_descend():
    position = generate_position(1, [ident(3, 2)], [ident(4, 1)], random.Random(3))
    assert position[0] == ident(3, 2)
    assert len(position) == 2
    assert position[1].site == 1


def test_same_integer_different_sites_descends():
    position = generate_position(1, [ident(3, 1)], [ident(3, 2)], random.Random(5))
    assert position[0] == ident(3, 1)
    assert compare_positions([ident(3, 1)], position) == -1
    assert compare_positions(position, [ident(3, 2)]) == -1


def test_next_tail_does_not_bound_once_heads_differ():
    prev = [ident(5, 1), ident(9, 1)]
    nxt = [ident(6, 1), ident(2, 2)]

    position = generate_position(1, prev, nxt, random.Random(11))

    assert compare_positions(prev, position) == -1
    assert compare_positions(position, nxt) == -1


def test_exhausted_prev_reads_as_min():
    position = generate_position(2, [ident(3, 1)], [ident(3, 1), ident(1, 1)])
    assert position == (ident(3, 1), ident(0, 2))


def test_empty_bounds_default_to_sentinels():
    position = generate_position("site-a", [], [], random.Random(1))
    assert len(position) == 1
    assert 0 < position[0].n < MAX_POS


def test_injected_rng_controls_the_draw():
    class Lowest(random.Random):
        def randrange(self, start, stop=None, step=1):
            return start

    assert generate_position(1, [ident(10, 1)], [ident(20, 1)], Lowest()) == (ident(11, 1),)


@pytest.mark.parametrize(
    "prev, nxt",
    [
        ([ident(5, 1)], [ident(5, 1)]),
        ([ident(6, 1)], [ident(5, 1)]),
        ([ident(5, 1), ident(3, 1)], [ident(5, 1)]),
        (list(MAX_ATOM_IDENT.position), list(MIN_ATOM_IDENT.position)),
    ],
)
def test_out_of_order_neighbours_raise(prev, nxt):
    with pytest.raises(OrderInversionError):
        generate_position(1, prev, nxt)


def test_no_room_between_prefix_and_sentinel_extension_raises():
    with pytest.raises(OrderInversionError):
        generate_position(1, [ident(5, 1)], [ident(5, 1), ident(0, 0)])


@pytest.mark.parametrize("site", [0, -1, None])
def test_sentinel_or_lower_site_is_rejected(site):
    with pytest.raises(ValueError):
        generate_position(site, [], [])


def test_ident_integer_out_of_range():
    with pytest.raises(ValueError):
        Ident(MAX_POS + 1, 1)
    with pytest.raises(ValueError):
        Ident(-1, 1)


def test_mixed_site_types_are_totally_ordered():
    assert compare_idents(ident(5, 7), ident(5, "s")) == -1
    assert compare_idents(ident(5, "s"), ident(5, 7)) == 1
    assert compare_idents(ident(5, 2.5), ident(5, 3)) == -1


@given(
    st.lists(
        st.builds(Ident, st.integers(0, 3), st.one_of(st.integers(0, 3), st.sampled_from(["a", "b"]))),
        min_size=3,
        max_size=3,
    )
)
def test_mixed_site_order_is_transitive(triple):
    a, b, c = sorted(triple, key=lambda i: (i.n, isinstance(i.site, str), i.site))
    assert compare_idents(a, b) <= 0
    assert compare_idents(b, c) <= 0
    assert compare_idents(a, c) <= 0
    assert compare_idents(a, b) == -compare_idents(b, a)


def test_string_site_generates_between_integer_sited_neighbours():
    prev, nxt = [ident(5, 1)], [ident(6, 1)]
    position = generate_position("x", prev, nxt)
    assert position == (ident(5, "x"),)
    assert compare_positions(prev, position) == -1
    assert compare_positions(position, nxt) == -1
