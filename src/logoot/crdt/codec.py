from __future__ import annotations

from typing import Any, List

from logoot.crdt.errors import DecodeError
from logoot.crdt.position import MAX_POS, AtomIdent, Ident, Position
from logoot.crdt.sequence import Atom, Sequence


# JSON-compatible nested lists:
#   ident      [n, site]
#   position   [ident, ...]
#   atom ident [position, clock]
#   atom       [atom ident, value]


def encode_ident(ident: Ident) -> List[Any]:
    return [ident.n, ident.site]


def encode_position(position: Position) -> List[Any]:
    return [encode_ident(i) for i in position]


def encode_atom_ident(ident: AtomIdent) -> List[Any]:
    return [encode_position(ident.position), ident.clock]


def encode_atom(atom: Atom) -> List[Any]:
    return [encode_atom_ident(atom.ident), atom.value]


def encode_sequence(sequence: Sequence) -> List[Any]:
    return [encode_atom(a) for a in sequence]


def _pair(raw: Any, what: str) -> tuple[Any, Any]:
    if not isinstance(raw, (list, tuple)) or len(raw) != 2:
        raise DecodeError(f"{what} must be a two-element list, got {raw!r}")
    return raw[0], raw[1]


def _integer(raw: Any, what: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise DecodeError(f"{what} must be an integer, got {raw!r}")
    return raw


def decode_ident(raw: Any) -> Ident:
    n, site = _pair(raw, "ident")
    n = _integer(n, "ident integer")
    if not 0 <= n <= MAX_POS:
        raise DecodeError(f"ident integer {n} outside [0, {MAX_POS}]")
    if site is None or isinstance(site, bool) or isinstance(site, (list, dict)):
        raise DecodeError(f"unsupported site id {site!r}")
    return Ident(n, site)


def decode_position(raw: Any) -> Position:
    if not isinstance(raw, (list, tuple)):
        raise DecodeError(f"position must be a list, got {raw!r}")
    return tuple(decode_ident(i) for i in raw)


def decode_atom_ident(raw: Any) -> AtomIdent:
    position, clock = _pair(raw, "atom ident")
    return AtomIdent(decode_position(position), _integer(clock, "clock"))


def decode_atom(raw: Any) -> Atom:
    ident, value = _pair(raw, "atom")
    return Atom(decode_atom_ident(ident), value)


def decode_sequence(raw: Any) -> Sequence:
    if not isinstance(raw, (list, tuple)):
        raise DecodeError(f"sequence must be a list, got {raw!r}")
    return [decode_atom(a) for a in raw]
