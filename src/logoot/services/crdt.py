from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional, Set

from logoot.core.metrics import SequenceMetrics, metrics as default_metrics
from logoot.crdt.codec import decode_atom, decode_atom_ident, encode_atom, encode_atom_ident, encode_sequence
from logoot.crdt.errors import DecodeError
from logoot.crdt.position import AtomIdent, Position, generate_atom_ident
from logoot.crdt.sequence import Atom, Sequence, empty_sequence, index_of, insert_atom, insert_in_place


# A text replica over the Logoot sequence: one atom per character.
# Removed atoms leave the sequence but their positions are remembered, so a
# re-delivered insert cannot bring them back.

logger = logging.getLogger(__name__)


def _items(op: Dict[str, Any], key: str) -> List[Any]:
    items = op.get(key, [])
    if not isinstance(items, list):
        raise DecodeError(f"{key} must be a list, got {items!r}")
    return items


class TextReplica:
    def __init__(
        self,
        site_id: Any,
        metrics: Optional[SequenceMetrics] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.site_id = site_id
        self._clock = 0
        self._sequence: Sequence = empty_sequence()
        self._removed: Set[Position] = set()
        self._metrics = metrics or default_metrics
        self._rng = rng

    @property
    def clock(self) -> int:
        return self._clock

    def _next_clock(self) -> int:
        self._clock += 1
        return self._clock

    def __len__(self) -> int:
        return len(self._sequence) - 2

    def to_string(self) -> str:
        return "".join(str(a.value) for a in self.atoms())

    def atoms(self) -> List[Atom]:
        return self._sequence[1:-1]

    def encoded(self) -> List[Any]:
        return encode_sequence(self._sequence)

    # Local ops (generate CRDT ops)
    def local_insert(self, index: int, text: str) -> dict:
        index = max(0, min(index, len(self)))
        ops: List[dict] = []
        for ch in text:
            prev, nxt = self._sequence[index], self._sequence[index + 1]
            ident = self._fresh_ident(prev.ident, nxt.ident)
            atom = Atom(ident, ch)
            self._metrics.record_depth(len(ident.position))
            self._integrate(atom)
            index += 1
            ops.append({"type": "ins", "atom": encode_atom(atom)})
        return {"type": "ins_batch", "atoms": ops}

    def _fresh_ident(self, prev: AtomIdent, nxt: AtomIdent) -> AtomIdent:
        # The site tiebreak is deterministic, so a removed position can come back.
        # Each retry sorts below the last taken one, which bounds the loop by the
        # size of the removed set.
        clock = self._next_clock()
        ident = generate_atom_ident(self.site_id, clock, prev, nxt, self._rng)
        while ident.position in self._removed:
            logger.debug("site %r: position was removed before, generating below it", self.site_id)
            ident = generate_atom_ident(self.site_id, clock, prev, ident, self._rng)
        return ident

    def local_delete(self, index: int, length: int) -> dict:
        index = max(0, index)
        end = min(index + length, len(self))
        targets = self._sequence[1 + index : 1 + end]
        for atom in targets:
            self._remove(atom.ident)
        return {
            "type": "del_batch",
            "targets": [{"type": "del", "ident": encode_atom_ident(a.ident)} for a in targets],
        }

    # Remote op application (idempotent)
    def apply(self, op: Dict[str, Any]) -> None:
        if not isinstance(op, dict):
            raise DecodeError(f"op must be an object, got {op!r}")
        t = op.get("type")
        atoms: List[Atom] = []
        targets: List[AtomIdent] = []
        # decode the whole op before touching the sequence
        if t == "ins_batch":
            atoms = [self._decode_ins(a) for a in _items(op, "atoms")]
        elif t == "ins":
            atoms = [self._decode_ins(op)]
        elif t == "del_batch":
            targets = [self._decode_del(tgt) for tgt in _items(op, "targets")]
        elif t == "del":
            targets = [self._decode_del(op)]
        else:
            raise DecodeError(f"unknown op type {t!r}")

        self._metrics.record_remote_op()
        for atom in atoms:
            self._clock = max(self._clock, atom.ident.clock)
            self._integrate(atom)
        for ident in targets:
            self._remove(ident)

    @staticmethod
    def _decode_ins(op: Any) -> Atom:
        if not isinstance(op, dict):
            raise DecodeError(f"insert must be an object, got {op!r}")
        return decode_atom(op.get("atom"))

    @staticmethod
    def _decode_del(op: Any) -> AtomIdent:
        if not isinstance(op, dict):
            raise DecodeError(f"delete must be an object, got {op!r}")
        return decode_atom_ident(op.get("ident"))

    def _integrate(self, atom: Atom) -> bool:
        if atom.ident.position in self._removed:
            self._metrics.record_atom("duplicate")
            return False
        size = len(self._sequence)
        insert_atom(self._sequence, atom, insert_in_place)
        if len(self._sequence) == size:
            logger.debug("site %r: atom already present, ignoring", self.site_id)
            self._metrics.record_atom("duplicate")
            return False
        self._metrics.record_atom("inserted")
        return True

    def _remove(self, ident: AtomIdent) -> bool:
        i = index_of(self._sequence, ident)
        if i == 0 or i == len(self._sequence) - 1:
            logger.warning("site %r: refusing to remove a sentinel atom", self.site_id)
            return False
        self._removed.add(ident.position)
        if i is None:
            return False
        del self._sequence[i]
        self._metrics.record_atom("removed")
        return True
