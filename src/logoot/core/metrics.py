from __future__ import annotations

from collections import deque
from typing import Deque, Dict

# most recent generated positions kept for the depth percentile
DEPTH_WINDOW = 1024


class SequenceMetrics:
    def __init__(self, window: int = DEPTH_WINDOW) -> None:
        self.window = window
        self.atom_counts: Dict[str, int] = {
            "inserted": 0,
            "duplicate": 0,
            "removed": 0,
        }
        self.remote_ops: int = 0
        self.position_depths: Deque[int] = deque(maxlen=window)

    def record_atom(self, outcome: str) -> None:
        self.atom_counts[outcome] = self.atom_counts.get(outcome, 0) + 1

    def record_remote_op(self) -> None:
        self.remote_ops += 1

    def record_depth(self, depth: int) -> None:
        self.position_depths.append(depth)

    def p95_depth(self) -> float:
        if not self.position_depths:
            return 0.0
        sorted_samples = sorted(self.position_depths)
        k = int(0.95 * (len(sorted_samples) - 1))
        return float(sorted_samples[k])

    def summary(self) -> Dict[str, float | int]:
        return {
            "remote_ops": self.remote_ops,
            "p95_position_depth": self.p95_depth(),
            **self.atom_counts,
        }

    def reset(self) -> None:
        self.atom_counts = {key: 0 for key in self.atom_counts}
        self.remote_ops = 0
        self.position_depths = deque(maxlen=self.window)


metrics = SequenceMetrics()
