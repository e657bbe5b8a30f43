"""
Keyboard navigation between rendered node boxes.

Given the on-screen rectangles of the rendered nodes, pick the node an
arrow key should move to. Nodes "directly ahead" win over nodes that are
merely closer: misalignment on the perpendicular axis costs ten times the
gap along the travel axis.

Immediately reversing a move returns to where it came from, even when a
different node would score better, so back-and-forth stays predictable.
"""
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import msgspec

from core.ontology import ArrowDirection, Id
from infrastructure.config import NavigatorConfig

CROSS_AXIS_WEIGHT = 10.0
CENTER_ALIGN_WEIGHT = 0.1


class Rect(msgspec.Struct, kw_only=True, frozen=True):
    """Screen-space bounding box of one rendered node."""
    id: Id
    cx: float
    cy: float
    left: float
    top: float
    right: float
    bottom: float

    @classmethod
    def from_bounds(cls, node_id: Id, left: float, top: float, right: float, bottom: float) -> "Rect":
        return cls(
            id=node_id,
            cx=(left + right) / 2,
            cy=(top + bottom) / 2,
            left=left,
            top=top,
            right=right,
            bottom=bottom,
        )


@dataclass(frozen=True)
class MoveRecord:
    from_id: Id
    to_id: Id
    direction: ArrowDirection


@dataclass(frozen=True)
class CandidateMetrics:
    dist_main: float
    dist_cross: float
    dist_center: float


def cross_distance(start1: float, end1: float, start2: float, end2: float) -> float:
    """Gap between two spans on one axis; 0 if they overlap."""
    if min(end1, end2) - max(start1, start2) > 0:
        return 0.0
    return max(0.0, max(start1, start2) - min(end1, end2))


def candidate_metrics(src: Rect, cand: Rect, direction: ArrowDirection) -> Optional[CandidateMetrics]:
    """Distances from src to cand, or None if cand is not entirely on that side."""
    if direction is ArrowDirection.RIGHT:
        if cand.left < src.right:
            return None
        return CandidateMetrics(
            cand.left - src.right,
            cross_distance(src.top, src.bottom, cand.top, cand.bottom),
            abs(cand.cy - src.cy),
        )
    if direction is ArrowDirection.LEFT:
        if cand.right > src.left:
            return None
        return CandidateMetrics(
            src.left - cand.right,
            cross_distance(src.top, src.bottom, cand.top, cand.bottom),
            abs(cand.cy - src.cy),
        )
    if direction is ArrowDirection.DOWN:
        if cand.top < src.bottom:
            return None
        return CandidateMetrics(
            cand.top - src.bottom,
            cross_distance(src.left, src.right, cand.left, cand.right),
            abs(cand.cx - src.cx),
        )
    if cand.bottom > src.top:
        return None
    return CandidateMetrics(
        src.top - cand.bottom,
        cross_distance(src.left, src.right, cand.left, cand.right),
        abs(cand.cx - src.cx),
    )


class SpatialNavigator:
    """
    Arrow-key navigator with one move of memory.

    Call reset() on any mouse interaction; the retrace rule only makes
    sense for an uninterrupted keyboard path.
    """

    def __init__(
        self,
        cross_axis_weight: float = CROSS_AXIS_WEIGHT,
        center_align_weight: float = CENTER_ALIGN_WEIGHT,
    ):
        self.cross_axis_weight = cross_axis_weight
        self.center_align_weight = center_align_weight
        self._last_move: Optional[MoveRecord] = None

    @classmethod
    def from_config(cls, config: NavigatorConfig) -> "SpatialNavigator":
        return cls(cross_axis_weight=config.cross_axis, center_align_weight=config.center_align)

    @property
    def last_move(self) -> Optional[MoveRecord]:
        return self._last_move

    def reset(self) -> None:
        self._last_move = None

    def find_next(self, current_id: Id, direction: ArrowDirection, rects: Sequence[Rect]) -> Optional[Id]:
        """
        Id of the node to move to, or None.

        Returns None (and keeps the move memory) if current_id has no rect
        or no candidate lies in that direction.
        """
        direction = ArrowDirection(direction)
        current = next((r for r in rects if r.id == current_id), None)
        if current is None:
            return None

        if self._is_retrace(current_id, direction, rects):
            target_id = self._last_move.from_id
        else:
            best = self._best_candidate(current, direction, rects)
            if best is None:
                return None
            target_id = best.id

        self._last_move = MoveRecord(from_id=current_id, to_id=target_id, direction=direction)
        return target_id

    def score(self, metrics: CandidateMetrics) -> float:
        return (
            metrics.dist_main
            + metrics.dist_cross * self.cross_axis_weight
            + metrics.dist_center * self.center_align_weight
        )

    def _is_retrace(self, current_id: Id, direction: ArrowDirection, rects: Iterable[Rect]) -> bool:
        last = self._last_move
        if last is None or last.to_id != current_id or direction is not last.direction.opposite:
            return False
        return any(r.id == last.from_id for r in rects)

    def _best_candidate(self, current: Rect, direction: ArrowDirection, rects: Iterable[Rect]) -> Optional[Rect]:
        best: Optional[Rect] = None
        best_score = float("inf")
        for cand in rects:
            if cand.id == current.id:
                continue
            metrics = candidate_metrics(current, cand, direction)
            if metrics is None:
                continue
            score = self.score(metrics)
            if score < best_score:
                best_score = score
                best = cand
        return best
