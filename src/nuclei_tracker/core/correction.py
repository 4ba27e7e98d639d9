"""
Interactive track correction.

A cursor event (x, y, frame, modifiers) selects the nearest detection of the
frame and applies one command to it: delete, relabel, or extend the track into
the cursor frame by duplicating the region from an adjacent frame. Commands are
plain objects so corrections can be scripted and tested without a viewer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional

from .errors import EmptyStateError, ParameterError
from .linkage import find_nearest
from .registry import Detection, DetectionRegistry

logger = logging.getLogger(__name__)


class Extent(Enum):
    """Temporal scope of a correction relative to the selected frame."""

    THIS_FRAME = "this_frame"
    ALL = "all"
    PREVIOUS = "previous"
    FOLLOWING = "following"

    def includes(self, frame: int, selected_frame: int) -> bool:
        if self is Extent.ALL:
            return True
        if self is Extent.PREVIOUS:
            return frame <= selected_frame
        if self is Extent.FOLLOWING:
            return frame >= selected_frame
        return frame == selected_frame


class CommandKind(Enum):
    DELETE = "delete"
    RELABEL = "relabel"
    EXTEND = "extend"


class Direction(Enum):
    """Adjacent frame an extension copies its region from."""

    PREVIOUS = -1
    NEXT = 1


class State(Enum):
    IDLE = "idle"
    SELECTION = "selection"
    ACTION = "action"


@dataclass(frozen=True)
class CursorEvent:
    x: float
    y: float
    frame: int
    modifiers: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class Command:
    """
    One correction.

    Attributes:
        kind (CommandKind): What to do with the selection
        extent (Extent): Frames of the selected track affected by delete/relabel
        new_track_id (int, optional): Target id for RELABEL
        direction (Direction): Source frame for EXTEND
        track_id (int, optional): Restrict EXTEND to this track's detections
    """

    kind: CommandKind
    extent: Extent = Extent.THIS_FRAME
    new_track_id: Optional[int] = None
    direction: Direction = Direction.PREVIOUS
    track_id: Optional[int] = None


@dataclass
class CorrectionOutcome:
    command: Command
    frame: int
    selected_index: Optional[int] = None
    selected_track: int = 0
    rows_affected: int = 0
    new_index: Optional[int] = None


@dataclass
class CorrectionStateMachine:
    """
    Cursor-driven editor over a registry.

    Modifier mapping for handle_event: no modifier deletes, "alt" relabels to
    `relabel_to`, "shift" extends from the previous frame and "ctrl" extends
    from the next frame. `extent` applies to delete and relabel.
    """

    registry: DetectionRegistry
    extent: Extent = Extent.THIS_FRAME
    relabel_to: Optional[int] = None
    state: State = State.IDLE
    selected_track: Optional[int] = None
    history: List[CorrectionOutcome] = field(default_factory=list)

    def command_for_event(self, event: CursorEvent) -> Command:
        mods = {m.lower() for m in event.modifiers}
        if "shift" in mods:
            return Command(CommandKind.EXTEND, direction=Direction.PREVIOUS, track_id=self.selected_track)
        if "ctrl" in mods:
            return Command(CommandKind.EXTEND, direction=Direction.NEXT, track_id=self.selected_track)
        if "alt" in mods:
            return Command(CommandKind.RELABEL, extent=self.extent, new_track_id=self.relabel_to)
        return Command(CommandKind.DELETE, extent=self.extent)

    def handle_event(self, event: CursorEvent) -> CorrectionOutcome:
        return self.execute(self.command_for_event(event), event.x, event.y, event.frame)

    def select(self, x: float, y: float, frame: int) -> int:
        """
        Resolve the detection nearest to (x, y) in `frame`.

        Raises:
            EmptyStateError: If there is nothing to select
        """
        if self.registry.count() == 0:
            raise EmptyStateError("Nothing to select: registry is empty")
        hit = find_nearest(self.registry, x, y, frame)
        if hit is None:
            raise EmptyStateError(f"Nothing to select in frame {frame}")
        return hit[0]

    def execute(self, command: Command, x: float, y: float, frame: int) -> CorrectionOutcome:
        """
        Apply one command at the cursor position.

        The machine is back in IDLE when this returns or raises, and the
        registry invariant has been re-checked on success.
        """
        outcome = CorrectionOutcome(command=command, frame=frame)
        try:
            self.state = State.SELECTION
            if command.kind is CommandKind.EXTEND:
                self.state = State.ACTION
                self._extend(command, x, y, frame, outcome)
            else:
                index = self.select(x, y, frame)
                selected = self.registry[index]
                outcome.selected_index = index
                outcome.selected_track = selected.track_id
                self.selected_track = selected.track_id or None

                self.state = State.ACTION
                rows = self._rows_in_extent(index, command.extent)
                if command.kind is CommandKind.DELETE:
                    outcome.rows_affected = self.registry.delete_indices(rows)
                    if self.selected_track not in self.registry.track_ids():
                        self.selected_track = None
                elif command.kind is CommandKind.RELABEL:
                    outcome.rows_affected = self._relabel(rows, command.new_track_id)
                    self.selected_track = command.new_track_id

            self.registry.check_consistency()
        finally:
            self.state = State.IDLE

        logger.info(
            f"{command.kind.value} ({command.extent.value}) at frame {frame}: "
            f"track {outcome.selected_track}, {outcome.rows_affected} row(s)"
        )
        self.history.append(outcome)
        return outcome

    def _rows_in_extent(self, index: int, extent: Extent) -> List[int]:
        selected = self.registry[index]
        if selected.track_id == 0:
            return [index]
        rows = [
            i
            for i, det in enumerate(self.registry.detections)
            if det.track_id == selected.track_id and extent.includes(det.frame, selected.frame)
        ]
        if index not in rows:
            rows.append(index)
        return rows

    def _relabel(self, rows: List[int], new_track_id: Optional[int]) -> int:
        if new_track_id is None or int(new_track_id) < 1:
            raise ParameterError(f"Relabel needs a track id >= 1, got {new_track_id}")
        for i in rows:
            self.registry[i].track_id = int(new_track_id)
        return len(rows)

    def _extend(self, command: Command, x, y, frame, outcome: CorrectionOutcome) -> None:
        source_frame = frame + command.direction.value
        candidates = self.registry.indices_in_frame(source_frame)
        if command.track_id and command.track_id in self.registry.track_ids():
            candidates = [i for i in candidates if self.registry[i].track_id == command.track_id]
        if not candidates:
            raise EmptyStateError(f"Nothing to extend from in frame {source_frame}")

        source_index, _ = find_nearest(self.registry, x, y, source_frame, candidates=candidates)
        source = self.registry[source_index]
        if source.track_id and any(
            self.registry[i].track_id == source.track_id
            for i in self.registry.indices_in_frame(frame)
        ):
            logger.warning(f"Track {source.track_id} already has a detection in frame {frame}")

        geometry = source.geometry.with_frame(frame) if source.geometry is not None else None
        duplicate = Detection(
            frame=frame,
            x=source.x,
            y=source.y,
            area=source.area,
            minor_axis=source.minor_axis,
            major_axis=source.major_axis,
            channel_means=list(source.channel_means),
            track_id=source.track_id,
            displacement=0.0,
        )
        outcome.selected_index = source_index
        outcome.selected_track = source.track_id
        outcome.new_index = self.registry.append(duplicate, geometry)
        outcome.rows_affected = 1
        self.selected_track = source.track_id or None
