"""Stage template registry.

Each stage is one JSON file, stages/<n>.json. Together they form a directed
graph: node = stage, edge = trigger -> next_stage. Integrity is checked on
every write, under a single registry lock so the "one active initial stage"
rule is checked and written atomically.

Reads are served from an in-memory snapshot. Writes rebuild the snapshot
before returning; evaluations already holding a template keep the old one.
Templates returned from here are shared with the snapshot and must be treated
as read-only.
"""

import logging
import threading
from pathlib import Path
from typing import Any

from darkriver.errors import (
    DanglingNextStage,
    DuplicateInitial,
    NoInitialStage,
    UnknownStage,
    ValidationError,
)
from darkriver.models import StageTemplate, utcnow

from .config import get_config
from .core import read_json, stages_dir, write_json

logger = logging.getLogger(__name__)

_snapshot: dict[int, StageTemplate] | None = None
_snapshot_lock = threading.Lock()
_write_lock = threading.Lock()


class StageGraph:
    """Read-only view of the registry as a graph of stages."""

    def __init__(self, stages: dict[int, StageTemplate]) -> None:
        self._stages = stages

    def __contains__(self, stage: int) -> bool:
        return stage in self._stages

    def get(self, stage: int) -> StageTemplate | None:
        return self._stages.get(stage)

    def active_initials(self) -> list[StageTemplate]:
        return [s for s in self._stages.values() if s.is_initial and s.is_active]

    def edges(self) -> list[tuple[int, int]]:
        return [
            (s.stage, s.next_stage)
            for s in self._stages.values()
            if not s.is_terminal
        ]

    def referrers(self, stage: int) -> list[int]:
        """Other stages whose next_stage points at `stage`."""
        return sorted(
            s.stage for s in self._stages.values()
            if s.next_stage == stage and s.stage != stage
        )

    def check(self, template: StageTemplate) -> None:
        """Raise if writing `template` would break a registry invariant."""
        if not template.is_initial and (template.trigger is None or template.next_stage is None):
            raise ValidationError(
                f"Stage {template.stage}: trigger and next_stage are required on non-initial stages"
            )
        if template.is_initial and template.is_active:
            others = [s.stage for s in self.active_initials() if s.stage != template.stage]
            if others:
                raise DuplicateInitial(
                    f"Stage {others[0]} is already the initial stage"
                )
        nxt = template.next_stage
        if nxt is not None and nxt != template.stage and nxt not in self:
            raise DanglingNextStage(
                f"Stage {template.stage}: next_stage {nxt} does not exist"
            )

    def reachable(self) -> set[int]:
        initials = self.active_initials()
        if len(initials) != 1:
            return set()
        seen: set[int] = set()
        stack = [initials[0].stage]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            node = self._stages.get(current)
            if node is not None and not node.is_terminal:
                stack.append(node.next_stage)
        return seen

    def report(self) -> dict[str, Any]:
        """Summarise the graph for administrators."""
        initials = self.active_initials()
        problems: list[str] = []
        if not initials:
            problems.append("No active initial stage")
        elif len(initials) > 1:
            problems.append(
                "Multiple active initial stages: "
                + ", ".join(str(s.stage) for s in initials)
            )
        for src, dst in self.edges():
            target = self._stages.get(dst)
            if target is None:
                problems.append(f"Stage {src} points at missing stage {dst}")
            elif not target.is_active:
                problems.append(f"Stage {src} points at inactive stage {dst}")
        reachable = self.reachable()
        return {
            "initial": initials[0].stage if len(initials) == 1 else None,
            "edges": [list(e) for e in self.edges()],
            "terminal": sorted(s.stage for s in self._stages.values() if s.is_terminal),
            "unreachable": sorted(
                s.stage for s in self._stages.values()
                if s.is_active and reachable and s.stage not in reachable
            ),
            "problems": problems,
        }


def _stage_path(stage: int) -> Path:
    return stages_dir() / f"{stage}.json"


def _load_all() -> dict[int, StageTemplate]:
    stages: dict[int, StageTemplate] = {}
    for path in sorted(stages_dir().glob("*.json")):
        template = StageTemplate.model_validate(read_json(path))
        stages[template.stage] = template
    return stages


def invalidate_snapshot() -> None:
    global _snapshot
    with _snapshot_lock:
        _snapshot = None


def _current() -> dict[int, StageTemplate]:
    global _snapshot
    snap = _snapshot
    if snap is not None:
        return snap
    with _snapshot_lock:
        if _snapshot is None:
            _snapshot = _load_all()
        return _snapshot


def graph() -> StageGraph:
    return StageGraph(_current())


def list_stages() -> list[StageTemplate]:
    return [t for _, t in sorted(_current().items())]


def find_stage(stage: int, include_inactive: bool = True) -> StageTemplate | None:
    template = _current().get(stage)
    if template is None or (not include_inactive and not template.is_active):
        return None
    return template


def get_stage(stage: int) -> StageTemplate:
    """Return the active stage `stage` or raise UnknownStage."""
    template = find_stage(stage, include_inactive=False)
    if template is None:
        raise UnknownStage(stage)
    return template


def get_initial() -> StageTemplate:
    initials = graph().active_initials()
    if not initials:
        raise NoInitialStage("No active initial stage is configured")
    if len(initials) > 1:
        numbers = ", ".join(str(s.stage) for s in sorted(initials, key=lambda s: s.stage))
        raise NoInitialStage(f"More than one active initial stage: {numbers}")
    return initials[0]


def upsert_stage(template: StageTemplate | dict[str, Any]) -> StageTemplate:
    """Validate and persist a stage. Nothing is written if validation fails."""
    global _snapshot
    if isinstance(template, dict):
        trigger = template.get("trigger")
        if isinstance(trigger, str) and trigger.strip():
            # Plain phrases pick up the configured matching defaults
            template = {
                **template,
                "trigger": {"keywords": [trigger], **get_config()["trigger_defaults"]},
            }
        template = StageTemplate.model_validate(template)

    with _write_lock:
        stored = _load_all()
        StageGraph(stored).check(template)

        previous = stored.get(template.stage)
        saved = template.model_copy(update={
            "version": (previous.version if previous else 0) + 1,
            "updated_at": utcnow(),
        })
        write_json(_stage_path(saved.stage), saved.model_dump())
        stored[saved.stage] = saved
        with _snapshot_lock:
            _snapshot = stored

    logger.info("stage %d saved (version %d)", saved.stage, saved.version)
    return saved


def delete_stage(stage: int) -> bool:
    """Delete a stage. Refuses while another stage still points at it."""
    global _snapshot
    with _write_lock:
        stored = _load_all()
        if stage not in stored:
            return False
        referrers = StageGraph(stored).referrers(stage)
        if referrers:
            raise DanglingNextStage(
                f"Stage {stage} is the next stage of: "
                + ", ".join(str(s) for s in referrers)
            )
        _stage_path(stage).unlink()
        del stored[stage]
        with _snapshot_lock:
            _snapshot = stored

    logger.info("stage %d deleted", stage)
    return True
