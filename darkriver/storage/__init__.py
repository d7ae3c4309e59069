"""File-based JSON storage for stage templates and participant progress.

Data layout:
  data/
    stages/
      <n>.json             One StageTemplate per stage number (with version)
    participants/
      <participant>.json   One ParticipantProgress per participant (with version)
    config.json            Runtime settings (sender address, retries, trigger defaults)

Every record carries a version stamp. Progress writes are compare-and-swap
on that stamp (see progress.save_progress); registry writes go through one
lock so invariant checks and the write are a single step.

All writes are atomic: a temp file in the same directory is moved into place.
"""

# Re-export the public API so callers can use `from darkriver import storage`.

from .core import (  # noqa: F401
    data_dir,
    init_storage,
    participants_dir,
    record_key,
    stages_dir,
)

from .stages import (  # noqa: F401
    StageGraph,
    delete_stage,
    find_stage,
    get_initial,
    get_stage,
    graph,
    invalidate_snapshot,
    list_stages,
    upsert_stage,
)

from .progress import (  # noqa: F401
    create_progress,
    get_progress,
    list_participants,
    save_progress,
)

from .config import (  # noqa: F401
    get_config,
    update_config,
)
