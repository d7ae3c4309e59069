"""Create a demo story for development/testing."""

import shutil

from darkriver import storage

DEMO_STAGES = [
    {
        "stage": 1,
        "is_initial": True,
        "subject": "Do you remember the river?",
        "body": "I found your address in my father's notebook, under a page "
        "that just says DARK RIVER. If you know what that means, tell me you "
        "will help. If not, forget you ever read this.",
        "description": "Opening contact. Advances once the player offers help.",
        "trigger": {"keywords": ["help", "i will", "count me in"]},
        "next_stage": 2,
    },
    {
        "stage": 2,
        "subject": "The notebook",
        "body": "Thank you. The notebook has a list of dates and one word "
        "circled three times: LANTERN. Does that mean anything to you?",
        "description": "First clue. The player has to name the lighthouse.",
        "trigger": {"keywords": ["lighthouse"], "mode": "word"},
        "next_stage": 3,
    },
    {
        "stage": 3,
        "subject": "Lighthouse",
        "body": "The old lighthouse past the quarry. Of course. I am going "
        "there tonight. If you don't hear from me by morning, the last page "
        "of the notebook is yours.",
        "description": "Final stage.",
        "trigger": {"keywords": ["lighthouse"]},
        "next_stage": 3,
    },
]


def create_demo_data() -> None:
    """Wipe existing stages/participants and create the demo story."""
    for path in (storage.stages_dir(), storage.participants_dir()):
        if path.exists():
            shutil.rmtree(path)
        path.mkdir(parents=True, exist_ok=True)
    storage.invalidate_snapshot()

    # Terminal stage first so every next_stage resolves at write time
    for stage in sorted(DEMO_STAGES, key=lambda s: s["stage"], reverse=True):
        storage.upsert_stage(stage)
