"""Trigger evaluation.

Pure functions; nothing here reads or writes storage, so they are safe to
call speculatively (e.g. for a reply preview).

Matching rules:
  - an empty or missing message never matches
  - keywords match on any-of semantics
  - "substring" mode: keyword appears anywhere in the message
  - "word" mode: keyword appears on word boundaries ("ready" does not match
    "already")
  - both sides are trimmed; case is folded unless the trigger is case_sensitive
"""

from __future__ import annotations

import re

from darkriver.models import Trigger


def normalise(text: str, case_sensitive: bool = False) -> str:
    text = " ".join(text.split())
    return text if case_sensitive else text.casefold()


def _matches(keyword: str, message: str, trigger: Trigger) -> bool:
    needle = normalise(keyword, trigger.case_sensitive)
    if not needle:
        return False
    if trigger.mode == "word":
        return re.search(rf"(?<!\w){re.escape(needle)}(?!\w)", message) is not None
    return needle in message


def matching_keywords(trigger: Trigger | None, message: str | None) -> list[str]:
    """Return the trigger keywords found in `message`, in trigger order."""
    if trigger is None or not message or not message.strip():
        return []
    haystack = normalise(message, trigger.case_sensitive)
    return [k for k in trigger.keywords if _matches(k, haystack, trigger)]


def evaluate(trigger: Trigger | None, message: str | None) -> bool:
    """True if `message` satisfies `trigger`."""
    if trigger is None or not message or not message.strip():
        return False
    haystack = normalise(message, trigger.case_sensitive)
    return any(_matches(k, haystack, trigger) for k in trigger.keywords)
