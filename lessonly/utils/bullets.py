# utils/bullets.py
"""
Keystroke rules for the "• " bulleted free-text fields (objectives, outcomes).

The field stays one plain string; these helpers only decide what the string
and the cursor look like after a change, an Enter or a Backspace.
"""
from typing import NamedTuple, Optional

BULLET = "• "
BULLET_FIELDS = ("objectives", "outcomes")


class BulletEdit(NamedTuple):
    value: str
    cursor: int


def ensure_bullet_prefix(value: Optional[str]) -> str:
    value = value or ""
    if value.startswith(BULLET):
        return value
    return BULLET + value.lstrip()


def on_change(value: Optional[str]) -> BulletEdit:
    """Apply the prefix rule to whatever the user just typed."""
    new_value = ensure_bullet_prefix(value)
    return BulletEdit(new_value, len(new_value))


def on_enter(value: str, selection_start: int, selection_end: Optional[int] = None) -> BulletEdit:
    """Replace the selection with a newline followed by a fresh bullet."""
    if selection_end is None:
        selection_end = selection_start
    inserted = "\n" + BULLET
    new_value = value[:selection_start] + inserted + value[selection_end:]
    return BulletEdit(new_value, selection_start + len(inserted))


def on_backspace(value: str, selection_start: int, selection_end: Optional[int] = None) -> Optional[BulletEdit]:
    """
    Delete a whole "• " marker in one keystroke.

    Returns None when the two characters before the cursor are not a bullet,
    meaning the ordinary single-character backspace applies.
    """
    if selection_end is None:
        selection_end = selection_start
    if selection_start < 2 or value[selection_start - 2:selection_start] != BULLET:
        return None
    new_value = value[:selection_start - 2] + value[selection_end:]
    return BulletEdit(new_value, selection_start - 2)
