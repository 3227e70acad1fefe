from typing import Optional


def append_note(existing: Optional[str], label: str, addition: Optional[str]) -> Optional[str]:
    """
    Appends "label: addition" to a free-text notes field, keeping what was there.

    >>> append_note("met client", "Check-out notes", "signed contract")
    'met client\\n\\nCheck-out notes: signed contract'
    """
    if not addition:
        return existing
    entry = f"{label}: {addition}"
    if not existing:
        return entry
    return f"{existing}\n\n{entry}"
