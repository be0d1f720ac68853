from enum import Enum


class Intent(str, Enum):
    READ = "read"
    WRITE = "write"


ATTENDANCE_STATUSES = ("present", "absent", "late")


def classify_intent(message: str) -> Intent:
    """
    Keyword classifier for read vs write requests.

    Only explicit marking phrases count as writes. Anything else goes to the
    read pipeline, which cannot change data; a write still needs a teacher and
    an explicit confirmation.
    """
    text = (message or "").lower()

    if "mark" in text and "attendance" in text:
        return Intent.WRITE
    if "mark" in text and any(status in text for status in ATTENDANCE_STATUSES):
        return Intent.WRITE
    if "set" in text and "attendance" in text:
        return Intent.WRITE

    return Intent.READ
