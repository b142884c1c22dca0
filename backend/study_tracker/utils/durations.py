"""Duration normalization helpers shared by the tracker and analytics."""

from __future__ import annotations

from typing import Any


def convert_duration_to_hours(duration: Any) -> float:
    """Convert a session duration into hours.

    Accepted shapes: seconds as a number, seconds as a numeric string,
    ``"H:MM:SS"`` or ``"MM:SS"`` text. Anything else (missing, empty,
    malformed) contributes 0 hours.
    """
    if duration is None or duration == "" or isinstance(duration, bool):
        return 0.0
    if isinstance(duration, (int, float)):
        return max(0.0, float(duration)) / 3600
    if not isinstance(duration, str):
        return 0.0
    text = duration.strip()
    if ":" in text:
        try:
            parts = [float(p) for p in text.split(":")]
        except ValueError:
            return 0.0
        if len(parts) == 3:
            return max(0.0, parts[0] + parts[1] / 60 + parts[2] / 3600)
        if len(parts) == 2:
            return max(0.0, parts[0] / 60 + parts[1] / 3600)
        return 0.0
    try:
        return max(0.0, float(text)) / 3600
    except ValueError:
        return 0.0


def hours_to_minutes(hours: float) -> int:
    return int(round(hours * 60))
