import math
import re
from typing import Optional


class MathTools:
    """Small numeric helpers shared by the tracker and statistics."""

    @staticmethod
    def leading_reps(reps: str | None) -> int:
        """Return the first whole number in a reps description like ``10-12``."""
        if not reps:
            return 0
        match = re.search(r"\d+", str(reps))
        return int(match.group(0)) if match else 0

    @classmethod
    def log_volume(cls, sets: int, reps: str | None, weight: float) -> float:
        """Estimate volume for a logged exercise as sets x reps x weight."""
        return max(sets, 0) * cls.leading_reps(reps) * max(weight, 0.0)


class InputCoercion:
    """Lenient conversion of user typed log values.

    Anything that does not parse as a finite, non-negative number becomes 0.
    """

    @staticmethod
    def to_float(value) -> float:
        if isinstance(value, bool):
            return 0.0
        try:
            number = float(str(value).strip()) if isinstance(value, str) else float(value)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(number) or number < 0:
            return 0.0
        return number

    @classmethod
    def to_int(cls, value) -> int:
        if isinstance(value, str):
            match = re.match(r"\s*(\d+)", value)
            return int(match.group(1)) if match else 0
        return int(cls.to_float(value))

    @classmethod
    def to_optional_int(cls, value) -> Optional[int]:
        if value is None or value == "":
            return None
        return cls.to_int(value)

    @staticmethod
    def to_text(value) -> str:
        if value is None:
            return ""
        return str(value)


class TimeFormat:
    """Formatting helpers for countdown displays."""

    @staticmethod
    def clock(seconds: int) -> str:
        """Return ``seconds`` as ``m:ss``."""
        seconds = max(int(seconds), 0)
        return f"{seconds // 60}:{seconds % 60:02d}"
