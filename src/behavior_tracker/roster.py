"""Per-teacher, per-grade student rosters."""

from __future__ import annotations

GRADE_OPTIONS: tuple[str, ...] = ("PK", "K", "1", "2", "3", "4", "5", "6")
DEFAULT_GRADE = "K"


class StudentRoster:
    """Ordered student lists keyed by (teacher uid, grade)."""

    def __init__(self) -> None:
        self._students: dict[tuple[str, str], list[str]] = {}

    @staticmethod
    def _check_grade(grade: str) -> None:
        if grade not in GRADE_OPTIONS:
            raise ValueError(
                f"Unknown grade {grade!r}; expected one of {', '.join(GRADE_OPTIONS)}"
            )

    def students(self, teacher_uid: str, grade: str = DEFAULT_GRADE) -> list[str]:
        """Return a copy of the roster in insertion order."""
        self._check_grade(grade)
        return list(self._students.get((teacher_uid, grade), []))

    def add(self, teacher_uid: str, grade: str, name: str) -> bool:
        """Append a student; False for a blank name or one already listed."""
        self._check_grade(grade)
        name = name.strip()
        if not name:
            return False
        roster = self._students.setdefault((teacher_uid, grade), [])
        if name in roster:
            return False
        roster.append(name)
        return True

    def remove(self, teacher_uid: str, grade: str, name: str) -> bool:
        """Drop a student; False if they were not on the roster."""
        self._check_grade(grade)
        roster = self._students.get((teacher_uid, grade), [])
        if name not in roster:
            return False
        roster.remove(name)
        return True


__all__ = ["DEFAULT_GRADE", "GRADE_OPTIONS", "StudentRoster"]
