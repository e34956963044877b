"""
Grade derivation and mark-entry validation.

Raw request bodies are untyped dicts; ``parse_mark_entry`` turns one of them
into a ``MarkEntry`` or raises one of the per-entry errors from
``utils.errors``. Nothing here touches the database.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from utils.errors import InvalidEntry, InvalidExamPeriod, InvalidScore, Unauthorized
from utils.text import collapse_whitespace, normalize_class_name, normalize_key, normalize_subject

# (lower bound, grade), highest band first
GRADE_BANDS = (
    (75, "A"),
    (65, "B"),
    (55, "C"),
    (35, "S"),
    (0, "F"),
)
GRADE_LETTERS = tuple(letter for _, letter in GRADE_BANDS)

DEFAULT_TOTAL_POSSIBLE = 100.0

MARKING_ROLES = ("staff", "admin")

# ids are stored as signed 64-bit integers
MAX_USER_ID = 2 ** 63 - 1

# wire name -> accepted aliases, first match wins
ENTRY_FIELDS = {
    "student_name": ("studentName", "student_name"),
    "admission_number": ("admissionNumber", "admission_number", "indexNumber"),
    "student_id": ("studentId", "student_id", "student"),
    "subject": ("subject",),
    "class_name": ("class", "class_name", "className"),
    "exam_period": ("examPeriod", "exam_period", "term", "examType"),
    "score": ("score", "marks"),
    "total_possible": ("totalPossible", "total_possible", "totalMarks"),
    "remarks": ("remarks",),
}


@dataclass(frozen=True)
class CallerContext:
    """Identity of the caller as resolved by the access-control layer."""

    caller_id: int
    role: str

    @property
    def can_mark(self) -> bool:
        return self.role in MARKING_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class MarkEntry:
    subject: str
    exam_period: str
    score: float
    total_possible: float = DEFAULT_TOTAL_POSSIBLE
    admission_number: str | None = None
    student_id: int | None = None
    student_name: str | None = None
    class_name: str | None = None
    remarks: str | None = None

    @property
    def percentage(self) -> float:
        return percentage_of(self.score, self.total_possible)

    @property
    def grade(self) -> str:
        return grade_for_marks(self.score, self.total_possible)


def require_marking_role(context: CallerContext) -> None:
    if context is None or not context.can_mark:
        raise Unauthorized("Only staff and admin users can manage marks")


# === grade calculator ===

def parse_number(value: Any, label: str = "Score") -> float:
    if isinstance(value, bool) or value is None:
        raise InvalidScore(f"{label} must be numeric")

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise InvalidScore(f"{label} must be numeric, got {value!r}") from None
    else:
        raise InvalidScore(f"{label} must be numeric")

    if math.isnan(number) or math.isinf(number):
        raise InvalidScore(f"{label} must be a finite number")
    return number


def grade_for_score(score: Any) -> str:
    """Map a score on the 0-100 scale to its grade band."""
    value = parse_number(score)
    if value < 0 or value > 100:
        raise InvalidScore(f"Score must be between 0 and 100, got {value:g}")

    for lower_bound, letter in GRADE_BANDS:
        if value >= lower_bound:
            return letter
    return "F"


def percentage_of(score: float, total_possible: float) -> float:
    if total_possible == DEFAULT_TOTAL_POSSIBLE:
        return score
    return score / total_possible * 100


def grade_for_marks(score: Any, total_possible: Any = DEFAULT_TOTAL_POSSIBLE) -> str:
    total = parse_total_possible(total_possible)
    value = validate_score(score, total)
    return grade_for_score(percentage_of(value, total))


def parse_total_possible(value: Any) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        return DEFAULT_TOTAL_POSSIBLE
    total = parse_number(value, label="Total possible")
    if total <= 0:
        raise InvalidScore("Total possible must be greater than 0")
    return total


def validate_score(score: Any, total_possible: float = DEFAULT_TOTAL_POSSIBLE) -> float:
    value = parse_number(score)
    if value < 0 or value > total_possible:
        raise InvalidScore(f"Score must be between 0 and {total_possible:g}, got {value:g}")
    return value


# === entry parsing ===

def validate_exam_period(value: Any, exam_periods) -> str:
    """Return the configured spelling of ``value`` ("term1" -> "Term 1")."""
    wanted = normalize_key(collapse_whitespace(value))
    if wanted:
        for period in exam_periods:
            if normalize_key(period) == wanted:
                return period
    raise InvalidExamPeriod(
        f"Invalid exam period {value!r}. Must be one of: {', '.join(exam_periods)}"
    )


def pick_field(raw: dict, field: str) -> Any:
    for alias in ENTRY_FIELDS[field]:
        value = raw.get(alias)
        if value is not None and not (isinstance(value, str) and not value.strip()):
            return value
    return None


def parse_user_id(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidEntry("Student id must be an integer")
    try:
        user_id = int(str(value).strip())
    except ValueError:
        raise InvalidEntry(f"Student id must be an integer, got {value!r}") from None
    if not 1 <= user_id <= MAX_USER_ID:
        raise InvalidEntry(f"Student id out of range: {value!r}")
    return user_id


def entry_subject_label(raw: Any) -> str:
    """Best-effort subject label for the failure ledger."""
    if not isinstance(raw, dict):
        return ""
    return normalize_subject(pick_field(raw, "subject"))


def entry_admission_number(raw: Any) -> str | None:
    if not isinstance(raw, dict):
        return None
    return collapse_whitespace(pick_field(raw, "admission_number")) or None


def parse_student_reference(raw: Any) -> tuple[str | None, int | None]:
    if not isinstance(raw, dict):
        raise InvalidEntry("Each mark entry must be an object")

    admission_number = entry_admission_number(raw)
    student_id = parse_user_id(pick_field(raw, "student_id"))
    if admission_number is None and student_id is None:
        raise InvalidEntry("An admission number or student id is required")
    return admission_number, student_id


def parse_mark_entry(raw: Any, exam_periods) -> MarkEntry:
    admission_number, student_id = parse_student_reference(raw)

    subject = normalize_subject(pick_field(raw, "subject"))
    if not subject:
        raise InvalidEntry("Subject is required")

    exam_period = validate_exam_period(pick_field(raw, "exam_period"), exam_periods)

    total_possible = parse_total_possible(pick_field(raw, "total_possible"))
    score = validate_score(pick_field(raw, "score"), total_possible)

    class_name = pick_field(raw, "class_name")
    remarks = collapse_whitespace(pick_field(raw, "remarks")) or None

    return MarkEntry(
        subject=subject,
        exam_period=exam_period,
        score=score,
        total_possible=total_possible,
        admission_number=admission_number,
        student_id=student_id,
        student_name=collapse_whitespace(pick_field(raw, "student_name")) or None,
        class_name=normalize_class_name(class_name) if class_name else None,
        remarks=remarks,
    )
