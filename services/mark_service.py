"""
Single and bulk mark submission.

Both paths run the same per-entry pipeline: resolve the student, check the
declared class against the student's class, parse and validate the rest of
the entry, derive the grade and upsert on (student, subject, exam period).

A bulk submission keeps going past bad entries. Their errors are collected
in a ledger, every good entry is committed as soon as it is written, and
nothing is rolled back when a later entry fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from flask import current_app

from models.mark import Mark
from services import mark_store
from services.grading import (
    CallerContext,
    entry_admission_number,
    entry_subject_label,
    grade_for_marks,
    parse_mark_entry,
    parse_student_reference,
    parse_total_possible,
    parse_user_id,
    pick_field,
    require_marking_role,
    validate_exam_period,
    validate_score,
)
from utils.errors import (
    PER_ENTRY_ERRORS,
    ClassMismatch,
    InvalidEntry,
    InvalidStudent,
    MarkNotFound,
    Unauthorized,
)
from utils.text import collapse_whitespace, normalize_class_name, normalize_subject, same_class

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 500

# fields that identify a mark and cannot be edited in place
KEY_FIELDS = ("student_id", "admission_number", "subject", "exam_period", "class_name")


@dataclass
class LedgerEntry:
    index: int
    subject: str
    reason: str
    code: str
    admission_number: str | None = None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "subject": self.subject,
            "admission_number": self.admission_number,
            "error": self.reason,
            "code": self.code,
        }


@dataclass
class BulkResult:
    total: int
    marks: list = field(default_factory=list)
    failures: list = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures

    @property
    def partial(self) -> bool:
        return bool(self.failures) and bool(self.marks)

    def to_dict(self) -> dict:
        payload = {
            "success": self.success,
            "data": [mark.to_dict() for mark in self.marks],
            "summary": {
                "total": self.total,
                "succeeded": len(self.marks),
                "failed": len(self.failures),
            },
        }
        if self.failures:
            payload["errors"] = [entry.to_dict() for entry in self.failures]
        return payload


def exam_periods():
    return current_app.config["EXAM_PERIODS"]


def resolve_student(admission_number=None, student_id=None):
    student = mark_store.find_student_by_admission_or_id(admission_number, student_id)
    label = admission_number or student_id

    if student is None:
        raise InvalidStudent(f"Student not found: {label}")
    if not student.is_student:
        raise InvalidStudent(f"User {label} is not a student")
    if not student.is_active:
        raise InvalidStudent(f"Student {label} is inactive")
    return student


def match_student_class(student, declared_class):
    """Return the class to store on the mark, which is always the student's own."""
    if not student.class_name:
        raise InvalidStudent(f"Student {student.admission_number or student.user_id} has no class assigned")
    if declared_class and not same_class(declared_class, student.class_name):
        raise ClassMismatch(
            f"Class mismatch: {student.admission_number} is in {student.class_name}, "
            f"not {normalize_class_name(declared_class)}"
        )
    return student.class_name


def _prepare_entry(raw, periods):
    admission_number, student_id = parse_student_reference(raw)
    student = resolve_student(admission_number, student_id)
    class_name = match_student_class(student, pick_field(raw, "class_name"))
    entry = parse_mark_entry(raw, periods)
    return student, class_name, entry


def _write_mark(context, student, class_name, entry):
    mark, _ = mark_store.upsert_mark(
        student.user_id,
        entry.subject,
        entry.exam_period,
        {
            "class_name": class_name,
            "score": entry.score,
            "total_possible": entry.total_possible,
            "grade": entry.grade,
            "remarks": entry.remarks,
            "marked_by": context.caller_id,
        }
    )
    return mark


def submit_mark(context: CallerContext, payload) -> Mark:
    require_marking_role(context)
    student, class_name, entry = _prepare_entry(payload, exam_periods())
    mark = _write_mark(context, student, class_name, entry)
    logger.info(
        "Mark saved by user %s: %s %s %s -> %s",
        context.caller_id, student.admission_number, entry.subject, entry.exam_period, mark.grade
    )
    return mark


def submit_bulk_marks(context: CallerContext, entries) -> BulkResult:
    require_marking_role(context)

    if not isinstance(entries, list):
        raise InvalidEntry("Entries must be a list of mark entries")
    if not entries:
        raise InvalidEntry("No mark entries provided")
    max_entries = current_app.config["MAX_BULK_ENTRIES"]
    if len(entries) > max_entries:
        raise InvalidEntry(f"Too many entries: {len(entries)} (limit {max_entries})")

    periods = exam_periods()
    result = BulkResult(total=len(entries))

    for index, raw in enumerate(entries):
        try:
            student, class_name, entry = _prepare_entry(raw, periods)
        except PER_ENTRY_ERRORS as exc:
            failure = LedgerEntry(
                index=index,
                subject=entry_subject_label(raw),
                reason=exc.message,
                code=exc.code,
                admission_number=entry_admission_number(raw),
            )
            result.failures.append(failure)
            logger.info("Bulk entry %d rejected (%s): %s", index, exc.code, exc.message)
            continue

        result.marks.append(_write_mark(context, student, class_name, entry))

    logger.info(
        "Bulk submission by user %s: %d of %d entries saved",
        context.caller_id, len(result.marks), result.total
    )
    return result


def get_mark(context: CallerContext, mark_id) -> Mark:
    if context is None:
        raise Unauthorized()

    mark = mark_store.find_mark(mark_id)
    if mark is None:
        raise MarkNotFound()
    if not context.can_mark and mark.student_id != context.caller_id:
        raise Unauthorized("Not authorized to view this mark")
    return mark


def update_mark(context: CallerContext, mark_id, payload) -> Mark:
    """Edit the score, total possible or remarks of an existing mark.

    The key (student, subject, exam period) and the class are fixed; a mark
    for another key goes through ``submit_mark``. The grade is recomputed
    from the resulting score and total.
    """
    require_marking_role(context)

    mark = mark_store.find_mark(mark_id)
    if mark is None:
        raise MarkNotFound()
    if not context.is_admin and mark.marked_by != context.caller_id:
        raise Unauthorized("Not authorized to update this mark")

    if not isinstance(payload, dict):
        raise InvalidEntry("Mark update must be an object")
    fixed = [name for name in KEY_FIELDS if pick_field(payload, name) is not None]
    if fixed:
        raise InvalidEntry(f"Cannot change {', '.join(fixed)} of an existing mark")

    raw_score = pick_field(payload, "score")
    raw_total = pick_field(payload, "total_possible")
    remarks_given = "remarks" in payload
    if raw_score is None and raw_total is None and not remarks_given:
        raise InvalidEntry("Nothing to update: provide score, totalPossible or remarks")

    total_possible = parse_total_possible(raw_total) if raw_total is not None else mark.total_possible
    score = validate_score(raw_score if raw_score is not None else mark.score, total_possible)

    mark.score = score
    mark.total_possible = total_possible
    mark.grade = grade_for_marks(score, total_possible)
    if remarks_given:
        mark.remarks = collapse_whitespace(payload["remarks"]) or None

    mark_store.save_mark(mark)
    logger.info("Mark %s updated by user %s: score=%s grade=%s", mark_id, context.caller_id, score, mark.grade)
    return mark


def delete_mark(context: CallerContext, mark_id) -> None:
    require_marking_role(context)

    mark = mark_store.find_mark(mark_id)
    if mark is None:
        raise MarkNotFound()
    if not context.is_admin and mark.marked_by != context.caller_id:
        raise Unauthorized("Not authorized to delete this mark")

    mark_store.delete_mark_row(mark)
    logger.info("Mark %s deleted by user %s", mark_id, context.caller_id)


def _parse_limit(value):
    if value is None or value == "":
        return DEFAULT_LIST_LIMIT
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise InvalidEntry("limit must be an integer") from None
    if limit < 1:
        raise InvalidEntry("limit must be positive")
    return min(limit, MAX_LIST_LIMIT)


def list_marks(context: CallerContext, filters=None):
    if context is None:
        raise Unauthorized()
    filters = filters or {}
    query = Mark.query

    if context.role == "student":
        query = query.filter(Mark.student_id == context.caller_id)
    else:
        if filters.get("student_id"):
            query = query.filter(Mark.student_id == parse_user_id(filters["student_id"]))
        if filters.get("class_name"):
            query = query.filter(Mark.class_name == normalize_class_name(filters["class_name"]))
        if filters.get("exam_period"):
            query = query.filter(Mark.exam_period == validate_exam_period(filters["exam_period"], exam_periods()))
        if filters.get("subject"):
            query = query.filter(Mark.subject == normalize_subject(filters["subject"]))
        if filters.get("marked_by"):
            query = query.filter(Mark.marked_by == parse_user_id(filters["marked_by"]))

    return (
        query.order_by(Mark.updated_at.desc(), Mark.mark_id.desc())
        .limit(_parse_limit(filters.get("limit")))
        .all()
    )

