import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models.mark import Mark
from models.user import User
from utils.errors import DuplicateKeyConflict, PersistenceError

logger = logging.getLogger(__name__)

MAX_ROW_ID = 2 ** 63 - 1

MUTABLE_FIELDS = ("class_name", "score", "total_possible", "grade", "remarks", "marked_by")


def find_student_by_admission_or_id(admission_number=None, student_id=None):
    """Look up a user by admission number, falling back to the user id.

    Role and active checks are left to the caller so it can report why a
    lookup was rejected.
    """
    user = None
    if admission_number:
        user = User.query.filter_by(admission_number=admission_number).first()
    if user is None and student_id is not None:
        user = db.session.get(User, student_id)
    return user


def find_mark(mark_id):
    if not 1 <= mark_id <= MAX_ROW_ID:
        return None
    return db.session.get(Mark, mark_id)


def find_marks_by_student(student_id):
    return (
        Mark.query.filter_by(student_id=student_id)
        .order_by(Mark.exam_period.asc(), Mark.subject.asc())
        .all()
    )


def find_mark_by_key(student_id, subject, exam_period):
    return Mark.query.filter_by(
        student_id=student_id,
        subject=subject,
        exam_period=exam_period
    ).first()


def mark_key_exists(student_id, subject, exam_period):
    return db.session.query(
        Mark.query.filter_by(
            student_id=student_id,
            subject=subject,
            exam_period=exam_period
        ).exists()
    ).scalar()


def upsert_mark(student_id, subject, exam_period, fields):
    """Create or overwrite the mark for (student, subject, exam period).

    Commits on success and returns ``(mark, created)``. A unique-key
    violation is only treated as a race when the key now exists: another
    request inserted it between our lookup and our insert, so the second
    attempt finds that row and updates it. Any other integrity failure is a
    ``PersistenceError``.
    """
    for attempt in (1, 2):
        mark = find_mark_by_key(student_id, subject, exam_period)

        created = mark is None
        if created:
            mark = Mark(student_id=student_id, subject=subject, exam_period=exam_period)
            db.session.add(mark)
        for name in MUTABLE_FIELDS:
            setattr(mark, name, fields[name])

        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            if not mark_key_exists(student_id, subject, exam_period):
                logger.error(
                    "Integrity error saving mark for student=%s subject=%s period=%s: %s",
                    student_id, subject, exam_period, exc.orig
                )
                raise PersistenceError() from exc
            if attempt == 2:
                logger.error(
                    "Duplicate key persisted after retry: student=%s subject=%s period=%s",
                    student_id, subject, exam_period
                )
                raise DuplicateKeyConflict() from exc
            logger.warning(
                "Concurrent insert for student=%s subject=%s period=%s, retrying as update",
                student_id, subject, exam_period
            )
            continue
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Failed to save mark for student=%s subject=%s", student_id, subject)
            raise PersistenceError() from exc

        logger.debug(
            "%s mark %s: student=%s subject=%s period=%s score=%s grade=%s",
            "Created" if created else "Updated",
            mark.mark_id, student_id, subject, exam_period, mark.score, mark.grade
        )
        return mark, created


def save_mark(mark):
    mark_id = mark.mark_id
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Failed to update mark %s", mark_id)
        raise PersistenceError("Database error while updating mark") from exc
    return mark


def delete_mark_row(mark):
    try:
        db.session.delete(mark)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Failed to delete mark %s", mark.mark_id)
        raise PersistenceError("Database error while deleting mark") from exc
