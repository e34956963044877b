"""
Error taxonomy for mark submission and reporting.

Every error carries a machine-readable ``code`` and the HTTP status the API
answers with. Bulk submission catches the per-entry subclasses
(``InvalidEntry``, ``InvalidScore``, ``InvalidExamPeriod``, ``InvalidStudent``,
``ClassMismatch``) and records them in the failure ledger instead of raising.
"""


class GradingError(Exception):
    code = "GRADING_ERROR"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {"success": False, "message": self.message, "error": self.code}


# === per-entry errors ===

class InvalidEntry(GradingError):
    code = "INVALID_ENTRY"
    default_message = "Malformed mark entry"


class InvalidScore(GradingError):
    code = "INVALID_SCORE"
    default_message = "Score must be a number within the allowed range"


class InvalidExamPeriod(GradingError):
    code = "INVALID_EXAM_PERIOD"
    default_message = "Unknown exam period"


class InvalidStudent(GradingError):
    code = "INVALID_STUDENT"
    status_code = 404
    default_message = "Student not found"


class ClassMismatch(GradingError):
    code = "CLASS_MISMATCH"
    default_message = "Class does not match the student's class"


PER_ENTRY_ERRORS = (InvalidEntry, InvalidScore, InvalidExamPeriod, InvalidStudent, ClassMismatch)


# === call-level errors ===

class Unauthorized(GradingError):
    code = "UNAUTHORIZED"
    status_code = 403
    default_message = "Not authorized to perform this action"


class MarkNotFound(GradingError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Mark not found"


class DuplicateKeyConflict(GradingError):
    code = "DUPLICATE_KEY_CONFLICT"
    status_code = 409
    default_message = "A mark for this student, subject and exam period is being written concurrently"


class PersistenceError(GradingError):
    code = "PERSISTENCE_ERROR"
    status_code = 500
    default_message = "Database error while saving marks"
