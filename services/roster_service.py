from models.user import User
from services.grading import require_marking_role
from utils.text import normalize_class_name


def _active_students():
    return User.query.filter_by(role="student", is_active=True)


def list_classes(context):
    require_marking_role(context)
    rows = (
        _active_students()
        .with_entities(User.class_name)
        .filter(User.class_name.isnot(None))
        .distinct()
        .all()
    )
    return sorted(row[0] for row in rows)


def list_students_by_class(context, class_name):
    require_marking_role(context)
    query = _active_students()
    if class_name != "all":
        query = query.filter(User.class_name == normalize_class_name(class_name))
    return query.order_by(User.admission_number.asc()).all()
