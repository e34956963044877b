import re


def collapse_whitespace(value):
    if value is None:
        return ""
    return " ".join(str(value).strip().split())


def normalize_subject(name):
    """Subjects are keyed case-insensitively, so they are stored upper-cased."""
    return collapse_whitespace(name).upper()


def normalize_class_name(name):
    # "Grade 10 A" and "Grade-10-A" name the same class
    cleaned = collapse_whitespace(name)
    return re.sub(r"\s+", "-", cleaned)


def normalize_key(value):
    if not value:
        return ""
    return re.sub(r"[^a-z0-9]", "", str(value).lower())


def same_class(left, right):
    return normalize_key(normalize_class_name(left)) == normalize_key(normalize_class_name(right))
