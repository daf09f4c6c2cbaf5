"""Map PostgreSQL unique-constraint violations onto DuplicateKeyError.

Constraint names are declared in microcourses/db/tables.py; the field is
what the API reports back in `error.field`.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from microcourses.core.errors import DuplicateKeyError

_CONSTRAINT_FIELDS = {
    "uq_users_email": "email",
    "uq_enrollments_user_course": "enrollment",
    "uq_certificates_user_course": "certificate",
    "uq_certificates_hash": "certificateHash",
    "uq_lessons_course_order": "orderIndex",
}


def duplicate_field(exc: IntegrityError) -> str | None:
    detail = str(exc.orig)
    for constraint, field in _CONSTRAINT_FIELDS.items():
        if constraint in detail:
            return field
    return None


def raise_if_duplicate(exc: IntegrityError) -> None:
    """Re-raise a unique violation as DuplicateKeyError; ignore anything else."""
    field = duplicate_field(exc)
    if field is not None:
        raise DuplicateKeyError(field) from exc
