"""Helpers for CHECK constraints built from str enums."""

from sqlalchemy import CheckConstraint


def enum_check(column: str, values: list[str], name: str) -> CheckConstraint:
    """CHECK (column IN ('a', 'b', ...)) with quotes escaped."""
    return CheckConstraint(
        "{} IN ({})".format(
            column,
            ", ".join("'{}'".format(v.replace("'", "''")) for v in values),
        ),
        name=name,
    )
