"""Identifiers for flow definitions, instances and delegation records."""

from cuid2 import Cuid

# Default CUID2 length; fits every id column and URL path segment.
_ids = Cuid()


def generate_cuid() -> str:
    """New collision-resistant CUID2 string."""
    return _ids.generate()
