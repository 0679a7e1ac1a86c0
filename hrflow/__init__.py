"""hrflow: approval workflow engine for HR documents."""

__version__ = "1.0.0"
