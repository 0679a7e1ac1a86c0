"""Application DTOs (input/output of use cases)."""
