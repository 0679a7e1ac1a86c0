"""Persistence: async engine, models and repositories."""
