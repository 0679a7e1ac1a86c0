"""Core: settings, lifespan, exception handlers, tenant context."""
