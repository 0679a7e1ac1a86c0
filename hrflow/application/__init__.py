"""Application layer: ports, DTOs, engine services and use cases."""
