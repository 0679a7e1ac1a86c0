"""Domain layer: enums, exceptions, entities and approval events."""
