"""Infrastructure services: org directory, approval event sinks, clock."""
