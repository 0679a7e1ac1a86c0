"""Infrastructure: SQLAlchemy persistence, org directory, event sinks, clock."""
