"""Use cases: approval engine facade and flow definition administration."""
