"""Ports (Protocols) implemented by infrastructure and by test doubles."""
