"""API v1: approval flows, approval instances, delegations, health."""

from hrflow.api.v1.router import api_router

__all__ = ["api_router"]
