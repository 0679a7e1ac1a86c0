"""Rate limiter instance for SlowAPI.

Shared so main (app.state.limiter) and the route modules use the same
instance without circular imports. Limit strings live here so every write
route shares one budget per client address.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

WRITE_ENDPOINT_LIMIT = "120/minute"

limit_writes = limiter.limit(WRITE_ENDPOINT_LIMIT)
