"""System clock (IClock)."""

from datetime import datetime

from hrflow.shared.utils.datetime import utc_now


class SystemClock:
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return utc_now()
