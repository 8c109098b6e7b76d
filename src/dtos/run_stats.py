import time

from pydantic import BaseModel, Field


class RunStats(BaseModel):
    """Counters for a single import run.

    Counters only ever grow while a run is in progress. Timestamps are
    ``time.monotonic()`` readings so elapsed time is immune to clock changes.
    """

    lines_read: int = 0
    lines_skipped: int = 0
    malformed_lines: int = 0
    malformed_rows: int = 0
    records_parsed: int = 0
    records_accepted: int = 0
    records_rejected: int = 0
    flushes: int = 0
    failed_flushes: int = 0

    start_time: float = Field(default_factory=time.monotonic)
    last_report_time: float = Field(default_factory=time.monotonic)

    def elapsed_seconds(self, now: float | None = None) -> float:
        current = time.monotonic() if now is None else now
        return max(current - self.start_time, 0.0)

    def rate(self, now: float | None = None) -> int:
        """Accepted records per second, rounded."""
        elapsed = self.elapsed_seconds(now)
        if elapsed <= 0:
            return 0
        return round(self.records_accepted / elapsed)

    def restart_clock(self, now: float | None = None) -> None:
        current = time.monotonic() if now is None else now
        self.start_time = current
        self.last_report_time = current
