import logging
import time
from typing import Any, Callable, Dict, List

from src.dtos.bulk_result import BulkItemError
from src.dtos.run_stats import RunStats
from src.opensearch.abstract_classes import ABCIndexSink

logger = logging.getLogger(__name__)


class BatchDispatcher:
    """Accumulate typed records and write them to the sink in fixed-size batches.

    ``add`` flushes synchronously once the buffer is full, so the caller cannot
    read more input until the bulk write has returned and the buffer never
    holds more than ``max_batch_size`` records.

    Rejected documents are logged and dropped. A failed bulk call counts as
    zero accepted records and the run carries on.
    """

    def __init__(
        self,
        sink: ABCIndexSink,
        stats: RunStats | None = None,
        max_batch_size: int = 1000,
        report_interval: float = 30.0,
        error_sample_size: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            sink: Target accepting bulk writes.
            stats: Counters shared with the pipeline driver.
            max_batch_size: Records per bulk request.
            report_interval: Seconds between progress reports.
            error_sample_size: Rejected documents logged per flush.
            clock: Monotonic time source.
        """
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")

        self.sink = sink
        self.stats = stats if stats is not None else RunStats()
        self.max_batch_size = max_batch_size
        self.report_interval = report_interval
        self.error_sample_size = error_sample_size
        self.clock = clock
        self.buffer: List[Dict[str, Any]] = []

    def add(self, record: Dict[str, Any]) -> None:
        self.buffer.append(record)
        self.flush_if_needed()

    def flush_if_needed(self) -> int:
        """Flush when the buffer is full.

        Returns:
            int: Records accepted by this flush, 0 when nothing was flushed.
        """
        if len(self.buffer) < self.max_batch_size:
            return 0
        accepted = self.flush()
        self.maybe_report()
        return accepted

    def flush(self) -> int:
        """Write the whole buffer in one bulk call and empty it.

        Returns:
            int: Records the sink accepted.
        """
        if not self.buffer:
            return 0

        batch = list(self.buffer)
        self.stats.flushes += 1
        try:
            result = self.sink.bulk_write(batch)
        except Exception as exc:
            self.stats.failed_flushes += 1
            self.stats.records_rejected += len(batch)
            logger.error("Bulk insert of %d records failed: %s", len(batch), exc)
            return 0
        finally:
            self.buffer.clear()

        accepted = result.succeeded
        self.stats.records_accepted += accepted
        self.stats.records_rejected += len(batch) - accepted

        errors = result.errors
        if errors:
            logger.error("Bulk operation had %d errors", len(errors))
            sample = [_describe(error) for error in errors[: self.error_sample_size]]
            logger.error("Sample errors: %s", sample)

        return accepted

    def maybe_report(self, now: float | None = None) -> bool:
        """Log a progress report when ``report_interval`` has elapsed."""
        current = self.clock() if now is None else now
        if current - self.stats.last_report_time <= self.report_interval:
            return False

        logger.info(format_report("Progress Report", self.stats, current))
        self.stats.last_report_time = current
        return True

    def final_flush(self) -> int:
        """Flush the partial buffer left when input runs out, then log the summary."""
        accepted = self.flush()
        logger.info(format_report("Import Complete!", self.stats, self.clock()))
        return accepted


def format_report(title: str, stats: RunStats, now: float) -> str:
    lines = [
        f"{title}",
        f"- Lines read: {stats.lines_read:,}",
        f"- Records processed: {stats.records_accepted:,}",
        f"- Time elapsed: {round(stats.elapsed_seconds(now))} seconds",
        f"- Processing rate: {stats.rate(now):,} records/second",
    ]
    if stats.records_rejected or stats.malformed_lines:
        lines.append(f"- Records rejected: {stats.records_rejected:,}")
        lines.append(f"- Malformed lines: {stats.malformed_lines:,}")
    return "\n".join(lines)


def _describe(error: BulkItemError) -> Dict[str, Any]:
    identifier = error.doc_id
    if identifier is None and error.document:
        # first column is the table's key in mysqldump output
        first_key = next(iter(error.document))
        identifier = f"{first_key}={error.document[first_key]}"
    return {"reason": error.reason, "doc_id": identifier}
