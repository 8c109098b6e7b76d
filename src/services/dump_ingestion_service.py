import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List

from src.dtos.run_stats import RunStats
from src.opensearch.abstract_classes import AbstractDocumentIngestionService
from src.parsing.coercion import MalformedRowError, SchemaCoercionTable
from src.parsing.tuple_tokenizer import InsertStatementTokenizer, TokenizeError
from src.services.batch_dispatcher import BatchDispatcher, format_report
from src.sources.dump_reader import InputSourceError

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    DONE = "done"
    FAILED = "failed"


class DumpIngestionService(AbstractDocumentIngestionService):
    """Drive a dump through tokenizing, coercion and batched indexing.

    Lines are consumed strictly one after another. A line that cannot be
    tokenized is dropped whole and logged; only a failure of the line source
    itself stops the run.
    """

    def __init__(
        self,
        tokenizer: InsertStatementTokenizer,
        coercion_table: SchemaCoercionTable,
        line_source: Callable[[], Iterable[str]],
        dispatcher: BatchDispatcher | None = None,
    ):
        """Create an ingestion driver.

        Args:
            tokenizer: Splits statement lines into raw tuples.
            coercion_table: Builds typed records from raw tuples.
            line_source: Opens the dump and returns its lines. Called once,
                when the run starts.
            dispatcher: Batches records into the index. Only needed by
                ``ingest``; ``dry_run`` works without one.
        """
        self.tokenizer = tokenizer
        self.coercion_table = coercion_table
        self.line_source = line_source
        self.dispatcher = dispatcher
        self.stats = dispatcher.stats if dispatcher is not None else RunStats()
        self.clock = dispatcher.clock if dispatcher is not None else time.monotonic
        self.state = PipelineState.IDLE

    def records_from_line(self, line: str) -> List[Dict[str, Any]]:
        """Typed records for one line; empty for skipped or malformed lines."""
        try:
            tuples = self.tokenizer.tokenize(line)
        except TokenizeError as exc:
            self.stats.malformed_lines += 1
            logger.warning("Error parsing line %d: %s", self.stats.lines_read, exc)
            return []

        if tuples is None:
            self.stats.lines_skipped += 1
            return []

        records = []
        for raw_values in tuples:
            try:
                records.append(self.coercion_table.build_record(raw_values))
            except MalformedRowError as exc:
                self.stats.malformed_rows += 1
                logger.warning("Skipping row on line %d: %s", self.stats.lines_read, exc)

        self.stats.records_parsed += len(records)
        return records

    def stream_documents(self, lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
        for line in lines:
            self.stats.lines_read += 1
            yield from self.records_from_line(line)

    def ingest(self) -> RunStats:
        """Run the import from start to final summary.

        Returns:
            RunStats: Counters of the finished run.

        Raises:
            InputSourceError: If the dump cannot be read. The pipeline ends in
                ``PipelineState.FAILED``.
        """
        if self.dispatcher is None:
            raise RuntimeError("ingest() needs a dispatcher")
        self._start()

        try:
            for record in self.stream_documents(self.line_source()):
                self.dispatcher.add(record)

            self.state = PipelineState.DRAINING
            self.dispatcher.final_flush()
        except InputSourceError as exc:
            self._fail(exc)
            raise

        self.state = PipelineState.DONE
        return self.stats

    def dry_run(self) -> RunStats:
        """Parse the whole dump and count records without indexing anything."""
        self._start()

        try:
            for _ in self.stream_documents(self.line_source()):
                pass
        except InputSourceError as exc:
            self._fail(exc)
            raise

        self.state = PipelineState.DONE
        logger.info(
            "Dry run complete: %s lines read, %s records parsed, %s malformed lines",
            f"{self.stats.lines_read:,}",
            f"{self.stats.records_parsed:,}",
            f"{self.stats.malformed_lines:,}",
        )
        return self.stats

    def _start(self) -> None:
        if self.state is not PipelineState.IDLE:
            raise RuntimeError(f"Pipeline already {self.state.value}")
        self.state = PipelineState.RUNNING
        self.stats.restart_clock(self.clock())

    def _fail(self, exc: Exception) -> None:
        self.state = PipelineState.FAILED
        logger.error("Error processing file: %s", exc)
        logger.error(format_report("Import failed", self.stats, self.clock()))
