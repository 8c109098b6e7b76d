import logging

import pytest

from src.parsing.coercion import ACTIVITYLOG_FIELDS, SchemaCoercionTable
from src.parsing.tuple_tokenizer import InsertStatementTokenizer
from src.services.batch_dispatcher import BatchDispatcher
from src.services.dump_ingestion_service import DumpIngestionService, PipelineState
from src.sources.dump_reader import InputSourceError, iter_statement_lines
from tests.fakes import ACTIVITYLOG_LINE, FakeSink

DUMP_LINES = [
    "-- MySQL dump 10.13  Distrib 8.0.32",
    "LOCK TABLES `ACTIVITYLOG` WRITE;",
    "INSERT INTO `ACTIVITYLOG` VALUES "
    "(10,1,'{\\\"op\\\":\\\"create\\\",\\\"tags\\\":[1,2]}','2022-03-04 05:06:07','2022-03-04 05:06:07','item-9'),"
    "(11,NULL,'','2022-03-04 05:06:08',NULL,NULL),"
    "(12,3,'broken {','bad date','2022-03-04 05:06:09','NULL');",
    "INSERT INTO `ACTIVITYLOG` VALUES (13,1,'{}','2022-03-04 05:06:10'",
    ACTIVITYLOG_LINE,
    "UNLOCK TABLES;",
]


def _service(lines, sink=None, batch_size=2, strict=False):
    sink = sink or FakeSink()
    dispatcher = BatchDispatcher(sink, max_batch_size=batch_size)
    service = DumpIngestionService(
        InsertStatementTokenizer("ACTIVITYLOG"),
        SchemaCoercionTable(ACTIVITYLOG_FIELDS, strict=strict),
        lambda: iter(lines),
        dispatcher,
    )
    return service, sink


def test_ingest_loads_every_parsed_record():
    service, sink = _service(DUMP_LINES)

    stats = service.ingest()

    assert service.state is PipelineState.DONE
    assert [record["logId"] for record in sink.records] == [10, 11, 12, 1]
    assert [len(batch) for batch in sink.batches] == [2, 2]
    assert stats.lines_read == len(DUMP_LINES)
    assert stats.lines_skipped == 3
    assert stats.malformed_lines == 1
    assert stats.records_parsed == 4
    assert stats.records_accepted == 4


def test_ingest_coerces_fields():
    service, sink = _service(DUMP_LINES)
    service.ingest()
    first, second, third, fourth = sink.records

    assert first == {
        "logId": 10,
        "adminId": 1,
        "afterChange": {"op": "create", "tags": [1, 2]},
        "createdAt": "2022-03-04T05:06:07.000Z",
        "updatedAt": "2022-03-04T05:06:07.000Z",
        "itemId": "item-9",
    }
    assert second["adminId"] is None
    assert second["afterChange"] == {}
    assert second["updatedAt"] is None
    assert second["itemId"] is None
    assert third["afterChange"] == "broken {"
    assert third["itemId"] is None
    assert fourth["afterChange"] == {"a": 1}


def test_malformed_line_is_logged_and_skipped(caplog):
    service, sink = _service(DUMP_LINES)

    with caplog.at_level(logging.WARNING):
        service.ingest()

    assert "Error parsing line 4" in caplog.text
    assert 13 not in [record["logId"] for record in sink.records]


def test_strict_mode_skips_only_the_bad_row():
    lines = ["INSERT INTO `ACTIVITYLOG` VALUES (1,2,'{}',NULL,NULL,NULL),(2,3);"]
    service, sink = _service(lines, strict=True)

    stats = service.ingest()

    assert [record["logId"] for record in sink.records] == [1]
    assert stats.malformed_rows == 1
    assert stats.malformed_lines == 0


def test_sink_failures_do_not_stop_the_run():
    service, sink = _service(DUMP_LINES, sink=FakeSink(fail=True))

    stats = service.ingest()

    assert service.state is PipelineState.DONE
    assert stats.records_accepted == 0
    assert stats.failed_flushes == 2
    assert len(sink.batches) == 2


def test_input_source_failure_marks_pipeline_failed():
    def broken_source():
        yield ACTIVITYLOG_LINE
        raise InputSourceError("disk went away")

    sink = FakeSink()
    service = DumpIngestionService(
        InsertStatementTokenizer("ACTIVITYLOG"),
        SchemaCoercionTable(ACTIVITYLOG_FIELDS),
        broken_source,
        BatchDispatcher(sink),
    )

    with pytest.raises(InputSourceError):
        service.ingest()

    assert service.state is PipelineState.FAILED
    assert service.stats.lines_read == 1


def test_missing_dump_file_fails(tmp_path):
    service = DumpIngestionService(
        InsertStatementTokenizer("ACTIVITYLOG"),
        SchemaCoercionTable(ACTIVITYLOG_FIELDS),
        lambda: iter_statement_lines(tmp_path / "missing.sql"),
        BatchDispatcher(FakeSink()),
    )

    with pytest.raises(InputSourceError):
        service.ingest()
    assert service.state is PipelineState.FAILED


def test_reads_dump_file(tmp_path):
    dump = tmp_path / "activityLog.sql"
    dump.write_text("\n".join(DUMP_LINES) + "\n", encoding="utf-8")
    sink = FakeSink()
    service = DumpIngestionService(
        InsertStatementTokenizer("ACTIVITYLOG"),
        SchemaCoercionTable(ACTIVITYLOG_FIELDS),
        lambda: iter_statement_lines(dump),
        BatchDispatcher(sink, max_batch_size=1000),
    )

    stats = service.ingest()

    assert stats.lines_read == len(DUMP_LINES)
    assert len(sink.batches) == 1
    assert len(sink.records) == 4


def test_invalid_utf8_bytes_do_not_stop_the_run(tmp_path):
    valid = ACTIVITYLOG_LINE.encode("utf-8")
    dump = tmp_path / "activityLog.sql"
    dump.write_bytes(
        b"\n".join(
            [
                valid,
                valid,
                valid,
                b"-- caf\xe9",
                b"INSERT INTO `ACTIVITYLOG` VALUES (7,2,'{}','2021-01-01 00:00:00',NULL,'caf\xe9');",
                valid,
            ]
        )
        + b"\n"
    )
    sink = FakeSink()
    service = DumpIngestionService(
        InsertStatementTokenizer("ACTIVITYLOG"),
        SchemaCoercionTable(ACTIVITYLOG_FIELDS),
        lambda: iter_statement_lines(dump),
        BatchDispatcher(sink, max_batch_size=1000),
    )

    stats = service.ingest()

    assert service.state is PipelineState.DONE
    assert stats.lines_read == 6
    assert stats.records_accepted == 5
    assert sink.records[3]["logId"] == 7
    assert sink.records[3]["itemId"] == "caf\ufffd"


def test_dry_run_parses_without_dispatcher():
    service = DumpIngestionService(
        InsertStatementTokenizer("ACTIVITYLOG"),
        SchemaCoercionTable(ACTIVITYLOG_FIELDS),
        lambda: iter(DUMP_LINES),
    )

    stats = service.dry_run()

    assert stats.records_parsed == 4
    assert stats.records_accepted == 0
    assert service.state is PipelineState.DONE

    with pytest.raises(RuntimeError):
        service.ingest()


def test_pipeline_runs_once():
    service, _ = _service(DUMP_LINES)
    service.ingest()
    with pytest.raises(RuntimeError):
        service.ingest()


def test_stream_documents_yields_records_lazily():
    service, sink = _service(DUMP_LINES)
    records = service.stream_documents(DUMP_LINES)

    assert next(records)["logId"] == 10
    assert service.stats.lines_read == 3
    assert sink.batches == []
