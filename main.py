import argparse
import logging
import sys
from functools import partial

from global_config import GlobalConfig, global_config
from src.opensearch.abstract_classes import ABCClient
from src.opensearch.bulk_sink import OpenSearchBulkSink
from src.opensearch.mapping import ActivityLogMapping
from src.opensearch.open_search_client import OpenSearchClient
from src.parsing.coercion import ACTIVITYLOG_FIELDS, SchemaCoercionTable, load_schema
from src.parsing.tuple_tokenizer import InsertStatementTokenizer
from src.services.batch_dispatcher import BatchDispatcher
from src.services.dump_ingestion_service import DumpIngestionService
from src.sources.dump_reader import InputSourceError, iter_statement_lines

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Load a mysqldump INSERT file into an OpenSearch index."
    )
    parser.add_argument("--dump-path", dest="dump_path", help="SQL dump to read")
    parser.add_argument("--index", dest="index_name", help="Target OpenSearch index")
    parser.add_argument("--table", dest="target_table", help="Table whose INSERTs are loaded")
    parser.add_argument("--batch-size", dest="batch_size", type=int, help="Documents per bulk request")
    parser.add_argument("--schema", dest="schema_path", help="JSON file with the ordered column list")
    parser.add_argument(
        "--report-interval",
        dest="report_interval_seconds",
        type=float,
        help="Seconds between progress reports",
    )
    parser.add_argument(
        "--strict-columns",
        dest="strict_columns",
        action="store_true",
        default=None,
        help="Skip rows whose width differs from the schema",
    )
    parser.add_argument(
        "--create-index",
        dest="create_index",
        action="store_true",
        default=None,
        help="Create the index with typed mappings if it does not exist",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse the dump and report counts without writing to OpenSearch",
    )
    return parser.parse_args(argv)


def resolve_config(args: argparse.Namespace, base: GlobalConfig = global_config) -> GlobalConfig:
    """Apply command line overrides on top of the environment settings."""
    overrides = {
        key: value
        for key, value in vars(args).items()
        if key != "dry_run" and value is not None
    }
    return base.model_copy(update=overrides)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # Quiet down per-request logging from the client during bulk runs
    logging.getLogger("opensearch").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_service(
    config: GlobalConfig, client_provider: ABCClient | None = None
) -> DumpIngestionService:
    """Wire the pipeline; without a client provider it can only dry-run."""
    fields = load_schema(config.schema_path) if config.schema_path else ACTIVITYLOG_FIELDS
    tokenizer = InsertStatementTokenizer(config.target_table)
    coercion_table = SchemaCoercionTable(fields, strict=config.strict_columns)
    line_source = partial(iter_statement_lines, config.dump_path)

    if client_provider is None:
        return DumpIngestionService(tokenizer, coercion_table, line_source)

    client = client_provider.get_client()
    if config.create_index:
        ActivityLogMapping(client, fields).create_index(config.index_name)

    sink = OpenSearchBulkSink(
        client,
        config.index_name,
        request_timeout=config.request_timeout,
        document_id_field=config.document_id_field,
    )
    dispatcher = BatchDispatcher(
        sink,
        max_batch_size=config.batch_size,
        report_interval=config.report_interval_seconds,
        error_sample_size=config.error_sample_size,
    )
    return DumpIngestionService(tokenizer, coercion_table, line_source, dispatcher)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = resolve_config(args)
    configure_logging(config.log_level)

    logger.info(
        "Importing %s into index %s (table %s, batch size %d)",
        config.dump_path,
        config.index_name,
        config.target_table,
        config.batch_size,
    )

    if args.dry_run:
        try:
            build_service(config).dry_run()
        except InputSourceError as exc:
            logger.error("Dry run failed: %s", exc)
            return 1
        return 0

    client_provider = OpenSearchClient(config)
    try:
        build_service(config, client_provider).ingest()
    except InputSourceError as exc:
        logger.error("Import failed: %s", exc)
        return 1
    finally:
        client_provider.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
