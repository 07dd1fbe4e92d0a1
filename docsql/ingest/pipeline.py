"""
Replication pipeline.

Wires the pieces together for a stream of documents:

    namespace -> SchemaModel -> DocumentTransformer -> WriterRegistry
              -> (capacity reached) -> BulkLoader -> sink

Each document of "db.coll" is transformed once for the collection's
table and once per related table ("db.coll.<relation>"), and the rows
are queued for their table. The pipeline owns its registries; callers
feeding it from several threads must serialize handle()/flush_all().
"""

import logging
from typing import Any, Dict, List, Optional

from docsql.common.logging_config import namespace_ctx, setup_logging
from docsql.common.metrics import documents_transformed_total
from docsql.config.settings import Settings, get_settings
from docsql.ingest.bulk_loader import BulkLoader
from docsql.ingest.transformer import DocumentTransformer
from docsql.mapping.schema import SchemaModel, build_schema
from docsql.queue.writers import WriterRegistry
from docsql.sink.factory import create_sink_backend
from docsql.sink.interface import SinkBackend

logger = logging.getLogger(__name__)


class ReplicationPipeline:
    """Transforms documents and batches their rows per destination table."""

    def __init__(
        self,
        schema: SchemaModel,
        sink: SinkBackend,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize pipeline.

        Args:
            schema: Mapping configuration
            sink: Sink receiving DDL and COPY data
            settings: Batch size and retry settings
        """
        self.schema = schema
        self.sink = sink
        self.settings = settings or get_settings()
        self.transformer = DocumentTransformer(schema)
        self.loader = BulkLoader(
            schema, sink, retry_attempts=self.settings.copy_retry_attempts)
        self._registries: Dict[str, WriterRegistry] = {}

    def setup(self, clobber: Optional[bool] = None) -> None:
        """Create every mapped table, then its indexes."""
        if clobber is None:
            clobber = self.settings.clobber
        self.schema.create_schema(self.sink, clobber=clobber)
        self.schema.create_indexes(self.sink)

    def registry_for(self, ns: str) -> Optional[WriterRegistry]:
        """WriterRegistry of a collection namespace, None when unmapped."""
        registry = self._registries.get(ns)
        if registry is None:
            collection = self.schema.find_ns(ns)
            if collection is None:
                return None
            registry = WriterRegistry(
                collection, ns, self.settings.batch_size, self.loader)
            self._registries[ns] = registry
        return registry

    def handle(self, ns: str, document: Dict[str, Any]) -> int:
        """
        Transform a document and queue its rows.

        Args:
            ns: Collection namespace ("db.collection")
            document: Source document

        Returns:
            Number of rows queued (0 for unmapped namespaces)

        Raises:
            SchemaError, TransformError: Propagated from the transformer
            SinkError: If a capacity-triggered flush fails
        """
        registry = self.registry_for(ns)
        if registry is None:
            logger.debug(f"Skipping document from unmapped namespace {ns}")
            documents_transformed_total.labels(status="unmapped").inc()
            return 0

        token = namespace_ctx.set(ns)
        try:
            batches = [(registry.schema.meta.table,
                        self.transformer.transform(ns, document, registry.schema))]
            for reltable in registry.schema.related:
                batches.append(
                    (reltable, self.transformer.transform(f"{ns}.{reltable}", document)))
        except Exception:
            documents_transformed_total.labels(status="failure").inc()
            raise
        finally:
            namespace_ctx.reset(token)

        documents_transformed_total.labels(status="success").inc()

        queued = 0
        for table, rows in batches:
            registry[table].extend(rows)
            queued += len(rows)
        return queued

    def handle_many(self, ns: str, documents: List[Dict[str, Any]]) -> int:
        return sum(self.handle(ns, document) for document in documents)

    def flush_all(self) -> None:
        """Flush every queue of every namespace (clean shutdown)."""
        for ns, registry in self._registries.items():
            logger.info(f"Flushing writers for {ns}")
            registry.flush_all()

    def totals(self) -> Dict[str, int]:
        """Rows queued so far per destination table."""
        totals: Dict[str, int] = {}
        for registry in self._registries.values():
            for table in registry.each_table():
                totals[table] = totals.get(table, 0) + registry.total(table)
        return totals


def create_pipeline(
    config: Dict[str, Any],
    settings: Optional[Settings] = None,
) -> ReplicationPipeline:
    """
    Build a pipeline from raw mapping configuration and settings.

    Configures logging, builds the schema model and selects the sink
    backend from `settings.database_url`. Tables are not created; call
    setup() on the result.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level, json_format=settings.log_json)

    schema = build_schema(config)
    sink = create_sink_backend(settings)
    logger.info(f"Pipeline ready for {len(schema.all_databases())} database(s)")
    return ReplicationPipeline(schema, sink, settings)
