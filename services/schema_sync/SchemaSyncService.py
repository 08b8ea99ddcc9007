"""Schema synchronisation service.

Samples collections of a document store, infers and promotes their
schemas, validates documents before writing them, runs compiled queries and
moves collection data in and out of export files, including whole-store
backups and publishing schemas to the metadata collection.
"""

import asyncio
from datetime import datetime
from pathlib import Path

import httpx
import pytz

from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.core.QueryCompiler import QueryCompiler
from shared.core.SchemaInference import SchemaInferenceEngine
from shared.core.SchemaSerializer import build_data_export, dumps_data_export, parse_data_export
from shared.core.ValidationEngine import CustomPredicate, ValidationEngine
from shared.errors import DocumentValidationError, SchemaBridgeError, UnknownCollectionSchema
from shared.helper.HelperConfig import HelperConfig
from shared.models.export import DataExport
from shared.models.query import QuerySpec
from shared.models.schema import CollectionSchema, SchemaDocument
from shared.models.value import MapValue, document_from_python

DEFAULT_SAMPLE_SIZE = 100   # documents sampled per collection
METADATA_COLLECTION = "_metadata_collections"
IMPORT_CONCURRENCY = 5      # max parallel document writes during an import


class SchemaSyncService:
    """Orchestrates schema discovery and schema-checked data movement for one store."""

    def __init__(
        self,
        helper_config: HelperConfig,
        store_client: StoreClientInterface,
        schemas: SchemaDocument | None = None,
        custom_predicates: dict[str, CustomPredicate] | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._store_client = store_client
        self.schemas = schemas if schemas is not None else SchemaDocument()
        self.sample_size = helper_config.get_int_val("SCHEMA_SAMPLE_SIZE", default=DEFAULT_SAMPLE_SIZE)

        self._inference = SchemaInferenceEngine(helper_config=helper_config)
        self._validator = ValidationEngine(custom_predicates=custom_predicates, helper_config=helper_config)
        self._compiler = QueryCompiler(helper_config=helper_config)

    ##########################################
    ############### DISCOVERY ################
    ##########################################

    async def do_discover_schema(self, collection: str, sample_size: int | None = None) -> CollectionSchema:
        """Sample a collection, infer its fields and register the promoted schema.

        Args:
            collection (str): Collection to sample.
            sample_size (int | None): Documents to sample. Defaults to SCHEMA_SAMPLE_SIZE.

        Returns:
            CollectionSchema: The promoted schema, also stored in ``self.schemas``.
        """
        size = self.sample_size if sample_size is None else sample_size
        sample = await self._store_client.do_sample(collection, size)
        documents = [doc for _, doc in sample]

        schema = self._inference.infer_schema(collection, documents)
        self.schemas.define_collection(schema)
        self.logging.info("Discovered %d fields in '%s' from %d documents.", len(schema.fields), collection, len(documents))
        return schema

    async def do_discover_all(self, collections: list[str] | None = None, sample_size: int | None = None) -> SchemaDocument:
        """Discover every given collection, or every root collection of the store.

        A failing collection is logged and skipped; the others are still discovered.

        Returns:
            SchemaDocument: The schema document holding all discovered collections.
        """
        if not collections:
            collections = await self._store_client.do_list_collection_ids()
            self.logging.info("Found %d collections in store '%s'.", len(collections), self._store_client.get_engine_name())

        for collection in collections:
            try:
                await self.do_discover_schema(collection, sample_size=sample_size)
            except (SchemaBridgeError, httpx.HTTPError, ValueError) as e:
                self.logging.error("Discovering collection '%s' failed: %s. Skipping.", collection, e)
        return self.schemas

    ##########################################
    ############ VALIDATED WRITES ############
    ##########################################

    def get_schema(self, collection: str) -> CollectionSchema:
        """
        Raises:
            UnknownCollectionSchema: If no schema is registered for the collection.
        """
        schema = self.schemas.collections.get(collection)
        if schema is None:
            raise UnknownCollectionSchema(collection)
        return schema

    async def do_validated_create(self, collection: str, document: MapValue | dict, document_id: str | None = None) -> str:
        """Fill defaults, validate and create a document. Nothing is written if validation fails.

        Returns:
            str: Id of the created document.

        Raises:
            UnknownCollectionSchema: If the collection has no schema.
            DocumentValidationError: If the document violates its schema.
        """
        schema = self.get_schema(collection)
        doc = self._validator.apply_defaults(schema, document)
        self._validator.ensure_valid(schema, doc)
        return await self._store_client.do_create(collection, doc, document_id=document_id)

    async def do_validated_update(self, collection: str, document_id: str, changes: MapValue | dict) -> None:
        """Validate the document as it would look after the change, then write only the changed fields.

        Raises:
            UnknownCollectionSchema: If the collection has no schema.
            DocumentValidationError: If the merged document violates its schema.
        """
        schema = self.get_schema(collection)
        patch = document_from_python(changes)
        existing = await self._store_client.do_get(collection, document_id)
        merged = dict(existing.fields.fields) if existing is not None else {}
        merged.update(patch.fields)

        self._validator.ensure_valid(schema, MapValue(fields=merged))
        await self._store_client.do_update(collection, document_id, patch)

    ##########################################
    ################ QUERIES #################
    ##########################################

    async def do_run_query(self, spec: QuerySpec) -> list[MapValue]:
        """Compile a query locally and run it against the store.

        Raises:
            UnsupportedQuery: If the query breaches a store restriction; no request is sent.
        """
        structured = self._compiler.compile(spec)
        results = await self._store_client.do_apply(structured)
        self.logging.debug("Query on '%s' returned %d documents.", spec.collection, len(results))
        return results

    ##########################################
    ############ EXPORT / IMPORT #############
    ##########################################

    async def do_export_collection(self, collection: str, output_path: Path | str | None = None) -> DataExport:
        """Export all documents of a collection, optionally writing the envelope to a file."""
        documents = await self._store_client.do_list(collection)
        export = build_data_export(collection, [doc.fields for doc in documents])
        if output_path is not None:
            Path(output_path).write_text(dumps_data_export(export), encoding="utf-8")
            self.logging.info("Exported %d documents of '%s' to %s.", export.count, collection, output_path)
        return export

    async def do_import_collection(self, source: DataExport | Path | str, collection: str | None = None, validate: bool = True) -> int:
        """Import an export envelope into a collection.

        Documents that fail validation or writing are logged and skipped.

        Args:
            source (DataExport | Path | str): An envelope or the path of an export file.
            collection (str | None): Target collection. Defaults to the envelope's collection.
            validate (bool): Check documents against the registered schema, if there is one.

        Returns:
            int: Number of imported documents.
        """
        export = source if isinstance(source, DataExport) else parse_data_export(Path(source).read_text(encoding="utf-8"))
        target = collection or export.collection
        schema = self.schemas.collections.get(target) if validate else None

        sem = asyncio.Semaphore(IMPORT_CONCURRENCY)
        results = await asyncio.gather(
            *[self._import_document(target, item, schema, sem) for item in export.data],
            return_exceptions=True,
        )

        imported = sum(1 for r in results if r is True)
        errors = [r for r in results if isinstance(r, Exception)]
        for error in errors:
            self.logging.warning("Skipped document during import into '%s': %s", target, error)
        self.logging.info("Imported %d of %d documents into '%s'.", imported, len(export.data), target)
        return imported

    async def _import_document(self, collection: str, item: dict, schema: CollectionSchema | None, sem: asyncio.Semaphore) -> bool:
        async with sem:
            doc = document_from_python(item)
            if schema is not None:
                doc = self._validator.apply_defaults(schema, doc)
                violations = self._validator.evaluate(schema, doc)
                if violations:
                    raise DocumentValidationError(collection, violations)
            await self._store_client.do_create(collection, doc)
            return True

    async def do_backup_all(self, output_dir: Path | str, collections: list[str] | None = None) -> dict[str, int]:
        """Export every given collection, or every root collection, into ``<collection>_backup.json`` files.

        A collection that fails is logged and counted as 0.

        Args:
            output_dir (Path | str): Directory for the backup files; created if missing.
            collections (list[str] | None): Collections to back up. Defaults to all root collections.

        Returns:
            dict[str, int]: Number of exported documents per collection.
        """
        target = Path(output_dir)
        target.mkdir(parents=True, exist_ok=True)
        if not collections:
            collections = await self._store_client.do_list_collection_ids()

        counts: dict[str, int] = {}
        for collection in collections:
            try:
                export = await self.do_export_collection(collection, target / f"{collection}_backup.json")
                counts[collection] = export.count
            except (SchemaBridgeError, httpx.HTTPError, OSError) as e:
                self.logging.error("Backing up collection '%s' failed: %s", collection, e)
                counts[collection] = 0
        return counts

    ##########################################
    ############# SCHEMA PUBLISH #############
    ##########################################

    async def do_publish_schemas(self) -> list[str]:
        """Write every registered collection schema into the store's metadata collection.

        Each schema becomes one document in ``_metadata_collections``, keyed by the
        collection name and stamped with ``created_at``.

        Returns:
            list[str]: Ids of the written metadata documents.
        """
        created_at = datetime.now(pytz.UTC)
        written = []
        for name, schema in self.schemas.collections.items():
            metadata = schema.model_dump(mode="json", include={"name", "fields", "indexes", "validation_rules"})
            metadata["created_at"] = created_at
            written.append(await self._store_client.do_create(METADATA_COLLECTION, document_from_python(metadata), document_id=name))
            self.logging.info("Published schema of '%s' to '%s'.", name, METADATA_COLLECTION)
        return written
