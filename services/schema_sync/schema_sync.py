"""Schema discovery runner entry point.

Samples the configured collections of every store engine, writes the
discovered schema document and, when RULES_OUTPUT_PATH is set, a starter
security rules file. SCHEMA_PUBLISH=true also stores the schemas in the
metadata collection, and BACKUP_DIR backs up every collection per engine.

Usage:
    python -m services.schema_sync.schema_sync
"""

import asyncio

import httpx

from services.schema_sync.SchemaSyncService import SchemaSyncService
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.clients.store.StoreClientManager import StoreClientManager
from shared.core.SchemaSerializer import dumps_schema
from shared.core.SecurityRuleCompiler import SecurityRuleCompiler
from shared.errors import SchemaBridgeError
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.rules import common_rules
from shared.models.schema import SchemaDocument


async def main() -> None:
    """Run schema discovery once for all configured store engines."""
    logger = setup_logging()
    config = HelperConfig(logger=logger)
    store_manager = StoreClientManager(helper_config=config)
    store_clients = store_manager.get_clients()

    collections = config.get_list_val("SCHEMA_COLLECTIONS", default=[])
    schema_path = config.get_path_val("SCHEMA_OUTPUT_PATH", default="schema.json")
    rules_path = config.get_path_val("RULES_OUTPUT_PATH")
    backup_dir = config.get_path_val("BACKUP_DIR")
    publish = config.get_bool_val("SCHEMA_PUBLISH", default=False)

    try:
        # at least one store needs to boot, clients failing their healthcheck are skipped
        booted_clients: list[StoreClientInterface] = []
        for store_client in store_clients:
            try:
                await store_client.boot()
                await store_client.do_healthcheck()
                booted_clients.append(store_client)
            except (SchemaBridgeError, httpx.HTTPError) as e:
                logger.error(f"Error booting store client {store_client.get_engine_name()}: {e}. Skipping this client.")
        if not booted_clients:
            logger.error("No store clients booted successfully. Aborting.")
            return

        schemas = SchemaDocument()
        for store_client in booted_clients:
            service = SchemaSyncService(helper_config=config, store_client=store_client, schemas=schemas)
            await service.do_discover_all(collections=collections or None)
            if publish:
                await service.do_publish_schemas()
            if backup_dir is not None:
                counts = await service.do_backup_all(backup_dir / store_client.get_engine_name(), collections=collections or None)
                logger.info("Backed up %d documents from %d collections to %s", sum(counts.values()), len(counts), backup_dir)

        schema_path.parent.mkdir(parents=True, exist_ok=True)
        schema_path.write_text(dumps_schema(schemas), encoding="utf-8")
        logger.info("Wrote %d collection schemas to %s", len(schemas.collections), schema_path, color="green")

        if rules_path is not None:
            rules_path.parent.mkdir(parents=True, exist_ok=True)
            rules_path.write_text(SecurityRuleCompiler(helper_config=config).render(common_rules()), encoding="utf-8")
            logger.info("Wrote security rules to %s", rules_path, color="green")
    finally:
        for store_client in store_clients:
            await store_client.close()


if __name__ == "__main__":
    asyncio.run(main())
