"""FastAPI application entry point for the schema bridge API."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from server.routers.QueryRouter import router as query_router
from server.routers.RulesRouter import router as rules_router
from server.routers.SchemaRouter import router as schema_router
from shared.core.QueryCompiler import QueryCompiler
from shared.core.SchemaInference import SchemaInferenceEngine
from shared.core.SchemaSerializer import import_schema
from shared.core.SecurityRuleCompiler import SecurityRuleCompiler
from shared.core.ValidationEngine import ValidationEngine
from shared.errors import (
    DocumentValidationError,
    SchemaBridgeError,
    SchemaImportMalformed,
    UnknownCollectionSchema,
    UnsupportedQuery,
)
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.schema import SchemaDocument

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)

    app.state.schemas = load_schemas(app.state.helper_config)
    app.state.inference_engine = SchemaInferenceEngine(helper_config=app.state.helper_config)
    app.state.validation_engine = ValidationEngine(helper_config=app.state.helper_config)
    app.state.query_compiler = QueryCompiler(helper_config=app.state.helper_config)
    app.state.rule_compiler = SecurityRuleCompiler(helper_config=app.state.helper_config)
    logging.info("Schema bridge API ready with %d collection schemas.", len(app.state.schemas.collections))

    # while the app is running...
    yield

    logging.info("Schema bridge API shut down.")


def load_schemas(helper_config: HelperConfig) -> SchemaDocument:
    """Load the schema document from SCHEMA_OUTPUT_PATH, or start empty if there is none.

    Raises:
        SchemaImportMalformed: If the file exists but cannot be parsed.
    """
    path = helper_config.get_path_val("SCHEMA_OUTPUT_PATH")
    if path is None or not path.is_file():
        return SchemaDocument()
    return import_schema(path.read_text(encoding="utf-8"))


app = FastAPI(
    title="schema_bridge",
    description=(
        "Schema inference, document validation, query compilation and security rule "
        "rendering for a Firestore-style document store."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(schema_router)
app.include_router(query_router)
app.include_router(rules_router)


@app.exception_handler(SchemaBridgeError)
async def handle_schema_bridge_error(request: Request, exc: SchemaBridgeError) -> JSONResponse:
    """Map typed errors to 4xx responses."""
    content: dict = {"detail": str(exc), "error": type(exc).__name__}
    status_code = 400
    if isinstance(exc, UnsupportedQuery):
        content["restriction"] = exc.restriction
        content["expression"] = exc.expression
    elif isinstance(exc, UnknownCollectionSchema):
        status_code = 404
    elif isinstance(exc, (DocumentValidationError, SchemaImportMalformed)):
        status_code = 422
    request.app.state.logging.warning("Request to %s rejected: %s", request.url.path, exc)
    return JSONResponse(status_code=status_code, content=content)


if __name__ == "__main__":
    import uvicorn

    logging.info("Starting schema_bridge API Server v%s on port 8000...", app_version)
    uvicorn.run(app, host="0.0.0.0", port=8000)
