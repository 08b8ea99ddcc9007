from fastapi import APIRouter, Depends, HTTPException, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import InferRequest, ValidateRequest
from server.models.responses import InferResponse, ValidateResponse
from shared.errors import UnknownCollectionSchema

router = APIRouter(prefix="/schema", tags=["schema"])


@router.post("/infer")
async def infer_schema(
    request: Request,
    body: InferRequest,
    _: None = Depends(verify_api_key),
) -> InferResponse:
    """Infer field observations and a promoted schema from posted sample documents.

    Args:
        request (Request): FastAPI request (provides app.state.inference_engine).
        body (InferRequest): Collection name, sample documents and optional sample size.

    Returns:
        InferResponse: Observations in first-seen order plus the promoted collection schema.

    Raises:
        HTTPException: 422 if the sample size is smaller than the number of documents.
    """
    engine = request.app.state.inference_engine
    try:
        observations = engine.infer(body.documents, total=body.total)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    total = len(body.documents) if body.total is None else body.total
    schema = engine.promote(body.collection, observations)
    return InferResponse(collection=body.collection, total=total, observations=observations, collection_schema=schema)


@router.post("/validate")
async def validate_document(
    request: Request,
    body: ValidateRequest,
    _: None = Depends(verify_api_key),
) -> ValidateResponse:
    """Validate a document and report every violation.

    An inline ``collection_schema`` wins over a ``collection`` looked up in the loaded schemas.
    """
    schema = body.collection_schema
    if schema is None:
        schema = request.app.state.schemas.collections.get(body.collection)
        if schema is None:
            raise UnknownCollectionSchema(body.collection)

    violations = request.app.state.validation_engine.evaluate(schema, body.document)
    return ValidateResponse(collection=schema.name, valid=not violations, violations=violations)
