from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.responses import QueryCompileResponse
from shared.models.query import QuerySpec

router = APIRouter(prefix="/query", tags=["query"])


@router.post("/compile")
async def compile_query(
    request: Request,
    body: QuerySpec,
    _: None = Depends(verify_api_key),
) -> QueryCompileResponse:
    """Compile a query into the store's structured query body.

    Args:
        request (Request): FastAPI request (provides app.state.query_compiler).
        body (QuerySpec): The query to compile.
        _ (None): Auth dependency result (unused).

    Returns:
        QueryCompileResponse: The wire-ready structured query. A restricted query is answered with 400.
    """
    structured = request.app.state.query_compiler.compile(body)
    return QueryCompileResponse(collection=body.collection, structured_query=structured.to_wire())
