"""FastAPI authentication dependency."""

from fastapi import HTTPException, Request


async def verify_api_key(request: Request) -> None:
    """Compare the X-API-Key header with APP_API_KEY.

    Args:
        request (Request): The incoming FastAPI request (provides app.state.helper_config).

    Raises:
        HTTPException: 401 if the key is missing or wrong, 500 if no key is configured.
    """
    helper_config = request.app.state.helper_config
    try:
        expected_key = helper_config.get_string_val("APP_API_KEY")
    except ValueError:
        request.app.state.logging.error("APP_API_KEY is not configured, rejecting request.")
        raise HTTPException(status_code=500, detail="API key is not configured on the server.")

    provided_key = request.headers.get("X-API-Key")
    if not provided_key or provided_key != expected_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key.")
