import secrets

from fastapi import Header, HTTPException, Request

from shared.exceptions.errors import InvalidInput


async def verify_api_key(request: Request, x_api_key: str = Header(default="")) -> None:
    """Reject requests whose X-Api-Key does not match API_SERVER_API_KEY.

    Raises:
        HTTPException: 401 on a missing or wrong key.
    """
    expected = request.app.state.helper_config.get_string_val("API_SERVER_API_KEY")
    if not x_api_key or not secrets.compare_digest(x_api_key.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


async def get_requester_id(x_user_id: str = Header(...)) -> str:
    """Caller identity from the X-User-Id header.

    Users are authenticated upstream; the engine only needs a stable id to scope
    memory partitions.

    Raises:
        InvalidInput: If the header is blank.
    """
    requester_id = x_user_id.strip()
    if not requester_id:
        raise InvalidInput("X-User-Id header must not be empty.")
    return requester_id
