from typing import Optional

from fastapi import HTTPException, Request

from .config import get_settings


def _extract_bearer_token(auth_header: Optional[str]) -> Optional[str]:
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


async def require_api_key(request: Request) -> None:
    """Check the caller's bearer credential against ``APP_API_KEY`` when one is set."""
    expected = get_settings().app_api_key
    if not expected:
        return

    provided = _extract_bearer_token(request.headers.get("authorization")) or request.headers.get("x-api-key")
    if not provided or provided != expected:
        raise HTTPException(status_code=401, detail="Missing or invalid API key.")
