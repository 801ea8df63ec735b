"""API key authentication dependencies."""

from fastapi import Header, HTTPException


async def require_api_key(
    x_infra_api_key: str = Header(..., alias="X-Infra-Api-Key"),
) -> str:
    """FastAPI dependency that validates admin API key from header."""
    from gtm_infra.common.config import get_settings

    settings = get_settings()
    if x_infra_api_key != settings.api_key:
        raise HTTPException(status_code=403, detail="Invalid API key")
    return x_infra_api_key
