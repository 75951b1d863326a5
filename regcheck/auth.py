from fastapi import Header, HTTPException, Request

from .headers import INTERNAL_TOKEN_HEADER

async def require_internal_token(request: Request, x_regcheck_internal_token: str | None = Header(default=None)):
    expected = request.app.state.settings.internal_token
    if expected and x_regcheck_internal_token != expected:
        raise HTTPException(status_code=401, detail=f"Missing or invalid {INTERNAL_TOKEN_HEADER}")
