from fastapi import Request, status
from fastapi.responses import JSONResponse

from .shared.security import decode_token

# Public paths that don't require auth
PUBLIC_PATHS = {
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}

# IMPORTANT: do not add "/" here, it would make everything public.
PUBLIC_PREFIXES = (
    "/auth/login",
    "/auth/register",
    "/auth/otp/",
    "/auth/demo",
    "/auth/admin/login",
)


def _is_public_path(path: str) -> bool:
    if path in PUBLIC_PATHS:
        return True
    return any(path.startswith(p) for p in PUBLIC_PREFIXES)


def _unauthorized(detail: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": detail})


async def auth_middleware(request: Request, call_next):
    # Let CORS preflight pass through
    if request.method == "OPTIONS":
        return await call_next(request)

    if _is_public_path(request.url.path):
        return await call_next(request)

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.lower().startswith("bearer "):
        return _unauthorized("Missing or invalid authorization header")

    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        return _unauthorized("Missing or invalid authorization header")

    settings = request.app.state.settings
    claims = decode_token(token, settings.jwt_secret_key, settings.jwt_algorithm)
    if not claims or not claims.get("sub"):
        return _unauthorized("Invalid or expired token")

    request.state.user = claims
    return await call_next(request)
