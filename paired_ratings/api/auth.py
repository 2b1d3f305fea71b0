"""Authentication API routes"""

from typing import Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config import settings
from ..schemas.auth import LoginRequest, SessionResponse
from ..services.auth_service import SESSION_SUBJECT, AuthService
from ..services.log_service import log_service

router = APIRouter(prefix="/api", tags=["auth"])

security = HTTPBearer(auto_error=False)


def _request_token(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    if credentials is not None:
        return credentials.credentials
    return request.cookies.get(settings.AUTH_COOKIE_NAME)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Require a valid session from the auth cookie or a Bearer header"""
    if not AuthService.verify_token(_request_token(request, credentials)):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return SESSION_SUBJECT


def _strip_port(host: str) -> str:
    if ":" in host:
        return host.rsplit(":", 1)[0]
    return host


def _host_matches(left: str, right: str) -> bool:
    left, right = left.lower(), right.lower()
    return left == right or _strip_port(left) == _strip_port(right)


async def require_same_origin(request: Request):
    """Reject state-changing requests whose Origin/Referer is another host"""
    host = request.headers.get("host", "")
    source = request.headers.get("origin") or request.headers.get("referer") or ""
    source_host = urlparse(source.strip()).netloc if source.strip() else ""
    if not host or not source_host or not _host_matches(host, source_host):
        log_service.warning(
            f"forbidden origin {source!r} for {request.method} {request.url.path}"
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")


def _session(authenticated: bool) -> SessionResponse:
    return SessionResponse(
        authenticated=authenticated,
        bf_name=settings.BF_NAME.strip() or "Boyfriend",
        gf_name=settings.GF_NAME.strip() or "Girlfriend",
        image_base=settings.TMDB_IMAGE_BASE,
    )


@router.post("/login", response_model=SessionResponse)
async def login(credentials: LoginRequest, request: Request, response: Response):
    """Login with the shared password"""
    if not AuthService.verify_password(credentials.password):
        client = request.client.host if request.client else "unknown"
        log_service.warning(f"login: invalid password from {client}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password"
        )

    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        AuthService.create_access_token(),
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        **AuthService.cookie_options(),
    )
    return _session(True)


@router.post("/logout", response_model=SessionResponse, dependencies=[Depends(require_same_origin)])
async def logout(response: Response):
    """Drop the session cookie"""
    response.delete_cookie(settings.AUTH_COOKIE_NAME, **AuthService.cookie_options())
    return _session(False)


@router.get("/session", response_model=SessionResponse)
async def session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
):
    """Current session state; never fails for anonymous callers"""
    return _session(AuthService.verify_token(_request_token(request, credentials)))
