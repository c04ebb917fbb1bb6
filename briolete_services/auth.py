"""Request authentication against the hosted auth service."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass, field
from http.cookies import CookieError, SimpleCookie
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, cast
from urllib.parse import unquote

from .errors import ErrorResponse, error_response

logger = logging.getLogger(__name__)

UNAUTHORIZED_MESSAGE = "No autorizado. Debes iniciar sesión."
FORBIDDEN_MESSAGE = "No tienes permisos suficientes"
AUTH_ERROR_MESSAGE = "Error de autenticación"

SESSION_COOKIE_RE = re.compile(r"^sb-[A-Za-z0-9_-]+-auth-token(\.(\d+))?$")
BASE64_PREFIX = "base64-"


@dataclass(frozen=True)
class Identity:
    id: str
    email: Optional[str] = None
    role: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def effective_role(self) -> Optional[str]:
        return self.metadata.get("role") or self.role


@dataclass(frozen=True)
class AuthContext:
    identity: Identity
    access_token: str


def _attr(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def identity_from_user(user: Any) -> Identity:
    metadata = _attr(user, "user_metadata") or {}
    return Identity(
        id=str(_attr(user, "id", "")),
        email=_attr(user, "email"),
        role=_attr(user, "role"),
        metadata=dict(metadata),
    )


def _decode_session_value(raw: str) -> Optional[str]:
    value = unquote(raw)
    if value.startswith(BASE64_PREFIX):
        encoded = value[len(BASE64_PREFIX):]
        try:
            value = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return None
    try:
        session = json.loads(value)
    except json.JSONDecodeError:
        return None
    if isinstance(session, dict):
        token = session.get("access_token")
    elif isinstance(session, list) and session:
        token = session[0]
    else:
        token = None
    return token if isinstance(token, str) and token else None


def token_from_cookies(cookie_header: Optional[str]) -> Optional[str]:
    """Access token from the SSR session cookie, joining chunked cookies."""
    if not cookie_header:
        return None
    cookies = SimpleCookie()
    try:
        cookies.load(cookie_header)
    except CookieError:
        return None

    whole: Optional[str] = None
    chunks: Dict[int, str] = {}
    for name, morsel in cookies.items():
        match = SESSION_COOKIE_RE.match(name)
        if not match:
            continue
        if match.group(2) is None:
            whole = morsel.value
        else:
            chunks[int(match.group(2))] = morsel.value

    if whole is None and chunks:
        whole = "".join(chunks[index] for index in sorted(chunks))
    if not whole:
        return None
    return _decode_session_value(whole)


def token_from_headers(headers: Mapping[str, str]) -> Optional[str]:
    authorization = headers.get("Authorization") or ""
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return token_from_cookies(headers.get("Cookie"))


class AuthGate:
    """Resolves the caller with one upstream call per request."""

    def __init__(self, auth_client: Any, development: bool = False) -> None:
        self.auth_client = auth_client
        self.development = development

    def resolve(self, token: str) -> Optional[Identity]:
        response = self.auth_client.auth.get_user(token)
        user = _attr(response, "user") if response is not None else None
        if not user:
            return None
        return identity_from_user(user)

    def require_auth(
        self, headers: Mapping[str, str]
    ) -> Tuple[Optional[AuthContext], Optional[ErrorResponse]]:
        token = token_from_headers(headers)
        if not token:
            return None, error_response(UNAUTHORIZED_MESSAGE, 401)

        try:
            identity = self.resolve(token)
        except Exception as exc:
            if _is_rejected_token(exc):
                logger.info("Session token rejected: %s", exc)
                return None, error_response(UNAUTHORIZED_MESSAGE, 401)
            logger.error("Auth service call failed: %s", exc, exc_info=exc)
            message = f"{AUTH_ERROR_MESSAGE}: {exc}" if self.development else AUTH_ERROR_MESSAGE
            return None, error_response(message, 500)

        if identity is None:
            return None, error_response(UNAUTHORIZED_MESSAGE, 401)
        return AuthContext(identity=identity, access_token=token), None

    def require_role(
        self, headers: Mapping[str, str], allowed_roles: Iterable[str]
    ) -> Tuple[Optional[AuthContext], Optional[ErrorResponse]]:
        context, error = self.require_auth(headers)
        if error is not None:
            return None, error
        context = cast(AuthContext, context)
        if context.identity.effective_role not in set(allowed_roles):
            return None, error_response(FORBIDDEN_MESSAGE, 403)
        return context, None

    def is_authenticated(self, headers: Mapping[str, str]) -> bool:
        """Page routing check; any failure counts as anonymous."""
        token = token_from_headers(headers)
        if not token:
            return False
        try:
            return self.resolve(token) is not None
        except Exception as exc:
            logger.debug("Page session check failed: %s", exc)
            return False


def _is_rejected_token(exc: BaseException) -> bool:
    # Auth API errors carry the HTTP status of the upstream response.
    status = getattr(exc, "status", None)
    return isinstance(status, int) and status in (401, 403)


def page_redirect(path: str, authenticated: bool) -> Optional[Tuple[int, str]]:
    """Redirect for a page route as ``(status, location)``, or None to serve it."""
    if path == "/signup":
        return 308, "/login"
    if authenticated and path == "/login":
        return 302, "/app"
    if not authenticated and (path == "/app" or path.startswith("/app/")):
        return 302, "/login"
    return None
