"""Authentication for the WebUI.

Two layers live here. The shape gates (`validate_auth_token`, `extract_bearer_token`)
are pure functions that only check a token looks like `<base64 data>.<hex signature>`;
they never decide trust. `AuthManager` is the session store that actually issues
tokens, verifies their HMAC signature and tracks session expiry.

How to use the most important parts:
- `extract_bearer_token(headers.get("Authorization"))`: returns the token or None.
- `AuthManager.validate_login(...)`: checks the WebUI password and issues a token.
- `AuthManager.validate_token(token)`: full check (shape, signature, expiry, session).
- `LoginRateLimiter`: limits login attempts per client inside a sliding window.
"""

from __future__ import annotations

import base64
import binascii
import collections
import collections.abc
import hashlib
import hmac
import json
import secrets
import threading
import time
import typing

import pydantic
import structlog

from flashforge.webui import consts, exceptions, schemas

if typing.TYPE_CHECKING:
    from flashforge.webui.config import Settings

logger = structlog.get_logger(__name__)

Clock = collections.abc.Callable[[], float]


# --- Shape gates ---


def validate_auth_token(token: typing.Any) -> str | None:
    """Check that `token` is a string shaped like `<base64 data>.<hex signature>`.

    This does not verify the signature.

    Returns:
        The token unchanged, or None if it is not a well-formed token string.
    """
    if not isinstance(token, str):
        return None
    if consts.AUTH_TOKEN_PATTERN.fullmatch(token) is None:
        return None
    return token


def extract_bearer_token(header: typing.Any) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` header value.

    The `Bearer` prefix is case-sensitive and followed by a single space. The
    remainder must pass `validate_auth_token`.
    """
    if not isinstance(header, str):
        return None
    match = consts.BEARER_PATTERN.fullmatch(header)
    if match is None:
        return None
    return validate_auth_token(match.group(1))


# --- Session store ---


class TokenPayload(pydantic.BaseModel):
    """Claims encoded in the data segment of a WebUI token. Times are epoch milliseconds."""

    session_id: str = pydantic.Field(alias="sessionId")
    created_at: int = pydantic.Field(alias="createdAt")
    expires_at: int = pydantic.Field(alias="expiresAt")
    persistent: bool

    model_config = pydantic.ConfigDict(populate_by_name=True)


class SessionInfo(pydantic.BaseModel):
    """Server-side record of an issued token."""

    token: str
    created_at: float
    expires_at: float
    last_activity: float
    persistent: bool


class TokenValidation(typing.NamedTuple):
    is_valid: bool
    session_id: str | None = None


def _decode_payload(token_data: str) -> TokenPayload:
    """Decode the data segment of a token.

    Raises:
        ValueError: If the segment is not base64 encoded JSON claims.
    """
    try:
        raw = base64.b64decode(token_data, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid token data encoding: {e}") from e
    return TokenPayload.model_validate(json.loads(raw))


class AuthManager:
    """Issues and verifies WebUI session tokens.

    Tokens are `base64(json claims).hex(hmac_sha256(secret, data))`. The secret is
    derived from the configured WebUI password, so changing the password invalidates
    every outstanding token.
    """

    def __init__(self, settings: Settings, clock: Clock = time.time):
        """Initialize the session store.

        Args:
            settings: WebUI settings (password, salt and session timeouts).
            clock: Source of the current time in seconds; injectable for tests.
        """
        self._settings = settings
        self._clock = clock
        self._sessions: dict[str, SessionInfo] = {}
        self._lock = threading.Lock()
        self._next_cleanup = clock() + consts.SESSION_CLEANUP_INTERVAL_SECONDS

    # -- Login ---------------------------------------------------------------

    def validate_login(self, request: schemas.WebUILoginRequest | dict[str, typing.Any]) -> schemas.WebUILoginResponse:
        """Check the WebUI password and issue a token on success.

        Raises:
            WebUIValidationError: If `request` is not a valid login body.
        """
        if not isinstance(request, schemas.WebUILoginRequest):
            try:
                request = schemas.WebUILoginRequest.model_validate(request)
            except pydantic.ValidationError as e:
                raise exceptions.WebUIValidationError("Validation failed", schemas.issues_from_error(e)) from e

        expected = self._settings.webui_password.get_secret_value()
        if not hmac.compare_digest(request.password.encode(), expected.encode()):
            logger.warning("WebUI login rejected: invalid password")
            return schemas.WebUILoginResponse(success=False, message="Invalid password")

        token = self.generate_token(persistent=request.remember_me)
        logger.info("WebUI login successful", persistent=request.remember_me)
        return schemas.WebUILoginResponse(success=True, token=token, message="Authentication successful")

    def generate_token(self, persistent: bool = False) -> str:
        """Create a new session and return its signed token."""
        now = self._clock()
        self._maybe_cleanup(now)
        if persistent:
            timeout = self._settings.session_timeout_hours * 3600
        else:
            timeout = self._settings.temp_session_timeout_minutes * 60
        expires_at = now + timeout

        payload = TokenPayload(
            session_id=secrets.token_hex(32),
            created_at=int(now * 1000),
            expires_at=int(expires_at * 1000),
            persistent=persistent,
        )
        token_data = base64.b64encode(payload.model_dump_json(by_alias=True).encode()).decode("ascii")
        token = f"{token_data}.{self._sign(token_data)}"

        with self._lock:
            self._sessions[payload.session_id] = SessionInfo(
                token=token,
                created_at=now,
                expires_at=expires_at,
                last_activity=now,
                persistent=persistent,
            )
        logger.debug("Issued session token", session_id=payload.session_id, expires_at=expires_at)
        return token

    # -- Verification --------------------------------------------------------

    def _verified_payload(self, token: typing.Any) -> TokenPayload | None:
        """Return the claims of a well-formed token whose signature checks out, else None."""
        if validate_auth_token(token) is None:
            return None

        token_data, signature = token.split(".")
        if not hmac.compare_digest(signature.lower(), self._sign(token_data)):
            logger.debug("Token signature mismatch")
            return None

        try:
            return _decode_payload(token_data)
        except ValueError:
            logger.warning("Token validation error: undecodable payload")
            return None

    def validate_token(self, token: typing.Any) -> TokenValidation:
        """Fully validate a token: shape, signature, expiry and live session.

        A valid token refreshes its session's last-activity time. An expired one
        drops its session.
        """
        now = self._clock()
        self._maybe_cleanup(now)

        payload = self._verified_payload(token)
        if payload is None:
            return TokenValidation(False)

        with self._lock:
            if payload.expires_at < now * 1000:
                self._sessions.pop(payload.session_id, None)
                logger.debug("Token expired", session_id=payload.session_id)
                return TokenValidation(False)

            session = self._sessions.get(payload.session_id)
            if session is None:
                return TokenValidation(False)
            session.last_activity = now

        return TokenValidation(True, payload.session_id)

    def verify_token(self, token: typing.Any) -> bool:
        return self.validate_token(token).is_valid

    def require_token(self, authorization: typing.Any) -> str:
        """Authenticate an `Authorization` header value and return its session id.

        Raises:
            WebUIAuthError: If the header is missing, malformed or the session is not valid.
        """
        token = extract_bearer_token(authorization)
        if token is None:
            raise exceptions.WebUIAuthError("Missing authentication token")
        result = self.validate_token(token)
        if not result.is_valid or result.session_id is None:
            raise exceptions.WebUIInvalidTokenError("Invalid or expired token")
        return result.session_id

    # -- Session management --------------------------------------------------

    def revoke_token(self, token: typing.Any) -> bool:
        """Drop the session behind `token`. Returns True if a session was removed.

        Only tokens carrying a valid signature can end a session.
        """
        payload = self._verified_payload(token)
        if payload is None:
            return False
        with self._lock:
            return self._sessions.pop(payload.session_id, None) is not None

    def cleanup_expired_sessions(self) -> int:
        """Remove expired sessions. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [sid for sid, session in self._sessions.items() if session.expires_at < now]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.info("Removed expired sessions", count=len(expired))
        return len(expired)

    def _maybe_cleanup(self, now: float) -> None:
        """Sweep expired sessions at most once per cleanup interval."""
        if now < self._next_cleanup:
            return
        self._next_cleanup = now + consts.SESSION_CLEANUP_INTERVAL_SECONDS
        self.cleanup_expired_sessions()

    def active_session_count(self) -> int:
        return len(self._sessions)

    def clear_all_sessions(self) -> None:
        with self._lock:
            self._sessions.clear()

    def auth_status(self) -> schemas.WebUIAuthStatus:
        return schemas.WebUIAuthStatus(
            has_password=bool(self._settings.webui_password.get_secret_value()),
            default_password=self._settings.uses_default_password,
            auth_required=True,
        )

    def dispose(self) -> None:
        self.clear_all_sessions()

    def _secret(self) -> bytes:
        password = self._settings.webui_password.get_secret_value()
        return hashlib.sha256((password + self._settings.token_salt).encode()).hexdigest().encode()

    def _sign(self, token_data: str) -> str:
        return hmac.new(self._secret(), token_data.encode(), hashlib.sha256).hexdigest()


class LoginRateLimiter:
    """Counts login attempts per client inside a sliding time window.

    Clients whose attempts have all aged out of the window are forgotten, so the
    table only holds addresses seen within the last window.
    """

    def __init__(self, max_attempts: int, window_seconds: float, clock: Clock = time.time):
        self._max_attempts = max_attempts
        self._window = window_seconds
        self._clock = clock
        self._attempts: dict[str, collections.deque[float]] = {}
        self._next_sweep = clock() + window_seconds
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock = time.time) -> LoginRateLimiter:
        return cls(settings.login_max_attempts, settings.login_window_minutes * 60, clock)

    @property
    def tracked_clients(self) -> int:
        """Number of clients with attempts inside the current window."""
        return len(self._attempts)

    def hit(self, client_id: str) -> bool:
        """Record an attempt. Returns False if the client is over its limit."""
        now = self._clock()
        cutoff = now - self._window
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(cutoff)
                self._next_sweep = now + self._window

            attempts = self._attempts.setdefault(client_id, collections.deque())
            while attempts and attempts[0] <= cutoff:
                attempts.popleft()
            if len(attempts) >= self._max_attempts:
                return False
            attempts.append(now)
            return True

    def _sweep(self, cutoff: float) -> None:
        stale = [client for client, attempts in self._attempts.items() if not attempts or attempts[-1] <= cutoff]
        for client in stale:
            del self._attempts[client]
        if stale:
            logger.debug("Forgot idle login clients", count=len(stale))

    def check(self, client_id: str) -> None:
        """Record an attempt.

        Raises:
            WebUIAuthError: If the client has exceeded its attempts for the window.
        """
        if not self.hit(client_id):
            logger.warning("Login rate limit exceeded", client_id=client_id)
            raise exceptions.WebUIAuthError("Too many login attempts, please try again later")

    def reset(self, client_id: str) -> None:
        with self._lock:
            self._attempts.pop(client_id, None)
