# bsky/session.py
from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Iterator, Optional, TypeVar

import jwt
from atproto import AsyncClient, models
from atproto_client import exceptions

from bsky.errors import (
    AuthNetworkFailure,
    InvalidCredentials,
    MalformedToken,
    RefreshFailed,
    SessionUnavailable,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

CREATE_SESSION = "com.atproto.server.createSession"
REFRESH_SESSION = "com.atproto.server.refreshSession"

LOCK_TIMEOUT = 5.0  # seconds to wait for the session lock before giving up
TIMEOUT = 15.0  # per request timeout


def bearer(token: Optional[str]) -> dict:
    """Authorization header for one call; empty when there is no token to send."""
    return {"Authorization": f"Bearer {token}"} if token else {}


def status_code_of(error: exceptions.AtProtocolError) -> Optional[int]:
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None)


def describe(error: exceptions.AtProtocolError) -> str:
    """Short text for an SDK error: the XRPC error name and message when the server sent them."""
    response = getattr(error, "response", None)
    content = getattr(response, "content", None)
    parts = [p for p in (getattr(content, "error", None), getattr(content, "message", None)) if p]
    status = status_code_of(error)
    if status is not None:
        parts.insert(0, f"HTTP {status}")
    return ": ".join(parts) or type(error).__name__


async def invoke(call: Awaitable[T], timeout: float = TIMEOUT) -> T:
    """Await one XRPC call, turning a timeout into the SDK's NetworkError."""
    try:
        return await asyncio.wait_for(call, timeout)
    except asyncio.TimeoutError as e:
        raise exceptions.NetworkError() from e


def get_token_expiration(token: str) -> datetime:
    """
    Read the `exp` claim (epoch milliseconds) out of a session token.

    The signature is NOT verified: the token came straight from the server we
    are talking to, and we only need to know when to ask it for a new one.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        raise MalformedToken(f"Couldn't decode session token: {e}") from e

    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise MalformedToken(f"Session token has no numeric exp claim (got {exp!r})")

    try:
        return datetime.fromtimestamp(exp / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise MalformedToken(f"Couldn't interpret expiration timestamp {exp!r}") from e


@dataclass(frozen=True)
class CredentialSession:
    """
    One access/refresh token pair as issued by createSession or refreshSession.

    access_token_expiry always comes from decoding access_token, so the two can
    never disagree. Instances are immutable; a refresh produces a new one.
    """

    access_token: str
    access_token_expiry: datetime
    refresh_token: str

    @classmethod
    def from_tokens(cls, access_token: str, refresh_token: str) -> CredentialSession:
        return cls(
            access_token=access_token,
            access_token_expiry=get_token_expiration(access_token),
            refresh_token=refresh_token,
        )

    @classmethod
    def from_response(cls, response: Any) -> CredentialSession:
        """Build from a ComAtprotoServerCreateSession / RefreshSession response."""
        access_token = getattr(response, "access_jwt", None)
        refresh_token = getattr(response, "refresh_jwt", None)
        if not access_token or not refresh_token:
            raise MalformedToken("Session response is missing accessJwt/refreshJwt")
        return cls.from_tokens(access_token, refresh_token)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now > self.access_token_expiry


class SessionManager:
    """
    Owns the current CredentialSession and keeps it fresh.

    - login() bootstraps the session.
    - ensure_valid() is called before every authenticated request. It is a
      lock-protected timestamp comparison unless the access token has expired,
      in which case it refreshes once (network call made outside the lock)
      and swaps the whole session in one assignment.
    - current_access_token() / current_refresh_token() never raise; they return
      None when no token can be read, and the next ensure_valid() reports why.

    The SDK client is only used for its typed XRPC namespaces. We never call
    its login(), so it holds no session of its own and never refreshes behind
    our back; every call carries the token we pass in `headers`.

    Two callers that both see an expired token may both refresh. The later
    refresh just overwrites an equally valid session.
    """

    def __init__(self, client: AsyncClient, lock_timeout: float = LOCK_TIMEOUT, timeout: float = TIMEOUT):
        self.client = client
        self.lock_timeout = lock_timeout
        self.timeout = timeout
        self._lock = threading.Lock()
        self._session: Optional[CredentialSession] = None

    # ---------------- Lock helpers ----------------

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self.lock_timeout):
            raise SessionUnavailable(f"Couldn't acquire the session lock within {self.lock_timeout:.1f}s")
        try:
            yield
        finally:
            self._lock.release()

    @property
    def session(self) -> Optional[CredentialSession]:
        with self._locked():
            return self._session

    # ---------------- Lifecycle ----------------

    async def login(self, identifier: str, secret: str) -> CredentialSession:
        data = models.ComAtprotoServerCreateSession.Data(identifier=identifier, password=secret)
        try:
            response = await invoke(self.client.com.atproto.server.create_session(data), self.timeout)
        except exceptions.AtProtocolError as e:
            logger.warning("%s failed for %s: %s", CREATE_SESSION, identifier, describe(e))
            if status_code_of(e) in (400, 401):
                raise InvalidCredentials(f"Login rejected for {identifier}: {describe(e)}") from e
            raise AuthNetworkFailure(f"Login failed for {identifier}: {describe(e)}") from e

        session = CredentialSession.from_response(response)

        with self._locked():
            self._session = session

        logger.info("Logged in as %s; access token valid until %s", identifier, session.access_token_expiry)
        return session

    async def ensure_valid(self) -> None:
        with self._locked():
            current = self._session

        if current is None:
            raise SessionUnavailable("Not logged in")

        if not current.is_expired():
            return

        logger.info("Access token expired at %s; refreshing session.", current.access_token_expiry)

        try:
            response = await invoke(
                self.client.com.atproto.server.refresh_session(headers=bearer(current.refresh_token)),
                self.timeout,
            )
            refreshed = CredentialSession.from_response(response)
        except exceptions.AtProtocolError as e:
            logger.warning("%s failed: %s", REFRESH_SESSION, describe(e))
            raise RefreshFailed(f"Couldn't refresh the session, please log in again ({describe(e)})") from e
        except MalformedToken as e:
            logger.warning("%s returned an unusable token: %s", REFRESH_SESSION, e)
            raise RefreshFailed(f"Couldn't refresh the session, please log in again ({e})") from e

        with self._locked():
            self._session = refreshed

        logger.info("Session refreshed; access token valid until %s", refreshed.access_token_expiry)

    # ---------------- Accessors ----------------

    def _read_token(self, attr: str) -> Optional[str]:
        try:
            with self._locked():
                session = self._session
        except SessionUnavailable as e:
            logger.warning("No credential attached to request: %s", e)
            return None
        return getattr(session, attr) if session else None

    def current_access_token(self) -> Optional[str]:
        return self._read_token("access_token")

    def current_refresh_token(self) -> Optional[str]:
        return self._read_token("refresh_token")
