# bsky/errors.py
from __future__ import annotations


class BskyViewError(Exception):
    """Base class for every error this package returns to a caller."""

    pass


# ---------------- Authentication ----------------


class AuthError(BskyViewError):
    pass


class InvalidCredentials(AuthError):
    pass


class MalformedToken(AuthError):
    pass


class RefreshFailed(AuthError):
    pass


class AuthNetworkFailure(AuthError):
    pass


class SessionUnavailable(AuthError):
    """No usable session: not logged in yet, or the session lock could not be acquired."""

    pass


# ---------------- Fetching ----------------


class FetchError(BskyViewError):
    pass


class FetchAuthError(FetchError):
    """Wraps the AuthError that stopped a fetch before it reached the API."""

    def __init__(self, cause: AuthError):
        self.cause = cause
        super().__init__(f"Authentication failed: {cause}")


class ActorNotFound(FetchError):
    def __init__(self, handle: str):
        self.handle = handle
        super().__init__(f"Couldn't find an account for {handle}")


class PostNotFound(FetchError):
    def __init__(self, handle: str, post_id: str):
        self.handle = handle
        self.post_id = post_id
        super().__init__(f"Couldn't find post {post_id} for {handle}")


class FetchNetworkFailure(FetchError):
    pass


class MalformedResponse(FetchError):
    """The API answered, but the payload is missing fields we rely on."""

    pass


# ---------------- Formatting ----------------


class FormatError(BskyViewError):
    pass


class UnexpectedRecordKind(FormatError):
    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"Whoa, got {kind} instead of app.bsky.feed.post")


class BadTimestamp(FormatError):
    def __init__(self, value: str | None):
        self.value = value
        super().__init__(f"Couldn't parse post timestamp {value!r}")


class BadTimezone(FormatError):
    def __init__(self, tz_name: str):
        self.tz_name = tz_name
        super().__init__(f"Unknown timezone {tz_name!r}")
