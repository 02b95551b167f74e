# bsky/client.py
# pylint: disable=wrong-import-position

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Optional

# Silence noisy Pydantic v2 + atproto_client schema warnings
from pydantic.warnings import UnsupportedFieldAttributeWarning

warnings.filterwarnings("ignore", category=UnsupportedFieldAttributeWarning)

from atproto import AsyncClient, models
from atproto_client import exceptions

from bsky.errors import (
    ActorNotFound,
    AuthError,
    FetchAuthError,
    FetchNetworkFailure,
    InvalidCredentials,
    MalformedResponse,
    PostNotFound,
)
from bsky.session import LOCK_TIMEOUT, TIMEOUT, SessionManager, bearer, describe, invoke, status_code_of
from bsky.types import make_post_uri

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_URL = "https://bsky.social"

GET_PROFILE = "app.bsky.actor.getProfile"
GET_POSTS = "app.bsky.feed.getPosts"


@dataclass
class BskyConfig:
    identifier: str
    app_password: str
    service_url: str = DEFAULT_SERVICE_URL
    timeout: float = TIMEOUT
    lock_timeout: float = LOCK_TIMEOUT


class BskyClient:
    """
    Read-only Bluesky client that looks up single posts.

      - Logs in once and keeps the session fresh through SessionManager.
      - get_post(handle, post_id) resolves the handle to a DID, then fetches
        at://<did>/app.bsky.feed.post/<post_id> as an AppBskyFeedDefs.PostView.

    Example Usage:
        async with await BskyClient.login(BskyConfig("me.bsky.social", "app-pass")) as client:
            post = await client.get_post("craigweekend.bsky.social", "3jxrdefxibv2u")
    """

    def __init__(self, cfg: BskyConfig, at_client: Optional[AsyncClient] = None):
        self.cfg = cfg
        self._owns_client = at_client is None
        self.at_client = at_client or AsyncClient(cfg.service_url)
        self.sessions = SessionManager(self.at_client, lock_timeout=cfg.lock_timeout, timeout=cfg.timeout)

    @classmethod
    async def login(cls, cfg: BskyConfig, at_client: Optional[AsyncClient] = None) -> BskyClient:
        client = cls(cfg, at_client=at_client)
        try:
            await client.sessions.login(cfg.identifier, cfg.app_password)
        except AuthError:
            await client.aclose()
            raise
        return client

    async def aclose(self) -> None:
        if self._owns_client:
            await self.at_client.request.close()

    async def __aenter__(self) -> BskyClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ---------------- Requests ----------------

    def _auth_headers(self) -> dict:
        return bearer(self.sessions.current_access_token())

    async def resolve_did(self, handle: str) -> str:
        """Resolve a handle to the stable DID that post addresses are built from."""
        params = models.AppBskyActorGetProfile.Params(actor=handle)
        try:
            profile = await invoke(
                self.at_client.app.bsky.actor.get_profile(params, headers=self._auth_headers()),
                self.cfg.timeout,
            )
        except exceptions.UnauthorizedError as e:
            raise FetchAuthError(InvalidCredentials(describe(e))) from e
        except exceptions.ModelError as e:
            raise MalformedResponse(f"Profile lookup for {handle} returned an unreadable profile: {e}") from e
        except exceptions.AtProtocolError as e:
            if status_code_of(e) in (400, 404):
                raise ActorNotFound(handle) from e
            raise FetchNetworkFailure(f"Profile lookup for {handle} failed: {describe(e)}") from e

        did = getattr(profile, "did", None)
        if not did:
            raise ActorNotFound(handle)

        logger.debug("Resolved %s -> %s", handle, did)
        return did

    async def get_post(self, handle: str, post_id: str) -> models.AppBskyFeedDefs.PostView:
        try:
            await self.sessions.ensure_valid()
        except AuthError as e:
            raise FetchAuthError(e) from e

        did = await self.resolve_did(handle)
        uri = make_post_uri(did, post_id)

        params = models.AppBskyFeedGetPosts.Params(uris=[uri])
        try:
            result = await invoke(
                self.at_client.app.bsky.feed.get_posts(params, headers=self._auth_headers()),
                self.cfg.timeout,
            )
        except exceptions.UnauthorizedError as e:
            raise FetchAuthError(InvalidCredentials(describe(e))) from e
        except exceptions.ModelError as e:
            raise MalformedResponse(f"Post lookup for {uri} returned an unreadable post: {e}") from e
        except exceptions.AtProtocolError as e:
            raise FetchNetworkFailure(f"Post lookup for {uri} failed: {describe(e)}") from e

        posts = getattr(result, "posts", None)
        if not posts:
            logger.info("No post found at %s", uri)
            raise PostNotFound(handle, post_id)

        return posts[0]
