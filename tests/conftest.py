"""Shared pytest fixtures and configuration

This file contains fixtures that can be used across all test files.
Pytest automatically discovers this file and makes fixtures available.
"""

import asyncio
import tempfile
import time
from collections import namedtuple
from pathlib import Path
from types import SimpleNamespace

import jwt
import pytest
from atproto import models
from atproto_client import exceptions

from bsky.client import GET_POSTS, GET_PROFILE, BskyConfig
from bsky.session import CREATE_SESSION, REFRESH_SESSION

SERVICE_URL = "https://bsky.test"
SIGNING_KEY = "bskyview-test-signing-key-0123456789abcdef"
CREATED_AT = "2024-01-15T17:30:00.000Z"


# ==================== Tokens ====================


def _ms_from_now(seconds):
    """Epoch milliseconds `seconds` away from the real current time."""
    return int((time.time() + seconds) * 1000)


@pytest.fixture
def ms_from_now():
    return _ms_from_now


@pytest.fixture
def make_token():
    """Factory fixture: build a signed session token carrying an `exp` claim (epoch ms)"""

    def _make(exp_ms=None, **claims):
        payload = dict(claims)
        if exp_ms is not None:
            payload["exp"] = exp_ms
        return jwt.encode(payload, SIGNING_KEY, algorithm="HS256")

    return _make


@pytest.fixture
def valid_token(make_token):
    return make_token(_ms_from_now(3600), sub="did:plc:me")


@pytest.fixture
def expired_token(make_token):
    return make_token(_ms_from_now(-3600), sub="did:plc:me")


# ==================== Fake XRPC API ====================


Call = namedtuple("Call", ["nsid", "args", "kwargs"])


def xrpc_error(status, error=None, message=None):
    """What the SDK attaches to a failed call: the HTTP status and the XRPC error body."""
    return SimpleNamespace(status_code=status, content=SimpleNamespace(error=error, message=message), headers={})


def session_response(access, refresh):
    return models.ComAtprotoServerCreateSession.Response(
        access_jwt=access, refresh_jwt=refresh, did="did:plc:me", handle="me.bsky.social"
    )


def refresh_response(access, refresh):
    return models.ComAtprotoServerRefreshSession.Response(
        access_jwt=access, refresh_jwt=refresh, did="did:plc:me", handle="me.bsky.social"
    )


class FakeBskyApi:
    """
    In-memory stand-in for the SDK client's XRPC namespaces (com.atproto.server,
    app.bsky.actor, app.bsky.feed).

    Routes map an NSID to a response model, an exception instance to raise, or a
    callable that receives the call's arguments and returns (or awaits to) either.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.com = SimpleNamespace(
            atproto=SimpleNamespace(
                server=SimpleNamespace(
                    create_session=self._endpoint(CREATE_SESSION),
                    refresh_session=self._endpoint(REFRESH_SESSION),
                )
            )
        )
        self.app = SimpleNamespace(
            bsky=SimpleNamespace(
                actor=SimpleNamespace(get_profile=self._endpoint(GET_PROFILE)),
                feed=SimpleNamespace(get_posts=self._endpoint(GET_POSTS)),
            )
        )

    def route(self, nsid, response):
        self.routes[nsid] = response

    def _endpoint(self, nsid):
        async def call(*args, **kwargs):
            self.calls.append(Call(nsid, args, kwargs))

            response = self.routes.get(nsid)
            if response is None:
                raise exceptions.RequestException(xrpc_error(501, "MethodNotImplemented", nsid))
            if callable(response):
                response = response(*args, **kwargs)
                if asyncio.iscoroutine(response):
                    response = await response
            if isinstance(response, BaseException):
                raise response
            return response

        return call

    def count(self, nsid):
        return sum(1 for call in self.calls if call.nsid == nsid)

    def requests_for(self, nsid):
        return [call for call in self.calls if call.nsid == nsid]

    @property
    def nsids(self):
        return [call.nsid for call in self.calls]


@pytest.fixture
def fake_api():
    return FakeBskyApi()


@pytest.fixture
def bsky_config():
    return BskyConfig(
        identifier="me.bsky.social", app_password="app-pass", service_url=SERVICE_URL, timeout=1.0, lock_timeout=0.05
    )


@pytest.fixture
def logged_in_api(fake_api, valid_token):
    """A fake API whose createSession hands out a token valid for an hour"""
    fake_api.route(CREATE_SESSION, session_response(valid_token, "refresh-1"))
    return fake_api


@pytest.fixture
def network_down():
    """What the SDK raises when the connection drops"""
    return exceptions.NetworkError()


@pytest.fixture
def never_answers():
    """Route callable for a server that accepts the connection and then hangs"""

    async def _hang(*args, **kwargs):
        await asyncio.sleep(60)

    return _hang


# ==================== API Model Fixtures ====================


def make_profile(did="did:plc:abc", handle="alice", display_name=None):
    return models.AppBskyActorDefs.ProfileViewBasic(did=did, handle=handle, display_name=display_name)


def make_post_record(text="hello", created_at=CREATED_AT):
    return models.AppBskyFeedPost.Record(text=text, created_at=created_at)


@pytest.fixture
def make_post():
    """Factory fixture: an app.bsky.feed.defs#postView as returned by getPosts"""

    def _make(
        text="hello",
        handle="alice",
        display_name=None,
        created_at=CREATED_AT,
        embed=None,
        record=None,
        did="did:plc:abc",
        rkey="xyz",
    ):
        return models.AppBskyFeedDefs.PostView(
            uri=f"at://{did}/app.bsky.feed.post/{rkey}",
            cid="bafyreicid",
            author=make_profile(did, handle, display_name),
            record=record if record is not None else make_post_record(text, created_at),
            embed=embed,
            indexed_at=created_at,
        )

    return _make


@pytest.fixture
def images_embed():
    return models.AppBskyEmbedImages.View(
        images=[
            models.AppBskyEmbedImages.ViewImage(alt="cat", thumb="https://cdn/t1", fullsize="https://cdn/f1"),
            models.AppBskyEmbedImages.ViewImage(alt="", thumb="https://cdn/t2", fullsize="https://cdn/f2"),
        ]
    )


@pytest.fixture
def quoted_post_view():
    """A resolved quote whose own embed (a link) must never be rendered"""
    return models.AppBskyEmbedRecord.ViewRecord(
        uri="at://did:plc:bob/app.bsky.feed.post/quoted",
        cid="bafyquoted",
        author=make_profile("did:plc:bob", "bob.bsky.social", "Bob"),
        value=make_post_record("original thought", "2024-01-15T15:00:00Z"),
        indexed_at="2024-01-15T15:00:00Z",
        embeds=[
            models.AppBskyEmbedExternal.View(
                external=models.AppBskyEmbedExternal.ViewExternal(
                    uri="https://nested.example", title="Nested", description=""
                )
            )
        ],
    )


# ==================== File System Fixtures ====================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ==================== Pytest Configuration ====================


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "api: mark test as requiring API access")
