# bsky/types.py
from __future__ import annotations

import re
from dataclasses import dataclass

POST_COLLECTION = "app.bsky.feed.post"

# https://bsky.app/profile/<handle>/post/<postid>, optionally with a query string
_POST_URL_PATTERN = re.compile(
    r"https?://(?:www\.|staging\.)?bsky\.app/profile/(?P<handle>[^/\s]+)/post/(?P<post_id>[^/?#\s]+)"
)


def make_post_uri(did: str, post_id: str) -> str:
    """Canonical address of a post: at://<did>/app.bsky.feed.post/<post_id>."""
    return f"at://{did}/{POST_COLLECTION}/{post_id}"


def parse_at_uri(uri: str, collection: str = POST_COLLECTION) -> tuple[str, str, str]:
    """Split a record address into (did, collection, record key); the inverse of make_post_uri.

    Raises ValueError unless the address names a single `collection` record.
    """
    scheme, sep, path = uri.partition("://")
    if scheme != "at" or not sep:
        raise ValueError(f"Not an at:// uri: {uri}")

    parts = path.split("/")
    if len(parts) != 3 or not all(parts):
        raise ValueError(f"Expected at://<did>/<collection>/<rkey>, got {uri}")

    did, found, rkey = parts
    if found != collection:
        raise ValueError(f"Expected a {collection} record, got {found}: {uri}")
    return did, found, rkey


@dataclass(frozen=True)
class PostReference:
    """A post as a user points at it: the author's (mutable) handle plus the record key.

    handle:   e.g. "craigweekend.bsky.social"
    post_id:  the record key, e.g. "3jxrdefxibv2u"
    """

    handle: str
    post_id: str

    def uri_for(self, did: str) -> str:
        return make_post_uri(did, self.post_id)

    @classmethod
    def from_url(cls, text: str) -> PostReference | None:
        """Pull (handle, post_id) out of a bsky.app post link, or None if it isn't one."""
        match = _POST_URL_PATTERN.search(text)
        if not match:
            return None
        return cls(handle=match.group("handle"), post_id=match.group("post_id"))
