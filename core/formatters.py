import logging

from atproto import models
from pytz.exceptions import UnknownTimeZoneError

from bsky.errors import BadTimestamp, BadTimezone, UnexpectedRecordKind
from utils.others import DISPLAY_TIME_FORMAT, parse_rfc3339, to_local_time

logger = logging.getLogger(__name__)

NO_ALT_TEXT = "<no alt text>"
NOT_FOUND_TEXT = "Couldn't find embed"
BLOCKED_TEXT = "Blocked by the embed"


def kind_of(view):
    """The `$type` of an SDK model, falling back to its class name."""
    return getattr(view, "py_type", None) or type(view).__name__


def _require_post_record(record):
    if not models.is_record_type(record, models.AppBskyFeedPost):
        raise UnexpectedRecordKind(kind_of(record))
    return record


def summarize_post_content(author, record, tz_name=None):
    """
    Render the header line of a post:
        [<local timestamp>] <display name or handle> (<handle>): <text>
    """
    display_name = author.display_name or author.handle

    created = parse_rfc3339(record.created_at)
    if created is None:
        raise BadTimestamp(record.created_at)
    try:
        timestamp = to_local_time(created, tz_name).strftime(DISPLAY_TIME_FORMAT)
    except UnknownTimeZoneError as e:
        raise BadTimezone(tz_name) from e

    return f"[{timestamp}] {display_name} ({author.handle}): {record.text}"


def summarize_images(view):
    descriptions = []
    for idx, image in enumerate(view.images, start=1):
        alt = image.alt.replace("\n", "\n\t\t") if image.alt else NO_ALT_TEXT
        descriptions.append(f"- Image {idx} alt text: {alt}")
    return "\n\t".join(descriptions)


def summarize_external(view):
    return f"- Links to {view.external.title} ({view.external.uri})"


def summarize_unsupported(view):
    return f"- Embeds unsupported content {kind_of(view)}"


def summarize_quoted_post(quoted, tz_name=None):
    """
    Summarize the record inside a quote embed.

    A resolved quote gets the same header line as a top-level post, but its own
    embeds are never rendered.
    """
    if isinstance(quoted, models.AppBskyEmbedRecord.ViewRecord):
        record = _require_post_record(quoted.value)
        return summarize_post_content(quoted.author, record, tz_name)
    if isinstance(quoted, models.AppBskyEmbedRecord.ViewNotFound):
        return NOT_FOUND_TEXT
    if isinstance(quoted, models.AppBskyEmbedRecord.ViewBlocked):
        return BLOCKED_TEXT
    if isinstance(quoted, models.AppBskyFeedDefs.GeneratorView):
        return f"- Embeds feed {quoted.display_name} by {quoted.creator.handle}"
    # lists, labelers, starter packs, detached quotes
    return f"- Embeds unsupported record {kind_of(quoted)}"


def summarize_media(media):
    if isinstance(media, models.AppBskyEmbedImages.View):
        return summarize_images(media)
    if isinstance(media, models.AppBskyEmbedExternal.View):
        return summarize_external(media)
    return summarize_unsupported(media)


def summarize_post_embeds(embed, tz_name=None):
    if isinstance(embed, models.AppBskyEmbedRecord.View):
        body = summarize_quoted_post(embed.record, tz_name)
    elif isinstance(embed, models.AppBskyEmbedRecordWithMedia.View):
        body = "\n\t".join([summarize_quoted_post(embed.record.record, tz_name), summarize_media(embed.media)])
    else:
        body = summarize_media(embed)

    return f"\n\tembeds:\n\t{body}"


def format_post(post, tz_name=None):
    """
    Render a fetched post (plus one level of quoted content) as display text.

    All-or-nothing: a FormatError anywhere means nothing is returned.

    Args:
        post (models.AppBskyFeedDefs.PostView): The post as returned by getPosts.
        tz_name (str | None): tz database name for the timestamp; host local time if omitted.

    Returns:
        str: The header line, followed by an indented embed block when the post has one.
    """
    record = _require_post_record(post.record)
    content_summary = summarize_post_content(post.author, record, tz_name)

    embed_summary = summarize_post_embeds(post.embed, tz_name) if post.embed is not None else ""

    return f"{content_summary}{embed_summary}"


async def get_formatted_post(client, handle, post_id, tz_name=None):
    """Fetch (handle, post_id) through `client` and return it rendered as text."""
    post = await client.get_post(handle, post_id)
    logger.debug("Rendering %s", post.uri)
    return format_post(post, tz_name)
