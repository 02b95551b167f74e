import argparse
import asyncio
import logging
import sys
from pathlib import Path

import utils.others as otherutils
from bsky.client import BskyClient
from bsky.errors import BskyViewError
from bsky.types import PostReference
from core.formatters import get_formatted_post
from definitions import DEFAULT_CONFIG_FILE
from utils.config import InvalidTimezone, MissingCredentials, build_bsky_config, load_config, resolve_timezone

logger = logging.getLogger("bskyview")

PROMPT = ">> "


async def render_reference(client, ref, tz_name=None):
    """Fetch and render one post; errors come back as text so the caller can keep going."""
    try:
        return await get_formatted_post(client, ref.handle, ref.post_id, tz_name)
    except BskyViewError as e:
        logger.warning("Couldn't render %s/%s: %s", ref.handle, ref.post_id, e)
        return f"Woops: {e}"


async def handle_line(client, line, tz_name=None):
    ref = PostReference.from_url(line)
    if ref is None:
        return "Didn't understand that"
    return await render_reference(client, ref, tz_name)


async def interactive_loop(client, tz_name=None):
    print("Paste some bluesky post urls (like https://bsky.app/profile/craigweekend.bsky.social/post/3jxrdefxibv2u)")
    print("Press Control+D to exit")
    while True:
        try:
            line = await asyncio.to_thread(input, PROMPT)
        except (EOFError, KeyboardInterrupt):
            break
        if not line.strip():
            continue
        print(await handle_line(client, line, tz_name))


async def run(args, config):
    tz_name = resolve_timezone(config, args.timezone)
    bsky_config = build_bsky_config(config)

    client = await BskyClient.login(bsky_config)
    async with client:
        if args.urls:
            for url in args.urls:
                print(await handle_line(client, url, tz_name))
        else:
            await interactive_loop(client, tz_name)


def read_config(path):
    """Load the YAML config. Only the default config file is allowed to be absent."""
    if path == str(DEFAULT_CONFIG_FILE) and not Path(path).exists():
        return {}
    return load_config(path)


def main(argv=None):
    """
    Entry point for bskyview.

    Parses command-line arguments, loads configuration and logging, logs in to
    Bluesky and then renders every post URL given on the command line (or, with
    none given, every URL typed at the prompt).
    """

    # fmt: off
    parser = argparse.ArgumentParser(description="Render Bluesky posts as text.")
    parser.add_argument("urls", nargs="*", help="bsky.app post URLs to render (omit for interactive mode).")
    parser.add_argument("--config", type=str, default=str(DEFAULT_CONFIG_FILE), help="Path to the configuration file (default: config/config.yaml).")
    parser.add_argument("--timezone", type=str, help="Timezone for post timestamps, e.g. US/Eastern (default: local time).")
    parser.add_argument("--console", action="store_true", help="Write logs to console instead of a file.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)
    # fmt: on

    try:
        config = read_config(args.config)
    except Exception as e:
        print(e)
        return 1

    otherutils.setup_logging(config, console=args.console, debug=args.debug)
    otherutils.log_startup_info(args, config)

    try:
        asyncio.run(run(args, config))
    except (MissingCredentials, InvalidTimezone) as e:
        print(e)
        return 1
    except BskyViewError as e:
        logger.error("Startup failed: %s", e)
        print(f"Woops: {e}")
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
