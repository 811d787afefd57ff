"""Obtain owner-channel YouTube tokens for video uploads.

Step 1, print the Google consent URL:
    PYTHONPATH=. python scripts/get_youtube_tokens.py

Step 2, after approving, pass the ``code`` query parameter from the redirect:
    PYTHONPATH=. python scripts/get_youtube_tokens.py --code 4/0Ab...

The tokens are printed as ``.env`` lines. With ``--store`` they are also
written to the first admin profile instead.
"""

import argparse
import asyncio
import logging
import sys

from app.database import async_session
from app.services.youtube import YouTubeError, YouTubeService, token_expiry

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


async def exchange(code: str, store: bool) -> int:
    youtube = YouTubeService()
    try:
        tokens = await youtube.exchange_code(code)
    except YouTubeError:
        logger.error("Code exchange failed. Codes are single-use; request a new one.")
        return 1

    if not tokens.get("refresh_token"):
        logger.error("No refresh_token returned. Revoke app access and retry with prompt=consent.")
        return 1

    expiry = token_expiry(tokens)
    print(f"YOUTUBE_ACCESS_TOKEN={tokens['access_token']}")
    print(f"YOUTUBE_REFRESH_TOKEN={tokens['refresh_token']}")
    print(f"YOUTUBE_TOKEN_EXPIRY={expiry.isoformat() if expiry else ''}")

    if store:
        async with async_session() as session:
            try:
                await youtube.store_owner_tokens(session, tokens)
            except YouTubeError:
                logger.error("No admin profile found to store the tokens on.")
                return 1
            await session.commit()
        logger.info("Tokens stored on the admin profile.")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--code", help="authorization code from the OAuth redirect")
    parser.add_argument("--store", action="store_true", help="save tokens on the first admin")
    args = parser.parse_args()

    if not args.code:
        print(YouTubeService().get_auth_url(state="cli"))
        return 0
    return asyncio.run(exchange(args.code, args.store))


if __name__ == "__main__":
    sys.exit(main())
