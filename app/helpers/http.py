from aiohttp import (
    ClientSession,
    ClientTimeout,
    DummyCookieJar,
)

from app.helpers.cache import lru_acache


@lru_acache()
async def aiohttp_session() -> ClientSession:
    """
    Create an AIOHTTP session.

    Object is cached for performance, one per event loop. It must be closed at application shutdown.

    Returns a `ClientSession` instance.
    """
    return ClientSession(
        cookie_jar=DummyCookieJar(),  # Relay APIs are stateless
        trust_env=True,
        # Reliability
        timeout=ClientTimeout(
            connect=5,
            total=60,
        ),
    )
