"""Room access token minting."""

from __future__ import annotations

from datetime import timedelta

from livekit import api


def mint_access_token(
    *,
    api_key: str,
    api_secret: str,
    identity: str,
    name: str,
    room_name: str,
    ttl_s: int,
) -> str:
    """
    Sign a join token for the bot.

    The bot only publishes; subscribe permission is withheld so the SDK
    never pulls remote media it would discard.
    """
    grants = api.VideoGrants(
        room_join=True,
        room=room_name,
        can_publish=True,
        can_subscribe=False,
    )
    return (
        api.AccessToken(api_key, api_secret)
        .with_identity(identity)
        .with_name(name)
        .with_ttl(timedelta(seconds=ttl_s))
        .with_grants(grants)
        .to_jwt()
    )
