# pylint: disable=missing-module-docstring,missing-function-docstring
import base64
import json
import time
from typing import Any

from adapters.room.credentials import mint_access_token


def jwt_claims(token: str) -> dict[str, Any]:
    payload = token.split(".")[1]
    payload += "=" * (-len(payload) % 4)
    return json.loads(base64.urlsafe_b64decode(payload))


def test_token_carries_identity_and_publish_only_grant():
    token = mint_access_token(
        api_key="devkey",
        api_secret="a-secret-long-enough-for-hmac-signing-0123456789",
        identity="playlist-bot",
        name="Playlist Bot",
        room_name="beacon",
        ttl_s=86_400,
    )

    claims = jwt_claims(token)

    assert claims["sub"] == "playlist-bot"
    assert claims["iss"] == "devkey"
    assert claims["name"] == "Playlist Bot"
    assert claims["video"]["roomJoin"] is True
    assert claims["video"]["room"] == "beacon"
    assert claims["video"]["canPublish"] is True
    assert claims["video"].get("canSubscribe") in (False, None)
    assert claims["exp"] > time.time() + 86_000
