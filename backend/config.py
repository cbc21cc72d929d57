"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object
- Derive the frame geometry (samples/bytes per frame, crossfade frames)

Non-responsibilities:
- No orchestration logic
- No network or filesystem access
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from constants import (
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_WIDTH_BYTES,
    DEFAULT_BEACON_IDENTITY,
    DEFAULT_BOT_IDENTITY,
    DEFAULT_BOT_NAME,
    DEFAULT_CROSSFADE_MS,
    DEFAULT_FFMPEG_BIN,
    DEFAULT_FRAME_MS,
    DEFAULT_HEARTBEAT_INTERVAL_MS,
    DEFAULT_HEARTBEAT_PATH,
    DEFAULT_LIVEKIT_URL,
    DEFAULT_LOG_LEVEL,
    DEFAULT_PLAYLIST_EXTENSIONS,
    DEFAULT_RECONNECT_BASE_MS,
    DEFAULT_RECONNECT_MAX_MS,
    DEFAULT_RECORDS_PATH,
    DEFAULT_RESCAN_INTERVAL_MS,
    DEFAULT_ROOM_NAME,
    DEFAULT_SAMPLE_RATE_HZ,
    DEFAULT_TOKEN_TTL_S,
    DEFAULT_TRACK_NAME,
    LOG_LEVELS,
)


class ConfigError(ValueError):
    """Configuration is missing or invalid. Fatal at startup, never retried."""


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the supervisor, publish loop and lifecycle.
    """

    # ------------------------------------------------------------------
    # Room
    # ------------------------------------------------------------------

    livekit_url: str = DEFAULT_LIVEKIT_URL
    livekit_api_key: str | None = None
    livekit_api_secret: str | None = None
    room_name: str = DEFAULT_ROOM_NAME
    bot_identity: str = DEFAULT_BOT_IDENTITY
    bot_name: str = DEFAULT_BOT_NAME
    beacon_identity: str = DEFAULT_BEACON_IDENTITY
    track_name: str = DEFAULT_TRACK_NAME
    token_ttl_s: int = DEFAULT_TOKEN_TTL_S

    # ------------------------------------------------------------------
    # Playlist
    # ------------------------------------------------------------------

    records_path: str = DEFAULT_RECORDS_PATH
    playlist_extensions: tuple[str, ...] = DEFAULT_PLAYLIST_EXTENSIONS
    rescan_interval_ms: int = DEFAULT_RESCAN_INTERVAL_MS

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------

    sample_rate_hz: int = DEFAULT_SAMPLE_RATE_HZ
    frame_duration_ms: int = DEFAULT_FRAME_MS
    crossfade_duration_ms: int = DEFAULT_CROSSFADE_MS
    ffmpeg_bin: str = DEFAULT_FFMPEG_BIN

    # ------------------------------------------------------------------
    # Reconnect
    # ------------------------------------------------------------------

    reconnect_base_ms: int = DEFAULT_RECONNECT_BASE_MS
    reconnect_max_ms: int = DEFAULT_RECONNECT_MAX_MS

    # ------------------------------------------------------------------
    # Health / observability
    # ------------------------------------------------------------------

    heartbeat_path: str = DEFAULT_HEARTBEAT_PATH
    heartbeat_interval_ms: int = DEFAULT_HEARTBEAT_INTERVAL_MS
    log_level: str = DEFAULT_LOG_LEVEL

    # ------------------------------------------------------------------
    # Derived frame geometry
    # ------------------------------------------------------------------

    @property
    def samples_per_frame(self) -> int:
        return (self.sample_rate_hz * self.frame_duration_ms) // 1000

    @property
    def bytes_per_frame(self) -> int:
        return self.samples_per_frame * AUDIO_CHANNELS * AUDIO_SAMPLE_WIDTH_BYTES

    @property
    def crossfade_frames(self) -> int:
        return max(1, self.crossfade_duration_ms // self.frame_duration_ms)

    @property
    def has_credentials(self) -> bool:
        return bool(self.livekit_api_key) and bool(self.livekit_api_secret)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> AppConfig:
        """
        Reject values that would make the frame cadence meaningless.

        Returns self so it can be chained after load_from_env().

        Raises:
            ConfigError on the first invalid value.
        """
        positive = {
            "SAMPLE_RATE_HZ": self.sample_rate_hz,
            "FRAME_DURATION_MS": self.frame_duration_ms,
            "CROSSFADE_DURATION_MS": self.crossfade_duration_ms,
            "RECONNECT_BASE_MS": self.reconnect_base_ms,
            "RECONNECT_MAX_MS": self.reconnect_max_ms,
            "RESCAN_INTERVAL_MS": self.rescan_interval_ms,
            "HEARTBEAT_INTERVAL_MS": self.heartbeat_interval_ms,
            "TOKEN_TTL_S": self.token_ttl_s,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ConfigError(f"{name} must be > 0 (got {value})")

        if (self.sample_rate_hz * self.frame_duration_ms) % 1000 != 0:
            raise ConfigError(
                "FRAME_DURATION_MS must yield a whole number of samples "
                f"(rate={self.sample_rate_hz}, frame_ms={self.frame_duration_ms})"
            )

        if self.reconnect_max_ms < self.reconnect_base_ms:
            raise ConfigError("RECONNECT_MAX_MS must be >= RECONNECT_BASE_MS")

        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"LOG_LEVEL must be one of {LOG_LEVELS} (got {self.log_level})")

        if not self.playlist_extensions:
            raise ConfigError("PLAYLIST_EXTENSIONS must name at least one extension")

        return self

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env(environ: Mapping[str, str] | None = None) -> AppConfig:
        """
        Load configuration from environment variables.

        Credentials are read but not required here; preflight decides
        whether their absence is fatal.

        Raises:
            ConfigError if a numeric variable is not an integer or a
            value fails validate().
        """
        env = os.environ if environ is None else environ

        return AppConfig(
            livekit_url=env.get("LIVEKIT_URL", DEFAULT_LIVEKIT_URL),
            livekit_api_key=env.get("LIVEKIT_API_KEY") or None,
            livekit_api_secret=env.get("LIVEKIT_API_SECRET") or None,
            room_name=env.get("LIVEKIT_ROOM_NAME", DEFAULT_ROOM_NAME),
            bot_identity=env.get("BOT_IDENTITY", DEFAULT_BOT_IDENTITY),
            bot_name=env.get("BOT_NAME", DEFAULT_BOT_NAME),
            beacon_identity=env.get("BEACON_IDENTITY", DEFAULT_BEACON_IDENTITY),
            track_name=env.get("TRACK_NAME", DEFAULT_TRACK_NAME),
            token_ttl_s=_int(env, "TOKEN_TTL_S", DEFAULT_TOKEN_TTL_S),

            records_path=env.get("BEACON_RECORDS_PATH", DEFAULT_RECORDS_PATH),
            playlist_extensions=_extensions(env.get("PLAYLIST_EXTENSIONS")),
            rescan_interval_ms=_int(env, "RESCAN_INTERVAL_MS", DEFAULT_RESCAN_INTERVAL_MS),

            sample_rate_hz=_int(env, "SAMPLE_RATE_HZ", DEFAULT_SAMPLE_RATE_HZ),
            frame_duration_ms=_int(env, "FRAME_DURATION_MS", DEFAULT_FRAME_MS),
            crossfade_duration_ms=_int(env, "CROSSFADE_DURATION_MS", DEFAULT_CROSSFADE_MS),
            ffmpeg_bin=env.get("FFMPEG_BIN", DEFAULT_FFMPEG_BIN),

            reconnect_base_ms=_int(env, "RECONNECT_BASE_MS", DEFAULT_RECONNECT_BASE_MS),
            reconnect_max_ms=_int(env, "RECONNECT_MAX_MS", DEFAULT_RECONNECT_MAX_MS),

            heartbeat_path=env.get("HEARTBEAT_PATH", DEFAULT_HEARTBEAT_PATH),
            heartbeat_interval_ms=_int(
                env, "HEARTBEAT_INTERVAL_MS", DEFAULT_HEARTBEAT_INTERVAL_MS
            ),
            log_level=env.get("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        ).validate()


# ------------------------------------------------------------------
# Parsing helpers
# ------------------------------------------------------------------

def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer (got {raw!r})") from exc


def _extensions(raw: str | None) -> tuple[str, ...]:
    if raw is None:
        return DEFAULT_PLAYLIST_EXTENSIONS
    out: list[str] = []
    for part in raw.split(","):
        ext = part.strip().lower()
        if not ext:
            continue
        out.append(ext if ext.startswith(".") else f".{ext}")
    return tuple(out)
