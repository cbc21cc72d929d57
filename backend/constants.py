"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for the agent's fixed audio format and the defaults
every tunable value falls back to when the environment is silent.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- config.AppConfig reads its defaults from this module.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Audio Format (PCM16 mono, fixed-rate frames)
# =============================================================================

AUDIO_CHANNELS: Final[int] = 1
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit, little-endian)
AUDIO_SAMPLE_FORMAT: Final[str] = "s16le"

DEFAULT_SAMPLE_RATE_HZ: Final[int] = 48_000
DEFAULT_FRAME_MS: Final[int] = 20

PCM16_MIN: Final[int] = -32_768
PCM16_MAX: Final[int] = 32_767

# =============================================================================
# Crossfade
# =============================================================================

DEFAULT_CROSSFADE_MS: Final[int] = 2_000

# =============================================================================
# Playlist
# =============================================================================

DEFAULT_RECORDS_PATH: Final[str] = "/data/beacon-records"
DEFAULT_PLAYLIST_EXTENSIONS: Final[Tuple[str, ...]] = (".ogg",)
DEFAULT_RESCAN_INTERVAL_MS: Final[int] = 30_000

# =============================================================================
# Room / identity
# =============================================================================

DEFAULT_LIVEKIT_URL: Final[str] = "ws://localhost:7880"
DEFAULT_ROOM_NAME: Final[str] = "beacon"
DEFAULT_BOT_IDENTITY: Final[str] = "playlist-bot"
DEFAULT_BOT_NAME: Final[str] = "Playlist Bot"
DEFAULT_BEACON_IDENTITY: Final[str] = "beacon01"
DEFAULT_TRACK_NAME: Final[str] = "playlist-audio"
DEFAULT_TOKEN_TTL_S: Final[int] = 24 * 60 * 60

# =============================================================================
# Reconnect backoff
# =============================================================================

DEFAULT_RECONNECT_BASE_MS: Final[int] = 1_000
DEFAULT_RECONNECT_MAX_MS: Final[int] = 30_000

# =============================================================================
# Decoder subprocess
# =============================================================================

DEFAULT_FFMPEG_BIN: Final[str] = "ffmpeg"
DECODER_READ_SIZE_BYTES: Final[int] = 8_192
DECODER_TERMINATE_GRACE_S: Final[float] = 2.0

# =============================================================================
# Health
# =============================================================================

DEFAULT_HEARTBEAT_PATH: Final[str] = "/tmp/playlist-bot-heartbeat"
DEFAULT_HEARTBEAT_INTERVAL_MS: Final[int] = 15_000

# =============================================================================
# Observability
# =============================================================================

DEFAULT_LOG_LEVEL: Final[str] = "INFO"
LOG_LEVELS: Final[Tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
