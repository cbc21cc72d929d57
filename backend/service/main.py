"""
Process entry point.

Responsibilities:
- Load .env and the typed config
- Preflight: fail fast (exit 1) before any network activity
- Wire engine, playlist, decoder, publish loop, runtime and supervisor
- Install SIGTERM / SIGINT handlers that only request shutdown
- Run until shutdown, then tear down in order and exit 0
"""

from __future__ import annotations

import asyncio
import shutil
import signal
import sys

from dotenv import load_dotenv

from adapters.room.credentials import mint_access_token
from adapters.room.livekit_room import LiveKitRoomAdapter
from audio.crossfade import CrossfadeEngine
from audio.decoder import FFmpegDecoder
from audio.playlist import PlaylistSource
from config import AppConfig, ConfigError
from constants import DECODER_TERMINATE_GRACE_S
from observability.logger import log_event, set_min_level
from orchestrator.publish_loop import PublishLoop
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import AgentState
from service.heartbeat import run_heartbeat
from service.lifecycle import ServiceLifecycle
from session.supervisor import ConnectionSupervisor


def preflight(config: AppConfig) -> None:
    """
    Checks that must pass before touching the network.

    Raises:
        ConfigError if credentials are missing or the decoder binary
        cannot be found.
    """
    if not config.has_credentials:
        raise ConfigError("LIVEKIT_API_KEY and LIVEKIT_API_SECRET must be set")
    if shutil.which(config.ffmpeg_bin) is None:
        raise ConfigError(f"decoder binary not found on PATH: {config.ffmpeg_bin!r}")


async def run_service(config: AppConfig) -> None:
    engine = CrossfadeEngine(max_fade_frames=config.crossfade_frames)
    playlist = PlaylistSource(config.records_path, extensions=config.playlist_extensions)
    decoder = FFmpegDecoder(ffmpeg_bin=config.ffmpeg_bin, sample_rate_hz=config.sample_rate_hz)
    publish_loop = PublishLoop(
        engine=engine,
        playlist=playlist,
        decoder=decoder,
        sample_rate_hz=config.sample_rate_hz,
        samples_per_frame=config.samples_per_frame,
        rescan_interval_s=config.rescan_interval_ms / 1000.0,
    )
    runtime = Runtime(
        initial_state=AgentState(beacon_identity=config.beacon_identity),
        context=RuntimeExecutionContext(
            gain=engine,
            publisher=publish_loop,
            room_name=config.room_name,
        ),
    )

    def token_provider() -> str:
        assert config.livekit_api_key is not None and config.livekit_api_secret is not None
        return mint_access_token(
            api_key=config.livekit_api_key,
            api_secret=config.livekit_api_secret,
            identity=config.bot_identity,
            name=config.bot_name,
            room_name=config.room_name,
            ttl_s=config.token_ttl_s,
        )

    async def stop_publishing() -> None:
        await publish_loop.shutdown(DECODER_TERMINATE_GRACE_S * 2)

    supervisor: ConnectionSupervisor | None = None

    async def release_audio() -> None:
        if supervisor is not None:
            await supervisor.release_audio()

    async def leave_room() -> None:
        if supervisor is not None:
            await supervisor.leave_room()

    lifecycle = ServiceLifecycle(
        stop_publishing=stop_publishing,
        release_audio=release_audio,
        leave_room=leave_room,
    )
    supervisor = ConnectionSupervisor(
        config=config,
        runtime=runtime,
        publish_loop=publish_loop,
        room_factory=lambda emit: LiveKitRoomAdapter(emit_event=emit),
        token_provider=token_provider,
        shutdown_event=lifecycle.shutdown_event,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lifecycle.request_shutdown, sig.name)

    dispatch_task = asyncio.create_task(runtime.run(), name="runtime-dispatch")
    heartbeat_task = asyncio.create_task(
        run_heartbeat(config.heartbeat_path, config.heartbeat_interval_ms / 1000.0),
        name="heartbeat",
    )
    supervisor_task = asyncio.create_task(supervisor.run(), name="connection-supervisor")
    lifecycle.set_supervisor(supervisor_task)
    lifecycle.add_background([dispatch_task, heartbeat_task])

    log_event({
        "event_type": "SERVICE_STARTED",
        "room": config.room_name,
        "identity": config.bot_identity,
        "beacon_identity": config.beacon_identity,
        "records_path": config.records_path,
        "sample_rate_hz": config.sample_rate_hz,
        "crossfade_frames": config.crossfade_frames,
    })

    try:
        await lifecycle.shutdown_event.wait()
    finally:
        await lifecycle.shutdown()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)


def main() -> int:
    load_dotenv()
    try:
        config = AppConfig.load_from_env()
        preflight(config)
    except ConfigError as e:
        log_event({
            "level": "ERROR",
            "event_type": "CONFIG_INVALID",
            "error": str(e),
        })
        return 1

    set_min_level(config.log_level)
    asyncio.run(run_service(config))
    log_event({"event_type": "SERVICE_EXITED"})
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
