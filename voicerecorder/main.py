"""Main application entry point for VoiceRecorder."""

import asyncio
import sys
import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from voicerecorder.audio.capture import PyAudioRecordingEngine
from voicerecorder.exceptions import VoiceRecorderError
from voicerecorder.models.session import FailureReason, SessionOutcome
from voicerecorder.permissions.gate import ConsolePermissionGate, PermissionGate, StaticPermissionGate
from voicerecorder.services.event_publisher import SessionEventPublisher
from voicerecorder.services.session_controller import SessionController
from voicerecorder.services.uploader import Uploader
from voicerecorder.storage.locator import StorageLocator
from voicerecorder.ui.console import ConsoleRenderer, render_notification

from .config import VoiceRecorderConfig

logger = logging.getLogger(__name__)

DEFAULT_LOG_FILE = Path.home() / ".voicerecorder" / "logs" / "voicerecorder.log"


def setup_logging(config: VoiceRecorderConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    # Get log file path from config
    log_file_path = config.get('logging.file_path') or str(DEFAULT_LOG_FILE)
    console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    # Set up handlers
    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    # Configure root logger
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    # Log startup
    logger.info("=" * 50)
    logger.info("VoiceRecorder starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def build_storage_locator(config: VoiceRecorderConfig) -> StorageLocator:
    return StorageLocator(
        root=config.get_storage_root(),
        overwrite=bool(config.get('storage.overwrite', False)),
    )


def build_uploader(config: VoiceRecorderConfig) -> Uploader:
    return Uploader(
        field_name=config.get('upload.field_name', 'audio'),
        content_type=config.get('upload.content_type', 'audio/mp4'),
        timeout_seconds=float(config.get('upload.timeout_seconds', 30)),
    )


def build_permission_gate(config: VoiceRecorderConfig, console: Console) -> PermissionGate:
    if config.get('permissions.auto_grant', False):
        return StaticPermissionGate(granted=True)
    return ConsolePermissionGate(console)


def build_controller(config: VoiceRecorderConfig,
                     publisher: SessionEventPublisher,
                     console: Console) -> SessionController:
    """Wire the session controller and its collaborators from configuration."""
    sample_rate = config.get('recording.sample_rate', 44100)
    chunk_size = config.get('recording.chunk_size', 1024)
    channels = config.get('recording.channels', 1)
    logger.info(f"Audio settings: {sample_rate}Hz, {chunk_size} samples/chunk, {channels} channels")

    engine = PyAudioRecordingEngine(
        sample_rate=sample_rate,
        chunk_size=chunk_size,
        channels=channels,
        bitrate=config.get('recording.bitrate', '64k'),
        progress_interval_ms=config.get('recording.progress_interval_ms', 500),
        ffmpeg_path=config.get('recording.ffmpeg_path', 'ffmpeg'),
    )

    return SessionController(
        permission_gate=build_permission_gate(config, console),
        storage_locator=build_storage_locator(config),
        recording_engine=engine,
        uploader=build_uploader(config),
        publisher=publisher,
        endpoint=config.get_upload_endpoint(),
        duration_seconds=config.get_recording_duration(),
        directory_name=config.get('storage.directory_name', 'VoiceRecorder'),
    )


async def run_session(controller: SessionController) -> SessionOutcome:
    """Run one session to its terminal outcome; Ctrl+C cancels it."""
    controller.begin()
    try:
        return await controller.wait()
    except asyncio.CancelledError:
        if controller.cancel():
            logger.info("Session cancelled by user")
        return await controller.wait()


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="Path to configuration YAML file (default: ./voicerecorder.yaml if present)")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Set logging level (default: from config, INFO)")
@click.version_option("0.1.0", prog_name="VoiceRecorder")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: Optional[str]) -> None:
    """VoiceRecorder - record from the microphone and upload the result."""
    try:
        config = VoiceRecorderConfig(config_path)
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e))

    setup_logging(config, log_level or config.get('logging.level', 'INFO'))
    ctx.obj = config


@cli.command()
@click.option("--duration", type=float, help="Recording length in seconds (default: from config, 10)")
@click.option("--endpoint", help="Upload URL (default: from config)")
@click.option("--yes", "-y", is_flag=True, help="Grant microphone access without prompting")
@click.pass_context
def record(ctx: click.Context, duration: Optional[float], endpoint: Optional[str], yes: bool) -> None:
    """Record from the microphone, save the file and upload it."""
    config: VoiceRecorderConfig = ctx.obj
    if duration is not None:
        config.set('recording.duration_seconds', duration)
    if endpoint:
        config.set('upload.endpoint', endpoint)
    if yes:
        config.set('permissions.auto_grant', True)

    console = Console()
    publisher = SessionEventPublisher()
    renderer = ConsoleRenderer(publisher, console)
    try:
        controller = build_controller(config, publisher, console)
        outcome = asyncio.run(run_session(controller))
    except ValueError as e:
        raise click.ClickException(str(e))
    except KeyboardInterrupt:
        console.print("\n👋 Goodbye!")
        ctx.exit(130)
    finally:
        renderer.close()

    ctx.exit(0 if outcome.succeeded else 1)


@cli.command()
@click.option("--cleanup", is_flag=True, help="Delete recordings older than storage.max_age_days first")
@click.option("--cleanup-days", type=int, help="Delete recordings older than this many days first")
@click.pass_context
def recordings(ctx: click.Context, cleanup: bool, cleanup_days: Optional[int]) -> None:
    """List recordings kept in the storage directory."""
    config: VoiceRecorderConfig = ctx.obj
    console = Console()
    storage = build_storage_locator(config)
    directory = storage.resolve_root() / config.get('storage.directory_name', 'VoiceRecorder')

    if cleanup or cleanup_days is not None:
        if cleanup_days is None:
            cleanup_days = int(config.get('storage.max_age_days', 30))
        removed = storage.cleanup_old_recordings(directory, max_age_days=cleanup_days)
        console.print(f"🧹 Removed {removed} recording(s) older than {cleanup_days} days")

    items = storage.list_recordings(directory)
    if not items:
        console.print(f"No recordings in {directory}")
        return

    table = Table(title=f"Recordings in {directory}")
    table.add_column("File")
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    for item in items:
        table.add_row(item.path.name, f"{item.size_bytes / 1024:.1f} KB",
                      item.modified_at.strftime("%Y-%m-%d %H:%M:%S"))
    console.print(table)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--endpoint", help="Upload URL (default: from config)")
@click.pass_context
def upload(ctx: click.Context, path: Path, endpoint: Optional[str]) -> None:
    """Upload a recording that is already on disk."""
    config: VoiceRecorderConfig = ctx.obj
    console = Console()
    try:
        endpoint = endpoint or config.get_upload_endpoint()
        uploader = build_uploader(config)
    except ValueError as e:
        raise click.ClickException(str(e))

    try:
        result = asyncio.run(uploader.send(path, endpoint))
    except VoiceRecorderError as e:
        outcome = SessionOutcome.failure(e.reason, detail=e.detail)
    else:
        if result.ok:
            outcome = SessionOutcome.success(result.status, result.url)
        else:
            outcome = SessionOutcome.failure(FailureReason.UPLOAD_REJECTED, status=result.status)

    render_notification(console, outcome)
    ctx.exit(0 if outcome.succeeded else 1)


def main() -> None:
    """Main entry point for VoiceRecorder application."""
    cli(prog_name="voicerecorder")


if __name__ == "__main__":
    main()
