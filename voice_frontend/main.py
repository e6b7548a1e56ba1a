"""
Command line entry point for the voice front end.
"""

import argparse
import asyncio
import os
import signal
from pathlib import Path

from .config import get_config_for_preset, print_config_summary, set_active_preset
from .config_models import FrontendConfig
from .providers.permissions import input_device_available
from .providers.playback import detect_player_command
from .service import VoiceService
from .utils.error_handling import EngineInitializationFailed
from .utils.logging_config import setup_logging, get_logger

logger = get_logger("main")


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="voice-frontend",
        description="Wake word / push-to-talk front end for a remote voice assistant",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('--preset', default=None, help='Configuration preset (default, dev, prod, test)')
    parser.add_argument('--log-file', type=Path, default=None, help='Also write logs to this file')

    subparsers = parser.add_subparsers(dest='command', help='Commands')
    subparsers.add_parser('run', help='Listen for the wake word and run conversations until interrupted')
    subparsers.add_parser('status', help='Show host readiness and initial service state')
    subparsers.add_parser('config', help='Show configuration')
    return parser


def _section(title: str):
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60 + "\n")


async def cmd_run(service: VoiceService):
    """Run until Ctrl+C or a fatal error."""
    _section("Voice Front End")

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, service.request_shutdown, sig.name)
        except NotImplementedError:
            # Windows: KeyboardInterrupt still reaches main()
            pass

    try:
        await service.run_forever()
    except EngineInitializationFailed as e:
        print(f"❌ Wake word engine failed to start: {e}")


def cmd_status(service: VoiceService):
    """Show host readiness."""
    _section("Status")

    command = service.player.command if hasattr(service.player, 'command') else None
    checks = {
        "Input device": input_device_available(),
        "Audio player": bool(command or detect_player_command()),
        "Upload URL": bool(service.config['upload']['config'].get('url')),
        "Wake word model": Path(service.config['wakeword']['config'].get('model_path') or '').is_file(),
    }
    for name, ok in checks.items():
        print(f"{name}: {'✅' if ok else '❌'}")

    status = service.get_status()
    print(f"\nMicrophone owner: {status['microphone']['owner']}")
    print(f"Conversation: {status['conversation']['state']}")
    print()


def cmd_config(config):
    """Show configuration."""
    _section("Configuration")
    print_config_summary(config)


async def async_main():
    """Async main function."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    if args.preset:
        set_active_preset(args.preset)
    config = get_config_for_preset(args.preset)

    if args.command == 'config':
        cmd_config(config)
        return

    # Fail fast on bad values before touching any hardware
    FrontendConfig.from_dict(config)

    if args.log_file:
        setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), log_file=args.log_file)

    service = VoiceService(config)
    if args.command == 'run':
        await cmd_run(service)
    elif args.command == 'status':
        cmd_status(service)
    else:
        print(f"Unknown command: {args.command}")
        parser.print_help()


def main():
    """Synchronous entry point."""
    log_level = os.getenv("LOG_LEVEL", "INFO")
    try:
        setup_logging(level=log_level)
    except (AttributeError, ValueError) as e:
        print(f"⚠️  Failed to setup logging: {e}")

    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted by user")


if __name__ == '__main__':
    main()
