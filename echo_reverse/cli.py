"""
Echo Reverse - command-line interface.

Example usage:
    # Reverse an existing audio file into a WAV
    echo-reverse reverse speech.flac -o reversed.wav

    # Record five seconds, reverse, play back and save
    echo-reverse record --seconds 5 --reverse --play -o reversed.wav

    # Desktop app
    echo-reverse gui
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from echo_reverse import __version__
from echo_reverse.core.decoder import SoundFileDecoder
from echo_reverse.core.reverser import reverse
from echo_reverse.core.wav_encoder import write_wav
from echo_reverse.utils.config import load_config
from echo_reverse.utils.errors import EchoReverseError
from echo_reverse.utils.logging import setup_logging_from_config

logger = logging.getLogger(__name__)


def reverse_file(input_path: Path, output_path: Path) -> Path:
    """Decode an audio file, reverse it and write it as WAV."""
    if not input_path.exists():
        raise FileNotFoundError(f"Audio file not found: {input_path}")

    buffer = SoundFileDecoder().decode(input_path.read_bytes())
    reverse(buffer)
    return write_wav(buffer, output_path)


async def record_session(
    config: Dict[str, Any],
    seconds: float,
    do_reverse: bool,
    do_play: bool,
    output: Optional[Path],
) -> Optional[Path]:
    """Run one headless record / reverse / play / save cycle."""
    from echo_reverse.core.controller import create_audio_controller

    controller = create_audio_controller(config, asyncio.get_running_loop())
    try:
        print(f"Recording for {seconds:.1f}s...")
        await controller.toggle_record()
        await asyncio.sleep(seconds)
        await controller.toggle_record()
        print(f"Captured {controller.state.duration:.2f}s of audio")

        if do_reverse:
            controller.reverse()
            print("Reversed")

        if do_play and controller.toggle_play():
            finished = asyncio.Event()
            unsubscribe = controller.subscribe(
                lambda state: finished.set() if not state.is_playing else None
            )
            try:
                await finished.wait()
            finally:
                unsubscribe()

        if output is not None:
            return controller.download(output)
        return None
    finally:
        controller.shutdown()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="echo-reverse",
        description="Record audio, reverse it, play it back and export it as WAV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  echo-reverse reverse speech.flac -o reversed.wav
  echo-reverse record --seconds 5 --reverse --play -o reversed.wav
  echo-reverse gui
        """
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"echo-reverse {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    reverse_parser = subparsers.add_parser("reverse", help="Reverse an audio file into a WAV")
    reverse_parser.add_argument("input", type=Path, help="Audio file to reverse")
    reverse_parser.add_argument(
        "--output", "-o",
        type=Path,
        default=None,
        help="Output WAV path (default: export.filename from config)"
    )

    record_parser = subparsers.add_parser("record", help="Record from the default microphone")
    record_parser.add_argument(
        "--seconds", "-s",
        type=float,
        default=5.0,
        help="Recording length in seconds (default: 5)"
    )
    record_parser.add_argument("--reverse", action="store_true", help="Reverse after recording")
    record_parser.add_argument("--play", action="store_true", help="Play back after recording")
    record_parser.add_argument("--output", "-o", type=Path, default=None, help="Save as WAV")

    subparsers.add_parser("gui", help="Launch the desktop app")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for Echo Reverse."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(str(args.config) if args.config else None)
    except EchoReverseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    setup_logging_from_config(config, verbose=args.verbose)

    try:
        if args.command == "reverse":
            output = args.output or Path(config["export"]["filename"])
            written = reverse_file(args.input, output)
            print(f"Reversed audio written to {written}")
        elif args.command == "record":
            if args.seconds <= 0:
                parser.error("--seconds must be positive")
            written = asyncio.run(
                record_session(config, args.seconds, args.reverse, args.play, args.output)
            )
            if written is not None:
                print(f"Saved {written}")
        elif args.command == "gui":
            from echo_reverse.app import main as launch_gui
            launch_gui(config)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except EchoReverseError as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
