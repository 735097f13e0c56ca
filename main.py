"""
Echo Reverse - Main Entry Point

Example usage:
    python main.py reverse path/to/audio.flac -o reversed.wav
    python main.py --config config/config.yaml record --seconds 3 --reverse --play
"""

import sys

from echo_reverse.cli import main


if __name__ == "__main__":
    sys.exit(main())
