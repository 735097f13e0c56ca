"""
Echo Reverse GUI launcher.

    python gui.py
"""

from echo_reverse.app import main


if __name__ == "__main__":
    main()
