"""
Echo Reverse

Record audio from the microphone, reverse it, play it back with a live
waveform, and export it as a 16-bit PCM WAV file.
"""

__version__ = "1.0.0"
__author__ = "Echo Reverse Team"
