"""Visualization module: analyser feed and waveform rendering."""

from echo_reverse.visualization.feed import Analyser, VisualizationFeed
from echo_reverse.visualization.renderer import (
    PillowSurface,
    RenderLoop,
    WaveformRenderer,
    WaveformStyle,
)

__all__ = [
    "Analyser",
    "VisualizationFeed",
    "PillowSurface",
    "RenderLoop",
    "WaveformRenderer",
    "WaveformStyle",
]
