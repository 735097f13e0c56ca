"""
Waveform rendering onto a Pillow backing store.

- PillowSurface: RGBA drawing target sized in logical units, backed by an
  image scaled by the display's pixel density
- WaveformRenderer: draws one snapshot per frame (trail or baseline)
- RenderLoop: per-frame loop feeding snapshots to the renderer
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw

from echo_reverse.core.models import VisualizationSnapshot
from echo_reverse.core.protocols import FrameScheduler
from echo_reverse.core.scheduler import FrameLoop
from echo_reverse.visualization.feed import VisualizationFeed

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]
RGBA = Tuple[int, int, int, int]
Point = Tuple[float, float]


def hex_to_rgb(color: str) -> RGB:
    color = color.lstrip("#")
    return (int(color[0:2], 16), int(color[2:4], 16), int(color[4:6], 16))


def with_alpha(color: RGB, alpha: float) -> RGBA:
    return (color[0], color[1], color[2], int(round(max(0.0, min(1.0, alpha)) * 255)))


def gradient_color(stops: Sequence[RGB], position: float) -> RGB:
    """Linearly interpolate evenly spaced color stops at ``position`` in [0, 1]."""
    if len(stops) == 1:
        return stops[0]
    position = max(0.0, min(1.0, position))
    scaled = position * (len(stops) - 1)
    index = min(int(scaled), len(stops) - 2)
    t = scaled - index
    start, end = stops[index], stops[index + 1]
    return tuple(int(round(a + (b - a) * t)) for a, b in zip(start, end))


@dataclass(frozen=True)
class WaveformStyle:
    """Colors and stroke settings for the waveform display."""

    background: RGB = (10, 10, 10)
    fade_alpha: float = 0.2
    baseline_color: RGB = (255, 255, 255)
    baseline_alpha: float = 0.1
    gradient: Tuple[RGB, ...] = ((0x64, 0x6C, 0xFF), (0xFF, 0x3B, 0x30), (0x64, 0x6C, 0xFF))
    line_width: float = 2.0
    gradient_bands: int = 32

    @classmethod
    def from_config(cls, config: dict) -> "WaveformStyle":
        return cls(
            fade_alpha=config.get("fade_alpha", cls.fade_alpha),
            baseline_alpha=config.get("baseline_alpha", cls.baseline_alpha),
            line_width=config.get("line_width", cls.line_width),
        )


class PillowSurface:
    """
    Drawing target in device-independent units.

    The backing image is ``ceil(width * pixel_ratio)`` by
    ``ceil(height * pixel_ratio)`` pixels; all drawing methods take logical
    coordinates and apply the scale. The scale only changes in ``resize()``.
    """

    def __init__(
        self,
        width: float,
        height: float,
        pixel_ratio: float = 1.0,
        background: RGB = (10, 10, 10),
    ):
        self._background = background
        self.width = 0.0
        self.height = 0.0
        self.pixel_ratio = 1.0
        self._image: Optional[Image.Image] = None
        self._draw: Optional[ImageDraw.ImageDraw] = None
        self.resize(width, height, pixel_ratio)

    @property
    def image(self) -> Image.Image:
        return self._image

    @property
    def pixel_size(self) -> Tuple[int, int]:
        return self._image.size

    def resize(self, width: float, height: float, pixel_ratio: Optional[float] = None) -> None:
        """Establish logical size and pixel density; reallocates the backing store."""
        if width <= 0 or height <= 0:
            raise ValueError(f"surface size must be positive, got {width}x{height}")
        if pixel_ratio is not None:
            if pixel_ratio <= 0:
                raise ValueError(f"pixel_ratio must be positive, got {pixel_ratio}")
            self.pixel_ratio = float(pixel_ratio)
        self.width = float(width)
        self.height = float(height)

        size = (
            max(1, math.ceil(self.width * self.pixel_ratio)),
            max(1, math.ceil(self.height * self.pixel_ratio)),
        )
        self._image = Image.new("RGBA", size, self._background + (255,))
        self._draw = ImageDraw.Draw(self._image, "RGBA")
        logger.debug(
            "Surface resized to %gx%g @%gx (%dx%d px)",
            self.width, self.height, self.pixel_ratio, size[0], size[1]
        )

    def clear(self) -> None:
        self._draw.rectangle((0, 0) + self._image.size, fill=self._background + (255,))

    def fill(self, color: RGBA) -> None:
        """Blend ``color`` over the whole surface."""
        self._draw.rectangle((0, 0) + self._image.size, fill=color)

    def polyline(self, points: Sequence[Point], color: RGBA, width: float) -> None:
        if len(points) < 2:
            return
        scale = self.pixel_ratio
        scaled = [(x * scale, y * scale) for x, y in points]
        self._draw.line(scaled, fill=color, width=max(1, int(round(width * scale))))


class WaveformRenderer:
    """
    Draws snapshots onto a surface.

    Active snapshots leave a fading trail: a partial-opacity fill dims the
    previous frames before the new polyline is stroked. Inactive snapshots
    clear the surface and draw a flat baseline.
    """

    def __init__(self, surface: PillowSurface, style: Optional[WaveformStyle] = None):
        self.surface = surface
        self.style = style or WaveformStyle()

    def draw(self, snapshot: VisualizationSnapshot) -> None:
        if not snapshot.is_active or len(snapshot) == 0:
            self.draw_baseline()
            return

        style = self.style
        self.surface.fill(with_alpha(style.background, style.fade_alpha))

        points = self.waveform_points(snapshot.values)
        for band, color in self._gradient_bands(points):
            self.surface.polyline(band, color + (255,), style.line_width)

    def draw_baseline(self) -> None:
        surface = self.surface
        center = surface.height / 2
        surface.clear()
        surface.polyline(
            [(0.0, center), (surface.width, center)],
            with_alpha(self.style.baseline_color, self.style.baseline_alpha),
            1,
        )

    def waveform_points(self, values: np.ndarray) -> List[Point]:
        """One vertex per sample across the width, then the right-edge center."""
        width = self.surface.width
        half = self.surface.height / 2
        slice_width = width / len(values)

        points = [
            (index * slice_width, half - float(value) * half)
            for index, value in enumerate(values)
        ]
        points.append((width, half))
        return points

    def _gradient_bands(self, points: List[Point]) -> List[Tuple[List[Point], RGB]]:
        """Split the polyline into horizontal bands, each with one gradient color."""
        width = self.surface.width
        band_count = max(1, min(self.style.gradient_bands, len(points) - 1))
        per_band = math.ceil((len(points) - 1) / band_count)

        bands = []
        for start in range(0, len(points) - 1, per_band):
            band = points[start:start + per_band + 1]  # overlap one vertex to stay joined
            mid_x = (band[0][0] + band[-1][0]) / 2
            bands.append((band, gradient_color(self.style.gradient, mid_x / width)))
        return bands


class RenderLoop:
    """
    Pulls a snapshot from the feed and draws it once per frame.

    Cancels itself when the feed becomes unavailable; ``on_frame`` is
    called after each draw so a view can present the surface.
    """

    def __init__(
        self,
        renderer: WaveformRenderer,
        feed: VisualizationFeed,
        scheduler: FrameScheduler,
        on_frame: Optional[Callable[[PillowSurface], None]] = None,
    ):
        self.renderer = renderer
        self.feed = feed
        self._on_frame = on_frame
        self._loop = FrameLoop(scheduler, self._tick, name="waveform")
        self.frames_drawn = 0

    @property
    def is_running(self) -> bool:
        return self._loop.is_running

    def start(self) -> None:
        if not self.feed.available:
            logger.debug("Render loop not started: analyser unavailable")
            return
        self._loop.start()

    def cancel(self) -> None:
        self._loop.cancel()

    def _tick(self) -> bool:
        if not self.feed.available:
            logger.debug("Analyser unavailable, stopping render loop")
            return False

        self.renderer.draw(self.feed.snapshot())
        self.frames_drawn += 1
        if self._on_frame is not None:
            self._on_frame(self.renderer.surface)
        return True
