"""
Echo Reverse desktop app.

A small tkinter window: record, reverse, play and download buttons, a
duration readout and the live waveform. Tk is pumped from the asyncio
event loop so device callbacks, decoding and frame scheduling all share
one loop.
"""

import asyncio
import logging
import tkinter as tk
from tkinter import filedialog, messagebox
from typing import Any, Dict, Optional

from PIL import ImageTk

from echo_reverse.core.controller import AudioController, create_audio_controller
from echo_reverse.core.models import AudioState
from echo_reverse.utils.config import load_config
from echo_reverse.utils.errors import EchoReverseError
from echo_reverse.utils.logging import setup_logging_from_config
from echo_reverse.visualization.renderer import (
    PillowSurface,
    RenderLoop,
    WaveformRenderer,
    WaveformStyle,
)

logger = logging.getLogger(__name__)


class AppStyle:
    """Dark theme with the waveform gradient accents."""

    BG = "#0a0a0a"
    CARD = "#1a1a1a"
    TEXT = "#f5f5f5"
    TEXT_DIM = "#8a8a8a"
    BUTTON = "#2d2d2d"
    BUTTON_ACTIVE = "#3a3a3a"
    RECORD = "#ff3b30"
    PLAY = "#646cff"

    FONT_TITLE = ("Helvetica", 20, "bold")
    FONT_BODY = ("Helvetica", 11, "normal")
    FONT_SMALL = ("Helvetica", 9, "normal")


class EchoReverseApp:
    """Main window. Observes the controller's state and issues its commands."""

    def __init__(self, root: tk.Tk, controller: AudioController, config: Dict[str, Any]):
        self.root = root
        self.controller = controller
        self.running = True
        self._viz_config = config.get("visualization", {})
        self._photo: Optional[ImageTk.PhotoImage] = None
        self._pending: Optional[asyncio.Task] = None

        self.root.title("Echo Reverse")
        self.root.configure(bg=AppStyle.BG)
        self.root.protocol("WM_DELETE_WINDOW", self.close)

        self._build_ui()

        width = self._viz_config.get("width", 600)
        height = self._viz_config.get("height", 160)
        pixel_ratio = self._pixel_ratio()
        self.surface = PillowSurface(width, height, pixel_ratio)
        self.renderer = WaveformRenderer(self.surface, WaveformStyle.from_config(self._viz_config))
        self.render_loop = RenderLoop(
            self.renderer,
            controller.feed,
            controller.scheduler,
            on_frame=self._present,
        )
        self._new_photo()

        self._unsubscribe = controller.subscribe(self._on_state)
        self._on_state(controller.state)
        self.canvas_label.bind("<Configure>", self._on_resize)
        self.render_loop.start()

    # ------------------------------------------------------------------
    # Layout

    def _build_ui(self) -> None:
        card = tk.Frame(self.root, bg=AppStyle.CARD, padx=24, pady=24)
        card.pack(fill=tk.BOTH, expand=True, padx=20, pady=20)

        tk.Label(
            card, text="Echo Reverse", bg=AppStyle.CARD, fg=AppStyle.TEXT,
            font=AppStyle.FONT_TITLE
        ).pack()
        tk.Label(
            card, text="Record your voice, flip it, and hear the reversed reality.",
            bg=AppStyle.CARD, fg=AppStyle.TEXT_DIM, font=AppStyle.FONT_BODY
        ).pack(pady=(4, 16))

        self.canvas_label = tk.Label(card, bg=AppStyle.BG, bd=0, highlightthickness=0)
        self.canvas_label.pack(fill=tk.BOTH, expand=True)

        controls = tk.Frame(card, bg=AppStyle.CARD, pady=16)
        controls.pack()

        button_style = {
            "bg": AppStyle.BUTTON,
            "fg": AppStyle.TEXT,
            "activebackground": AppStyle.BUTTON_ACTIVE,
            "activeforeground": AppStyle.TEXT,
            "relief": tk.FLAT,
            "bd": 0,
            "padx": 14,
            "pady": 6,
            "font": AppStyle.FONT_BODY,
        }
        self.record_button = tk.Button(controls, command=self._on_record, **button_style)
        self.record_button.pack(side=tk.LEFT, padx=4)
        self.reverse_button = tk.Button(
            controls, text="Reverse Audio", command=self._on_reverse, **button_style
        )
        self.reverse_button.pack(side=tk.LEFT, padx=4)
        self.play_button = tk.Button(controls, command=self._on_play, **button_style)
        self.play_button.pack(side=tk.LEFT, padx=4)
        self.download_button = tk.Button(
            controls, text="Download", command=self._on_download, **button_style
        )
        self.download_button.pack(side=tk.LEFT, padx=4)

        self.duration_label = tk.Label(
            card, text="", bg=AppStyle.CARD, fg=AppStyle.TEXT_DIM, font=AppStyle.FONT_SMALL
        )
        self.duration_label.pack()

    def _pixel_ratio(self) -> float:
        return max(1.0, self.root.winfo_fpixels("1i") / 96.0)

    # ------------------------------------------------------------------
    # State

    def _on_state(self, state: AudioState) -> None:
        busy = state.is_recording or state.is_playing

        self.record_button.configure(
            text="Stop Recording" if state.is_recording else "Start Recording",
            fg=AppStyle.RECORD if state.is_recording else AppStyle.TEXT,
            state=tk.DISABLED if state.is_playing else tk.NORMAL,
        )
        self.reverse_button.configure(
            state=tk.NORMAL if state.has_audio and not busy else tk.DISABLED
        )
        self.play_button.configure(
            text="Stop Playing" if state.is_playing else "Play",
            fg=AppStyle.PLAY if state.is_playing else AppStyle.TEXT,
            state=tk.NORMAL if state.has_audio and not state.is_recording else tk.DISABLED,
        )
        self.download_button.configure(
            state=tk.NORMAL if state.has_audio and not busy else tk.DISABLED
        )
        self.duration_label.configure(
            text=f"Duration: {state.duration:.2f}s" if state.has_audio else ""
        )

    # ------------------------------------------------------------------
    # Commands

    def _on_record(self) -> None:
        if self._pending is not None and not self._pending.done():
            return
        self._pending = asyncio.get_running_loop().create_task(self._toggle_record())

    async def _toggle_record(self) -> None:
        try:
            await self.controller.toggle_record()
        except EchoReverseError as e:
            messagebox.showerror("Recording Error", str(e))

    def _on_reverse(self) -> None:
        self.controller.reverse()

    def _on_play(self) -> None:
        try:
            self.controller.toggle_play()
        except EchoReverseError as e:
            messagebox.showerror("Playback Error", str(e))

    def _on_download(self) -> None:
        path = filedialog.asksaveasfilename(
            defaultextension=".wav",
            initialfile=self.controller.download_name,
            filetypes=[("WAV audio", "*.wav")],
        )
        if not path:
            return
        try:
            self.controller.download(path)
        except (EchoReverseError, OSError) as e:
            messagebox.showerror("Download Error", f"Failed to save: {e}")

    # ------------------------------------------------------------------
    # Rendering

    def _on_resize(self, event: tk.Event) -> None:
        if event.width < 2 or event.height < 2:
            return
        pixel_ratio = self._pixel_ratio()
        self.surface.resize(event.width / pixel_ratio, event.height / pixel_ratio, pixel_ratio)
        self._new_photo()

    def _new_photo(self) -> None:
        self._photo = ImageTk.PhotoImage(self.surface.image)
        self.canvas_label.configure(image=self._photo)

    def _present(self, surface: PillowSurface) -> None:
        if self._photo is None or (self._photo.width(), self._photo.height()) != surface.pixel_size:
            self._new_photo()
            return
        self._photo.paste(surface.image)

    def close(self) -> None:
        if not self.running:
            return
        self.running = False
        self.render_loop.cancel()
        self._unsubscribe()
        self.controller.shutdown()
        self.root.destroy()


async def run_app(config: Dict[str, Any]) -> None:
    """Pump Tk from the event loop until the window closes."""
    loop = asyncio.get_running_loop()
    root = tk.Tk()
    try:
        controller = create_audio_controller(config, loop)
    except EchoReverseError as e:
        messagebox.showerror("Initialization Error", f"Failed to open audio devices: {e}")
        root.destroy()
        return

    app = EchoReverseApp(root, controller, config)
    interval = 1.0 / config.get("visualization", {}).get("frame_rate", 60)
    try:
        while app.running:
            root.update()
            await asyncio.sleep(interval)
    except tk.TclError:
        # Window destroyed outside close()
        logger.debug("Tk root gone, exiting")
    finally:
        if app.running:
            app.running = False
            app.render_loop.cancel()
            controller.shutdown()


def main(config: Optional[Dict[str, Any]] = None) -> None:
    """Main entry point for the GUI."""
    if config is None:
        config = load_config()
        setup_logging_from_config(config)
    asyncio.run(run_app(config))


if __name__ == "__main__":
    main()
