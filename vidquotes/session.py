"""
Vid Quotes - Studio Session
The live editing session: current design, undo history, blob and particle
populations, quotes, render queue, preview playback and exports.

Every design edit goes through update_design(), which swaps in the new dict and
rebuilds the blob set or particle population only when the fields they depend on
changed. The compositor is never run concurrently: preview frames, exports and
batch jobs all draw under one lock, and the preview is suspended while a
recording or batch is in progress.
"""

import os
import time
import random
import threading
import logging
from typing import Callable, Optional

from vidquotes import design as dz
from vidquotes.assets import ImageRepository, decode_data_url, decode_image, read_quotes_file
from vidquotes.audio import DecodedSegment, PreviewAudioPlayer, probe_duration
from vidquotes.batch import BatchScheduler
from vidquotes.capture import CapturePipeline
from vidquotes.compositor import FrameCompositor
from vidquotes.errors import DecodeError, InputError
from vidquotes.genai import generate_image
from vidquotes.history import DesignHistory
from vidquotes.jobs import QuoteList, RenderQueue
from vidquotes.motion import generate_blobs
from vidquotes.typography import FontRegistry
from vidquotes.weather import WeatherSystem

logger = logging.getLogger(__name__)


class Studio:
    """One editing session. The UI owns exactly one of these."""

    def __init__(self, output_dir: Optional[str] = None,
                 compositor: Optional[FrameCompositor] = None,
                 pipeline: Optional[CapturePipeline] = None,
                 rng: Optional[random.Random] = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep,
                 image_generator=generate_image,
                 probe=probe_duration,
                 segment_factory=DecodedSegment):
        self._rng = rng or random.Random()
        self._clock = clock
        self._image_generator = image_generator
        self._probe = probe
        self._segment_factory = segment_factory

        self.fonts = FontRegistry()
        self.compositor = compositor or FrameCompositor(self.fonts)
        self.pipeline = pipeline or CapturePipeline(self.compositor, output_dir=output_dir)
        self.weather = WeatherSystem(self._rng)
        self.audio_player = PreviewAudioPlayer(clock)

        self.quotes = QuoteList()
        self.render_queue = RenderQueue()
        self.image_repo = ImageRepository()
        self.scheduler = BatchScheduler(
            self.render_queue, self.quotes,
            apply_design=self._apply_job_design,
            record=self._record_job,
            restore_preview=self.play,
            sleep=sleep,
        )

        self._design = dz.new_design()
        self.history = DesignHistory(self._design)
        self.active_layer_id = self._design["text_layers"][0]["id"]
        self.blobs = []
        self._blob_sig = None
        self._weather_sig = None
        self._audio_sig = None

        self._draw_lock = threading.Lock()
        self._generate_lock = threading.Lock()
        self.is_generating = False
        self.on_progress: Optional[Callable[[float], None]] = None

        self.is_playing = False
        self._play_started = None
        self._paused_elapsed = 0.0

        self._sync_populations()

    # ═══════════════════════════════════════════════════════════════════════════
    # STATE
    # ═══════════════════════════════════════════════════════════════════════════

    @property
    def design(self) -> dict:
        return self._design

    @property
    def is_recording(self) -> bool:
        return self.pipeline.is_recording

    @property
    def is_batch_processing(self) -> bool:
        return self.scheduler.is_running

    @property
    def preview_active(self) -> bool:
        """The preview driver owns the canvas only while playing and not exporting."""
        return self.is_playing and not self.is_recording and not self.is_batch_processing

    @property
    def is_busy(self) -> bool:
        return self.is_recording or self.is_batch_processing

    def update_design(self, new_design: dict, commit: bool = False):
        self._design = new_design
        self._sync_populations()
        self._sync_audio()
        if commit:
            self.history.push(new_design)

    def commit(self):
        """Record the current design as an undo step (end of a slider drag, text edit...)."""
        self.history.push(self._design)

    def undo(self) -> bool:
        if self.is_busy:
            return False
        restored = self.history.undo()
        if restored is None:
            return False
        self.update_design(restored)
        return True

    def redo(self) -> bool:
        if self.is_busy:
            return False
        restored = self.history.redo()
        if restored is None:
            return False
        self.update_design(restored)
        return True

    # ── Change detection ──

    def _sync_populations(self, force: bool = False):
        d = self._design
        width, height = dz.canvas_size(d)

        blob_sig = dz.blob_signature(d)
        if force or blob_sig != self._blob_sig:
            self.blobs = generate_blobs(d["colors"], width, height, self._rng)
            self._blob_sig = blob_sig

        weather_sig = dz.weather_signature(d)
        if force or weather_sig != self._weather_sig:
            self.weather.regenerate(d["weather_type"], d["weather_density"],
                                    width, height, d["colors"])
            self._weather_sig = weather_sig

    def regenerate_positions(self):
        """New random blobs for the current palette and canvas."""
        d = self._design
        width, height = dz.canvas_size(d)
        self.blobs = generate_blobs(d["colors"], width, height, self._rng)
        self._blob_sig = dz.blob_signature(d)

    def _sync_audio(self):
        d = self._design
        sig = (d["audio"], d["audio_start"], d["audio_end"]) if d["audio"] else None
        if sig == self._audio_sig:
            return
        self._audio_sig = sig
        if sig is None:
            self.audio_player.unload()
            return

        source, start, end = sig
        try:
            segment = self._segment_factory(source, start, end).decode()
        except DecodeError as e:
            logger.warning("Preview audio unavailable: %s", e)
            segment = None
        self.audio_player.load(segment, start, end)
        if self.preview_active:
            self.audio_player.play()

    # ═══════════════════════════════════════════════════════════════════════════
    # PREVIEW
    # ═══════════════════════════════════════════════════════════════════════════

    def play(self):
        if not self.is_playing:
            self._play_started = self._clock()
            self.is_playing = True
        if self.preview_active:
            self.audio_player.play()

    def pause(self):
        if self.is_playing:
            self._paused_elapsed += self._clock() - self._play_started
            self.is_playing = False
        self.audio_player.pause()

    def stop(self):
        self.pause()
        self.audio_player.stop()

    def toggle_play(self):
        if self.is_playing:
            self.pause()
        else:
            self.play()

    def preview_elapsed_ms(self) -> float:
        elapsed = self._paused_elapsed
        if self.is_playing and self._play_started is not None:
            elapsed += self._clock() - self._play_started
        return elapsed * 1000.0

    def render_preview(self, elapsed_ms: Optional[float] = None):
        """
        Render a preview frame, or None when a capture owns the canvas or a frame
        is already being drawn.
        """
        if self.is_busy:
            return None
        if not self._draw_lock.acquire(blocking=False):
            return None
        try:
            if elapsed_ms is None:
                elapsed_ms = self.preview_elapsed_ms()
            return self.compositor.render(self._design, self.blobs, self.weather, elapsed_ms)
        finally:
            self._draw_lock.release()

    # ═══════════════════════════════════════════════════════════════════════════
    # DESIGN EDITS
    # ═══════════════════════════════════════════════════════════════════════════

    def set_fields(self, commit: bool = False, **changes):
        self.update_design(dz.with_changes(self._design, **changes), commit=commit)

    def add_color(self):
        self.update_design(dz.add_color(self._design), commit=True)

    def remove_color(self, index: int):
        self.update_design(dz.remove_color(self._design, index), commit=True)

    def set_color(self, index: int, color: str, commit: bool = False):
        self.update_design(dz.set_color(self._design, index, color), commit=commit)

    def cycle_aspect_ratio(self):
        self.update_design(dz.cycle_aspect_ratio(self._design), commit=True)

    # ── Text layers ──

    @property
    def active_layer(self) -> dict:
        return dz.get_layer(self._design, self.active_layer_id)

    def select_layer(self, layer_id: str):
        self.active_layer_id = dz.get_layer(self._design, layer_id)["id"]

    def update_active_layer(self, commit: bool = False, **changes):
        layer_id = self.active_layer["id"]
        self.update_design(dz.update_layer(self._design, layer_id, **changes), commit=commit)

    def add_text_layer(self) -> str:
        new_design, layer_id = dz.add_text_layer(self._design)
        self.update_design(new_design, commit=True)
        self.active_layer_id = layer_id
        return layer_id

    def remove_text_layer(self, layer_id: str):
        new_design, active_id = dz.remove_text_layer(self._design, layer_id)
        if new_design is self._design:
            return
        self.update_design(new_design, commit=True)
        self.active_layer_id = active_id

    # ── Media ──

    def load_background(self, path: str):
        image = decode_image(path)
        self.update_design(dz.set_background_image(self._design, image), commit=True)

    def load_logo(self, path: str):
        image = decode_image(path)
        self.update_design(dz.set_logo(self._design, image), commit=True)

    def update_logo(self, commit: bool = False, **changes):
        self.update_design(dz.update_logo(self._design, **changes), commit=commit)

    def remove_logo(self):
        self.update_design(dz.remove_logo(self._design), commit=True)

    def load_audio(self, path: str):
        duration = self._probe(path)
        name = os.path.basename(path)
        self.update_design(dz.set_audio(self._design, path, name, duration), commit=True)
        logger.info("Audio '%s' attached (%.2fs)", name, duration)

    def set_audio_trim(self, start: float, end: float, commit: bool = True):
        self.update_design(dz.set_audio_trim(self._design, start, end), commit=commit)

    def remove_audio(self):
        self.update_design(dz.remove_audio(self._design), commit=True)

    def load_font(self, path: str) -> str:
        """Register an uploaded font and switch the active layer to it."""
        name = self.fonts.register(path)
        fonts = [f for f in self._design["custom_fonts"] if f["name"] != name]
        fonts.append({"name": name, "path": path})
        with_font = dz.with_changes(self._design, custom_fonts=fonts)
        with_font = dz.update_layer(with_font, self.active_layer["id"], font_family=name)
        self.update_design(with_font, commit=True)
        return name

    # ═══════════════════════════════════════════════════════════════════════════
    # QUOTES
    # ═══════════════════════════════════════════════════════════════════════════

    def load_quotes(self, path: str) -> int:
        """Append every quote in a text file. Returns the new queue length."""
        return self.quotes.extend(read_quotes_file(path))

    def load_next_quote(self) -> bool:
        """Put the first pending quote into the active layer. It stays queued until exported."""
        return self.load_quote_from_queue(0)

    def load_quote_from_queue(self, index: int) -> bool:
        quote = self.quotes.get(index)
        if quote is None:
            return False
        self.update_active_layer(text=quote, commit=True)
        return True

    # ═══════════════════════════════════════════════════════════════════════════
    # AI BACKGROUNDS
    # ═══════════════════════════════════════════════════════════════════════════

    def _generate(self, prompt: str, api_key: str) -> str:
        if not prompt or not prompt.strip():
            raise InputError("Please enter a description first.")
        with self._generate_lock:
            if self.is_generating:
                raise InputError("An image is already being generated")
            self.is_generating = True
        try:
            return self._image_generator(prompt, api_key)
        finally:
            self.is_generating = False

    def generate_to_repository(self, prompt: str, api_key: str) -> dict:
        src = self._generate(prompt, api_key)
        return self.image_repo.add(src, prompt.strip())

    def generate_and_apply(self, prompt: str, api_key: str):
        src = self._generate(prompt, api_key)
        self.update_design(dz.set_background_image(self._design, decode_data_url(src)),
                           commit=True)

    def apply_repository_image(self, entry_id: str):
        entry = self.image_repo.get(entry_id)
        if entry is None:
            raise InputError("Image not found in repository")
        self.update_design(
            dz.set_background_image(self._design, decode_data_url(entry["src"])), commit=True
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # EXPORT
    # ═══════════════════════════════════════════════════════════════════════════

    def _record(self, suffix: Optional[str], progress_callback=None) -> str:
        with self._draw_lock:
            return self.pipeline.record(
                self._design, self.blobs, self.weather, suffix=suffix,
                progress_callback=progress_callback or self.on_progress,
            )

    def export(self, progress_callback: Optional[Callable[[float], None]] = None) -> str:
        """
        Record the live design once. On success the first pending quote matching
        the active layer's text is removed. Preview resumes either way.
        """
        if self.is_busy:
            raise InputError("An export is already running")
        dz.validate_design(self._design)
        self.pause()
        try:
            path = self._record(None, progress_callback)
        finally:
            self.play()
        self.quotes.remove_matching(self.active_layer["text"])
        return path

    # ── Queue & batch ──

    def add_to_queue(self) -> dict:
        dz.validate_design(self._design)
        return self.render_queue.add(self._design)

    def remove_job(self, job_id: str):
        self.render_queue.remove(job_id)

    def clear_queue(self):
        self.render_queue.clear()

    def _apply_job_design(self, job_design: dict):
        self.update_design(job_design)

    def _record_job(self, suffix: str) -> str:
        return self._record(suffix)

    def start_batch(self, status_callback: Optional[Callable[[str], None]] = None) -> dict:
        """Export every pending job. Blocks; run it off the UI thread."""
        if self.is_busy:
            raise InputError("An export is already running")
        if not self.render_queue.pending():
            raise InputError("No pending jobs in queue.")
        self.scheduler.status_callback = status_callback
        self.pause()
        return self.scheduler.run()

    def stop_batch(self):
        self.scheduler.stop()
