"""
Vid Quotes - Studio UI
Design controls (visuals, text, logo, music, weather), live preview and single export.

Features:
    - Blob palette with 2-8 colors, blend mode, blur, speed and loop duration
    - Color or image background with opacity
    - Multiple text layers with per-layer font, size, alignment, color and shadow
    - Logo overlay, looping audio with trim, weather particles
    - Live animated preview, undo/redo, aspect ratio switching
"""

import os
import time
import threading
import logging

import customtkinter as ctk
from tkinter import filedialog, messagebox, colorchooser
from PIL import Image, ImageTk

from ui.theme import COLORS, PANEL, PREVIEW_MAX, fit_frame, format_seconds, parse_dropped_files
from vidquotes.assets import AUDIO_EXTENSIONS, IMAGE_EXTENSIONS
from vidquotes.design import (
    ASPECT_RATIOS, BLEND_MODES, MAX_COLORS, MIN_COLORS, TEXT_ALIGNS, WEATHER_TYPES,
)
from vidquotes.errors import DecodeError, InputError, VidQuotesError
from vidquotes.typography import FONT_EXTENSIONS

logger = logging.getLogger(__name__)

try:
    from tkinterdnd2 import DND_FILES
    HAS_DND = True
except ImportError:
    HAS_DND = False

BUILTIN_FONTS = ["Poppins", "Lobster", "Playwrite NO", "Inter", "Montserrat", "Arial"]
FONT_WEIGHTS = ["300", "400", "600", "700", "800", "900"]

# Preview cadence
PREVIEW_FPS = 30
IDLE_DELAY_MS = 100
ERROR_DELAY_MS = 66


class StudioMixin:
    """Mixin that adds the design sidebar, the preview area and single export."""

    # ═══════════════════════════════════════════════════════════════════════════
    # PAGE BUILDER
    # ═══════════════════════════════════════════════════════════════════════════

    def _build_studio_page(self, parent):
        self.st_page_frame = ctk.CTkFrame(parent, fg_color="transparent")
        self.st_page_frame.pack(fill="both", expand=True)
        self.st_page_frame.grid_columnconfigure(0, weight=0, minsize=360)
        self.st_page_frame.grid_columnconfigure(1, weight=1)
        self.st_page_frame.grid_rowconfigure(0, weight=1)

        # ── State (must be initialized BEFORE sidebar build) ──
        self._st_refreshers = []
        self._st_preview_running = False
        self._st_preview_photo = None
        self._st_disable_on_busy = []

        sidebar = ctk.CTkFrame(
            self.st_page_frame, fg_color=PANEL["sidebar_bg"], width=360, corner_radius=0
        )
        sidebar.grid(row=0, column=0, sticky="nsew")
        sidebar.grid_propagate(False)

        self.st_tabs = ctk.CTkTabview(
            sidebar, fg_color="transparent",
            segmented_button_selected_color=COLORS["accent_blue"],
            segmented_button_unselected_color=COLORS["bg_input"],
        )
        self.st_tabs.pack(fill="both", expand=True, padx=6, pady=6)
        for name, builder in (
            ("Visuals", self._build_st_visuals),
            ("Text", self._build_st_text),
            ("Logo", self._build_st_logo),
            ("Music", self._build_st_music),
            ("Weather", self._build_st_weather),
        ):
            tab = self.st_tabs.add(name)
            scroll = ctk.CTkScrollableFrame(
                tab, fg_color="transparent",
                scrollbar_button_color=COLORS["accent_blue"],
                scrollbar_button_hover_color=COLORS["neon_blue"],
            )
            scroll.pack(fill="both", expand=True)
            builder(scroll)

        # Quotes / Queue / AI tabs come from QueueMixin
        self._build_queue_tabs(self.st_tabs)

        content = ctk.CTkFrame(self.st_page_frame, fg_color="transparent")
        content.grid(row=0, column=1, sticky="nsew", padx=12, pady=12)
        content.grid_rowconfigure(0, weight=0)   # Toolbar
        content.grid_rowconfigure(1, weight=1)   # Preview
        content.grid_rowconfigure(2, weight=0)   # Progress
        content.grid_columnconfigure(0, weight=1)
        self._build_st_toolbar(content)
        self._build_st_preview(content)
        self._build_st_progress(content)

        self._st_refresh_controls()
        self.studio.play()
        self.after(100, self._st_start_preview_loop)

    # ═══════════════════════════════════════════════════════════════════════════
    # WIDGET HELPERS
    # ═══════════════════════════════════════════════════════════════════════════

    def _st_lbl(self, parent, text):
        ctk.CTkLabel(
            parent, text=text,
            font=ctk.CTkFont(size=11, weight="bold"), text_color=COLORS["text_primary"]
        ).pack(pady=(6, 3), anchor="w")

    def _st_sep(self, parent):
        ctk.CTkFrame(parent, height=1, fg_color=PANEL["divider"]).pack(fill="x", pady=(4, 8))

    def _st_button(self, parent, text, command, color=None, **pack):
        btn = ctk.CTkButton(
            parent, text=text, command=command, height=30, corner_radius=6,
            fg_color=color or COLORS["bg_input"], hover_color=COLORS["bg_card_hover"],
            font=ctk.CTkFont(size=11, weight="bold"),
        )
        btn.pack(**(pack or {"fill": "x", "pady": (0, 4)}))
        self._st_disable_on_busy.append(btn)
        return btn

    def _st_read(self, scope: str, key: str):
        if scope == "layer":
            return self.studio.active_layer.get(key)
        if scope == "logo":
            return (self.studio.design["logo"] or {}).get(key)
        return self.studio.design.get(key)

    def _st_write(self, scope: str, key: str, value, commit: bool = False):
        if scope == "layer":
            self.studio.update_active_layer(commit=commit, **{key: value})
        elif scope == "logo":
            self.studio.update_logo(commit=commit, **{key: value})
        else:
            self.studio.set_fields(commit=commit, **{key: value})
        self._st_after_edit()

    def _st_slider(self, parent, label, key, from_, to, step, scope="design", fmt="{:.2f}"):
        """Labeled slider bound to a design, active-layer or logo field."""
        cast = int if float(step).is_integer() and float(from_).is_integer() else float
        steps = max(1, int(round((to - from_) / step)))

        row = ctk.CTkFrame(parent, fg_color="transparent")
        row.pack(fill="x")
        ctk.CTkLabel(row, text=label, font=ctk.CTkFont(size=10),
                     text_color=COLORS["text_secondary"]).pack(side="left")
        value_lbl = ctk.CTkLabel(row, text="", font=ctk.CTkFont(size=10),
                                 text_color=COLORS["text_muted"])
        value_lbl.pack(side="right")

        def on_change(v):
            value = cast(round(v / step) * step) if cast is int else round(v, 4)
            value_lbl.configure(text=fmt.format(value))
            self._st_write(scope, key, value)

        slider = ctk.CTkSlider(
            parent, from_=from_, to=to, number_of_steps=steps, command=on_change,
            button_color=COLORS["accent_blue"], progress_color=COLORS["accent_blue"],
        )
        slider.pack(fill="x", pady=(0, 8))
        slider.bind("<ButtonRelease-1>", lambda e: self.studio.commit())
        self._st_disable_on_busy.append(slider)

        def refresh():
            value = self._st_read(scope, key)
            if value is None:
                return
            slider.set(value)
            value_lbl.configure(text=fmt.format(value))

        self._st_refreshers.append(refresh)
        return slider

    def _st_option(self, parent, values, scope, key, labels=None):
        labels = labels or values
        var = ctk.StringVar(value=labels[0])

        def on_select(choice):
            self._st_write(scope, key, values[labels.index(choice)], commit=True)

        menu = ctk.CTkOptionMenu(
            parent, values=list(labels), variable=var, command=on_select,
            fg_color=COLORS["bg_input"], button_color=COLORS["accent_blue"],
            button_hover_color=COLORS["neon_blue"], dropdown_fg_color=COLORS["bg_card"],
            font=ctk.CTkFont(size=11), height=30, corner_radius=6,
        )
        menu.pack(fill="x", pady=(0, 8))
        self._st_disable_on_busy.append(menu)

        def refresh():
            value = self._st_read(scope, key)
            if value in values:
                var.set(labels[values.index(value)])

        self._st_refreshers.append(refresh)
        return menu

    # ═══════════════════════════════════════════════════════════════════════════
    # SIDEBAR TABS
    # ═══════════════════════════════════════════════════════════════════════════

    def _build_st_visuals(self, parent):
        self._st_lbl(parent, "🎨  Palette")
        self._st_palette_frame = ctk.CTkFrame(parent, fg_color="transparent")
        self._st_palette_frame.pack(fill="x", pady=(0, 4))
        self._st_refreshers.append(self._st_rebuild_palette)

        self._st_sep(parent)
        self._st_lbl(parent, "🌀  Motion")
        self._st_slider(parent, "Speed", "speed", 0.1, 4.0, 0.1, fmt="{:.1f}x")
        self._st_slider(parent, "Duration", "duration", 5, 90, 1, fmt="{}s")
        self._st_slider(parent, "Blur", "blur_level", 0, 300, 10, fmt="{}px")
        self._st_slider(parent, "Blob Opacity", "blob_opacity", 0, 1, 0.05)
        self._st_lbl(parent, "Blend Mode")
        self._st_option(parent, BLEND_MODES, "design", "blend_mode")

        self._st_sep(parent)
        self._st_lbl(parent, "🖼️  Background")
        self._st_option(parent, ["color", "image"], "design", "bg_type",
                        labels=["Solid Color", "Image"])
        self._st_bg_color_btn = self._st_button(
            parent, "Background Color", lambda: self._st_pick_design_color("bg_color"))
        self._st_button(parent, "📂 Upload Background Image", self._st_upload_background)
        self._st_slider(parent, "Background Opacity", "bg_opacity", 0, 1, 0.05)

    def _build_st_text(self, parent):
        self._st_lbl(parent, "📝  Layers")
        self._st_layers_frame = ctk.CTkFrame(parent, fg_color="transparent")
        self._st_layers_frame.pack(fill="x")
        self._st_refreshers.append(self._st_rebuild_layers)
        self._st_button(parent, "＋ Add Text Layer", self._st_add_layer)

        self._st_sep(parent)
        self._st_lbl(parent, "Content")
        self._st_text_box = ctk.CTkTextbox(
            parent, height=110, fg_color=COLORS["bg_input"],
            font=ctk.CTkFont(size=12), wrap="word",
        )
        self._st_text_box.pack(fill="x", pady=(0, 8))
        self._st_text_box.bind("<KeyRelease>", self._st_on_text_typed)
        self._st_text_box.bind("<FocusOut>", lambda e: self.studio.commit())
        self._st_refreshers.append(self._st_refresh_text_box)

        self._st_lbl(parent, "Font")
        self._st_font_menu = ctk.CTkOptionMenu(
            parent, values=list(BUILTIN_FONTS),
            command=lambda choice: self._st_write("layer", "font_family", choice, commit=True),
            fg_color=COLORS["bg_input"], button_color=COLORS["accent_blue"],
            button_hover_color=COLORS["neon_blue"], dropdown_fg_color=COLORS["bg_card"],
            font=ctk.CTkFont(size=11), height=30, corner_radius=6,
        )
        self._st_font_menu.pack(fill="x", pady=(0, 8))
        self._st_disable_on_busy.append(self._st_font_menu)
        self._st_refreshers.append(self._st_refresh_font_menu)
        self._st_button(parent, "📂 Upload Font (.ttf / .otf / .woff)", self._st_upload_font)
        self._st_option(parent, FONT_WEIGHTS, "layer", "font_weight")
        self._st_option(parent, ["normal", "italic"], "layer", "font_style",
                        labels=["Regular", "Italic"])
        self._st_option(parent, TEXT_ALIGNS, "layer", "text_align",
                        labels=["Left", "Center", "Right"])
        self._st_slider(parent, "Size", "font_size", 20, 400, 1, scope="layer", fmt="{}px")
        self._st_slider(parent, "Position X", "x", 0, 1, 0.01, scope="layer")
        self._st_slider(parent, "Position Y", "y", 0, 1, 0.01, scope="layer")
        self._st_slider(parent, "Opacity", "opacity", 0, 1, 0.1, scope="layer", fmt="{:.1f}")

        self._st_button(parent, "Text Color", lambda: self._st_pick_layer_color())
        self._st_shadow_var = ctk.BooleanVar(value=True)
        shadow = ctk.CTkSwitch(
            parent, text="Drop Shadow", variable=self._st_shadow_var,
            command=lambda: self._st_write("layer", "text_shadow",
                                           bool(self._st_shadow_var.get()), commit=True),
            progress_color=COLORS["accent_blue"], font=ctk.CTkFont(size=11),
        )
        shadow.pack(anchor="w", pady=(4, 8))
        self._st_disable_on_busy.append(shadow)
        self._st_refreshers.append(
            lambda: self._st_shadow_var.set(bool(self.studio.active_layer["text_shadow"])))

    def _build_st_logo(self, parent):
        self._st_lbl(parent, "🏷️  Logo")
        self._st_button(parent, "📂 Upload Logo", self._st_upload_logo)
        self._st_button(parent, "🗑 Remove Logo", self._st_remove_logo)
        self._st_slider(parent, "Position X", "x", 0, 1, 0.01, scope="logo")
        self._st_slider(parent, "Position Y", "y", 0, 1, 0.01, scope="logo")
        self._st_slider(parent, "Size", "size", 0.05, 1, 0.01, scope="logo")
        self._st_slider(parent, "Opacity", "opacity", 0, 1, 0.05, scope="logo")

    def _build_st_music(self, parent):
        self._st_lbl(parent, "🎵  Background Music")
        self._st_audio_label = ctk.CTkLabel(
            parent, text="No audio", font=ctk.CTkFont(size=10),
            text_color=COLORS["text_muted"], wraplength=300, justify="left",
        )
        self._st_audio_label.pack(anchor="w", pady=(0, 6))
        self._st_button(parent, "📂 Upload Audio", self._st_upload_audio)
        self._st_button(parent, "🗑 Remove Audio", self._st_remove_audio)

        self._st_sep(parent)
        self._st_lbl(parent, "✂️  Trim")
        self._st_trim_start = self._st_trim_slider(parent, "Start", "audio_start")
        self._st_trim_end = self._st_trim_slider(parent, "End", "audio_end")
        self._st_refreshers.append(self._st_refresh_audio)

    def _st_trim_slider(self, parent, label, key):
        row = ctk.CTkFrame(parent, fg_color="transparent")
        row.pack(fill="x")
        ctk.CTkLabel(row, text=label, font=ctk.CTkFont(size=10),
                     text_color=COLORS["text_secondary"]).pack(side="left")
        value_lbl = ctk.CTkLabel(row, text="0:00.00", font=ctk.CTkFont(size=10),
                                 text_color=COLORS["text_muted"])
        value_lbl.pack(side="right")
        slider = ctk.CTkSlider(parent, from_=0, to=1, command=lambda v: value_lbl.configure(
            text=format_seconds(v)))
        slider.pack(fill="x", pady=(0, 8))
        slider.bind("<ButtonRelease-1>", lambda e: self._st_apply_trim())
        slider.value_label = value_lbl
        self._st_disable_on_busy.append(slider)
        return slider

    def _build_st_weather(self, parent):
        self._st_lbl(parent, "🌦️  Weather")
        self._st_option(parent, WEATHER_TYPES, "design", "weather_type",
                        labels=["None", "Snow", "Rain", "Confetti"])
        self._st_slider(parent, "Density", "weather_density", 10, 100, 1, fmt="{}")
        self._st_slider(parent, "Scale", "weather_scale", 0.2, 3.0, 0.1, fmt="{:.1f}")
        self._st_slider(parent, "Speed", "weather_speed", 0.1, 5.0, 0.1, fmt="{:.1f}")
        self._st_slider(parent, "Angle", "weather_angle", -45, 45, 1, fmt="{}°")
        self._st_slider(parent, "Wobble", "weather_wobble", 0, 5.0, 0.1, fmt="{:.1f}")
        self._st_slider(parent, "Opacity", "weather_opacity", 0, 1.5, 0.1, fmt="{:.1f}")

    # ═══════════════════════════════════════════════════════════════════════════
    # TOOLBAR, PREVIEW, PROGRESS
    # ═══════════════════════════════════════════════════════════════════════════

    def _build_st_toolbar(self, parent):
        bar = ctk.CTkFrame(parent, fg_color=PANEL["card_bg"], corner_radius=10)
        bar.grid(row=0, column=0, sticky="ew", padx=4, pady=(0, 8))
        pack = {"side": "left", "padx": 4, "pady": 8}

        self._st_undo_btn = self._st_button(bar, "↶ Undo", self._st_undo, **pack)
        self._st_redo_btn = self._st_button(bar, "↷ Redo", self._st_redo, **pack)
        self._st_play_btn = self._st_button(bar, "⏸ Pause", self._st_toggle_play, **pack)
        self._st_button(bar, "⏹ Stop", self._st_stop, **pack)
        self._st_aspect_btn = self._st_button(bar, "", self._st_cycle_aspect, **pack)
        self._st_button(bar, "🔀 Shuffle Blobs", self._st_regenerate, **pack)

        right = {"side": "right", "padx": 4, "pady": 8}
        self._st_export_btn = self._st_button(
            bar, "🎬 Export Video", self._st_export, color=COLORS["accent_pink"], **right)
        self._st_button(bar, "➕ Add to Queue", self._qu_add_to_queue,
                        color=COLORS["accent_purple"], **right)
        self._st_next_quote_btn = self._st_button(bar, "➡ Next Quote", self._qu_next_quote, **right)

    def _build_st_preview(self, parent):
        container = ctk.CTkFrame(
            parent, fg_color=PANEL["preview_bg"], corner_radius=12,
            border_width=2, border_color=COLORS["border"],
        )
        container.grid(row=1, column=0, sticky="nsew", padx=4, pady=(0, 8))
        container.grid_rowconfigure(1, weight=1)
        container.grid_columnconfigure(0, weight=1)

        hdr = ctk.CTkFrame(container, fg_color="transparent")
        hdr.grid(row=0, column=0, sticky="ew", padx=16, pady=(12, 4))
        ctk.CTkLabel(hdr, text="🖥️  Live Preview", font=ctk.CTkFont(size=14, weight="bold"),
                     text_color=COLORS["text_primary"]).pack(side="left")
        self._st_fps_label = ctk.CTkLabel(hdr, text="", font=ctk.CTkFont(size=10),
                                          text_color=COLORS["text_muted"])
        self._st_fps_label.pack(side="right")

        self._st_preview_label = ctk.CTkLabel(container, text="", fg_color=PANEL["preview_bg"])
        self._st_preview_label.grid(row=1, column=0, sticky="nsew", padx=16, pady=(4, 16))

        if HAS_DND:
            try:
                self._st_preview_label.drop_target_register(DND_FILES)
                self._st_preview_label.dnd_bind('<<Drop>>', self._st_on_drop)
            except Exception as e:
                logger.debug("Drag & drop unavailable: %s", e)

    def _build_st_progress(self, parent):
        frame = ctk.CTkFrame(parent, fg_color=PANEL["card_bg"], corner_radius=12,
                             border_width=1, border_color=PANEL["divider"], height=80)
        frame.grid(row=2, column=0, sticky="ew", padx=4)
        frame.pack_propagate(False)
        inner = ctk.CTkFrame(frame, fg_color="transparent")
        inner.pack(fill="both", expand=True, padx=16, pady=10)

        self._st_status = ctk.CTkLabel(inner, text="Ready", font=ctk.CTkFont(size=12, weight="bold"),
                                       text_color=COLORS["text_secondary"])
        self._st_status.pack(anchor="w")
        row = ctk.CTkFrame(inner, fg_color="transparent")
        row.pack(fill="x", pady=(4, 0))
        self._st_progress_bar = ctk.CTkProgressBar(
            row, height=12, progress_color=COLORS["accent_blue"],
            fg_color=COLORS["bg_input"], corner_radius=6,
        )
        self._st_progress_bar.set(0)
        self._st_progress_bar.pack(side="left", fill="x", expand=True, padx=(0, 12))
        self._st_progress_pct = ctk.CTkLabel(row, text="0%", width=50,
                                             font=ctk.CTkFont(size=12, weight="bold"),
                                             text_color=COLORS["text_secondary"])
        self._st_progress_pct.pack(side="left")

    # ═══════════════════════════════════════════════════════════════════════════
    # REFRESH
    # ═══════════════════════════════════════════════════════════════════════════

    def _st_refresh_controls(self):
        """Push the session's design into every widget (after undo, redo, batch...)."""
        for refresh in self._st_refreshers:
            try:
                refresh()
            except Exception as e:
                logger.debug("Control refresh failed: %s", e)
        design = self.studio.design
        dims = ASPECT_RATIOS[design["aspect_ratio"]]
        self._st_aspect_btn.configure(text=f"📐 {design['aspect_ratio']} {dims['label']}")
        self._st_bg_color_btn.configure(fg_color=design["bg_color"])
        self._st_play_btn.configure(text="⏸ Pause" if self.studio.is_playing else "▶ Play")
        self._st_undo_btn.configure(state="normal" if self.studio.history.can_undo else "disabled")
        self._st_redo_btn.configure(state="normal" if self.studio.history.can_redo else "disabled")
        self._qu_refresh()

    def _st_set_busy(self, busy: bool):
        state = "disabled" if busy else "normal"
        for widget in self._st_disable_on_busy:
            try:
                widget.configure(state=state)
            except Exception:
                continue
        if not busy:
            self._st_refresh_controls()

    def _st_after_edit(self):
        """Show edits right away while paused; the preview loop handles the playing case."""
        if not self.studio.is_playing:
            self._st_draw_frame()

    def _st_rebuild_palette(self):
        for child in self._st_palette_frame.winfo_children():
            child.destroy()
        colors = self.studio.design["colors"]
        for i, color in enumerate(colors):
            cell = ctk.CTkFrame(self._st_palette_frame, fg_color="transparent")
            cell.grid(row=i // 4, column=i % 4, padx=3, pady=3)
            ctk.CTkButton(
                cell, text="", width=56, height=32, corner_radius=6,
                fg_color=color, hover_color=color, border_width=1,
                border_color=PANEL["swatch_border"],
                command=lambda idx=i: self._st_pick_palette_color(idx),
            ).pack()
            if len(colors) > MIN_COLORS:
                ctk.CTkButton(
                    cell, text="✕", width=56, height=16, corner_radius=4,
                    fg_color="transparent", hover_color=COLORS["bg_card_hover"],
                    font=ctk.CTkFont(size=9), text_color=COLORS["text_muted"],
                    command=lambda idx=i: self._st_remove_color(idx),
                ).pack()
        if len(colors) < MAX_COLORS:
            n = len(colors)
            ctk.CTkButton(
                self._st_palette_frame, text="＋", width=56, height=32, corner_radius=6,
                fg_color=COLORS["bg_input"], hover_color=COLORS["bg_card_hover"],
                command=self._st_add_color,
            ).grid(row=n // 4, column=n % 4, padx=3, pady=3, sticky="n")

    def _st_rebuild_layers(self):
        for child in self._st_layers_frame.winfo_children():
            child.destroy()
        active_id = self.studio.active_layer["id"]
        layers = self.studio.design["text_layers"]
        for layer in layers:
            row = ctk.CTkFrame(self._st_layers_frame, fg_color="transparent")
            row.pack(fill="x", pady=1)
            label = (layer["text"] or "(empty)").replace("\n", " ")[:28]
            ctk.CTkButton(
                row, text=label, anchor="w", height=26, corner_radius=6,
                fg_color=COLORS["accent_blue"] if layer["id"] == active_id else COLORS["bg_input"],
                hover_color=COLORS["bg_card_hover"], font=ctk.CTkFont(size=11),
                command=lambda lid=layer["id"]: self._st_select_layer(lid),
            ).pack(side="left", fill="x", expand=True)
            if len(layers) > 1:
                ctk.CTkButton(
                    row, text="🗑", width=28, height=26, corner_radius=6,
                    fg_color="transparent", hover_color=COLORS["stop_red"],
                    command=lambda lid=layer["id"]: self._st_remove_layer(lid),
                ).pack(side="right", padx=(4, 0))

    def _st_refresh_text_box(self):
        text = self.studio.active_layer["text"]
        if self._st_text_box.get("1.0", "end-1c") != text:
            self._st_text_box.delete("1.0", "end")
            self._st_text_box.insert("1.0", text)

    def _st_refresh_font_menu(self):
        families = BUILTIN_FONTS + [f["name"] for f in self.studio.design["custom_fonts"]
                                    if f["name"] not in BUILTIN_FONTS]
        self._st_font_menu.configure(values=families)
        self._st_font_menu.set(self.studio.active_layer["font_family"])

    def _st_refresh_audio(self):
        design = self.studio.design
        if not design["audio"]:
            self._st_audio_label.configure(text="No audio")
            for slider in (self._st_trim_start, self._st_trim_end):
                slider.configure(from_=0, to=1)
                slider.set(0)
                slider.value_label.configure(text=format_seconds(0))
            return
        total = design["audio_duration"]
        self._st_audio_label.configure(
            text=f"{design['audio_name']}  ({format_seconds(total)})")
        for slider, key in ((self._st_trim_start, "audio_start"), (self._st_trim_end, "audio_end")):
            slider.configure(from_=0, to=total)
            slider.set(design[key])
            slider.value_label.configure(text=format_seconds(design[key]))

    # ═══════════════════════════════════════════════════════════════════════════
    # PREVIEW LOOP
    # ═══════════════════════════════════════════════════════════════════════════

    def _st_start_preview_loop(self):
        """Start the preview animation loop."""
        self._st_preview_running = True
        self._st_update_preview()

    def _st_show(self, frame):
        display_w = self._st_preview_label.winfo_width()
        display_h = self._st_preview_label.winfo_height()
        if display_w < 100 or display_h < 100:
            display_w, display_h = PREVIEW_MAX
        shown = fit_frame(frame, min(display_w, PREVIEW_MAX[0]), min(display_h, PREVIEW_MAX[1]))
        photo = ImageTk.PhotoImage(Image.fromarray(shown))
        self._st_preview_photo = photo  # Keep reference
        self._st_preview_label.configure(image=photo, text="")

    def _st_draw_frame(self):
        frame = self.studio.render_preview()
        if frame is not None:
            self._st_show(frame)

    def _st_update_preview(self):
        """Draw one preview frame and re-arm; idles while paused or exporting."""
        if not self._st_preview_running:
            return
        if not self.studio.preview_active:
            self.after(IDLE_DELAY_MS, self._st_update_preview)
            return

        try:
            t_start = time.time()
            self._st_draw_frame()
            self.studio.audio_player.tick()

            elapsed = time.time() - t_start
            fps_display = 1.0 / elapsed if elapsed > 0 else 0
            self._st_fps_label.configure(text=f"{fps_display:.0f} preview fps")
            delay = max(16, 1000 // PREVIEW_FPS - int(elapsed * 1000))
        except Exception as e:
            logger.debug("Preview error: %s", e)
            delay = ERROR_DELAY_MS

        self.after(delay, self._st_update_preview)

    # ═══════════════════════════════════════════════════════════════════════════
    # ACTIONS
    # ═══════════════════════════════════════════════════════════════════════════

    def _st_undo(self):
        if self.studio.undo():
            self._st_refresh_controls()
            self._st_after_edit()

    def _st_redo(self):
        if self.studio.redo():
            self._st_refresh_controls()
            self._st_after_edit()

    def _st_toggle_play(self):
        self.studio.toggle_play()
        self._st_play_btn.configure(text="⏸ Pause" if self.studio.is_playing else "▶ Play")

    def _st_stop(self):
        self.studio.stop()
        self._st_play_btn.configure(text="▶ Play")

    def _st_cycle_aspect(self):
        self.studio.cycle_aspect_ratio()
        self._st_refresh_controls()
        self._st_after_edit()

    def _st_regenerate(self):
        self.studio.regenerate_positions()
        self._st_after_edit()

    # ── Palette ──

    def _st_pick_palette_color(self, idx: int):
        current = self.studio.design["colors"][idx]
        color = colorchooser.askcolor(initialcolor=current, title=f"Pick Color {idx + 1}")
        if color and color[1]:
            self.studio.set_color(idx, color[1], commit=True)
            self._st_rebuild_palette()
            self._st_after_edit()

    def _st_add_color(self):
        self.studio.add_color()
        self._st_rebuild_palette()
        self._st_after_edit()

    def _st_remove_color(self, idx: int):
        self.studio.remove_color(idx)
        self._st_rebuild_palette()
        self._st_after_edit()

    def _st_pick_design_color(self, key: str):
        color = colorchooser.askcolor(initialcolor=self.studio.design[key])
        if color and color[1]:
            self._st_write("design", key, color[1], commit=True)
            self._st_refresh_controls()

    def _st_pick_layer_color(self):
        color = colorchooser.askcolor(initialcolor=self.studio.active_layer["text_color"])
        if color and color[1]:
            self._st_write("layer", "text_color", color[1], commit=True)

    # ── Text layers ──

    def _st_on_text_typed(self, event=None):
        text = self._st_text_box.get("1.0", "end-1c")
        if text != self.studio.active_layer["text"]:
            self._st_write("layer", "text", text)

    def _st_select_layer(self, layer_id: str):
        self.studio.select_layer(layer_id)
        self._st_refresh_controls()

    def _st_add_layer(self):
        self.studio.add_text_layer()
        self._st_refresh_controls()
        self._st_after_edit()

    def _st_remove_layer(self, layer_id: str):
        self.studio.remove_text_layer(layer_id)
        self._st_refresh_controls()
        self._st_after_edit()

    # ── Uploads ──

    def _st_run_upload(self, action, path: str, title: str):
        """Run one upload action; decode/input problems abort just that upload."""
        try:
            action(path)
        except (DecodeError, InputError) as e:
            messagebox.showerror(title, str(e))
            return False
        self._st_refresh_controls()
        self._st_after_edit()
        return True

    def _st_upload_background(self):
        path = filedialog.askopenfilename(
            title="Select Background Image",
            filetypes=[("Images", " ".join(f"*{e}" for e in IMAGE_EXTENSIONS))])
        if path:
            self._st_run_upload(self.studio.load_background, path, "Background")

    def _st_upload_logo(self):
        path = filedialog.askopenfilename(
            title="Select Logo",
            filetypes=[("Images", " ".join(f"*{e}" for e in IMAGE_EXTENSIONS))])
        if path:
            self._st_run_upload(self.studio.load_logo, path, "Logo")

    def _st_remove_logo(self):
        self.studio.remove_logo()
        self._st_after_edit()

    def _st_upload_font(self):
        path = filedialog.askopenfilename(
            title="Select Font",
            filetypes=[("Fonts", " ".join(f"*{e}" for e in FONT_EXTENSIONS))])
        if path:
            self._st_run_upload(self.studio.load_font, path, "Font")

    def _st_upload_audio(self):
        path = filedialog.askopenfilename(
            title="Select Audio",
            filetypes=[("Audio", " ".join(f"*{e}" for e in AUDIO_EXTENSIONS))])
        if path:
            self._st_run_upload(self.studio.load_audio, path, "Audio")

    def _st_remove_audio(self):
        self.studio.remove_audio()
        self._st_refresh_audio()

    def _st_apply_trim(self):
        if not self.studio.design["audio"]:
            return
        try:
            self.studio.set_audio_trim(self._st_trim_start.get(), self._st_trim_end.get())
        except InputError as e:
            messagebox.showwarning("Trim", str(e))
        self._st_refresh_audio()

    def _st_on_drop(self, event):
        """Route dropped files by extension: image, audio, font or quotes."""
        for path in parse_dropped_files(event.data):
            ext = os.path.splitext(path)[1].lower()
            if ext in IMAGE_EXTENSIONS:
                self._st_run_upload(self.studio.load_background, path, "Background")
            elif ext in AUDIO_EXTENSIONS:
                self._st_run_upload(self.studio.load_audio, path, "Audio")
            elif ext in FONT_EXTENSIONS:
                self._st_run_upload(self.studio.load_font, path, "Font")
            elif ext == ".txt":
                self._qu_load_quotes_from(path)

    # ═══════════════════════════════════════════════════════════════════════════
    # EXPORT
    # ═══════════════════════════════════════════════════════════════════════════

    def _st_on_progress(self, pct: float):
        self._st_progress_bar.set(pct / 100.0)
        self._st_progress_pct.configure(text=f"{int(round(pct))}%")

    def _st_export(self):
        """Record the current design in a background thread."""
        if self.studio.is_busy:
            messagebox.showwarning("Busy", "An export is already running. Please wait.")
            return

        self._st_set_busy(True)
        self._st_status.configure(text="Rendering...", text_color=COLORS["neon_blue"])
        self._st_progress_bar.set(0)
        self._st_progress_pct.configure(text="0%")

        def on_progress(pct):
            self.after(0, lambda: self._st_on_progress(pct))

        def _worker():
            try:
                path = self.studio.export(progress_callback=on_progress)
                self.after(0, lambda: self._st_on_export_done(True, path))
            except VidQuotesError as e:
                message = str(e)
                logger.error("Export failed: %s", message, exc_info=True)
                self.after(0, lambda: self._st_on_export_done(False, message))
            except Exception as e:
                message = f"Error: {e}"
                logger.error("Export failed: %s", e, exc_info=True)
                self.after(0, lambda: self._st_on_export_done(False, message))

        threading.Thread(target=_worker, daemon=True).start()

    def _st_on_export_done(self, success: bool, message: str):
        self._st_set_busy(False)
        if success:
            self._st_on_progress(100)
            self._st_status.configure(text=f"✅ Saved {os.path.basename(message)}",
                                      text_color=COLORS["success"])
        else:
            self._st_status.configure(text=f"❌ {message}", text_color=COLORS["error"])
            messagebox.showerror("Export Failed", message)
