"""
Vid Quotes - Desktop Application
Animated quote video maker with Blue Neon Theme
Built with CustomTkinter

Main entry point: assembles the UI mixins into one window.
"""

import customtkinter as ctk
from tkinter import messagebox
try:
    from tkinterdnd2 import TkinterDnD
    HAS_DND = True
except ImportError:
    HAS_DND = False
import os
import threading
import sys
import logging

# Add current directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import vidquotes.database as db
from vidquotes import __version__
from vidquotes.encoders import detect_working_hw_encoder
from vidquotes.session import Studio

from ui.theme import COLORS
from ui.studio import StudioMixin
from ui.queue import QueueMixin

logger = logging.getLogger(__name__)

SETTING_DEFAULTS = {
    "output_dir": "",
    "gemini_api_key": "",
}


class VidQuotesApp(
    StudioMixin,
    QueueMixin,
    ctk.CTk,
    TkinterDnD.DnDWrapper if HAS_DND else object,
):
    def __init__(self):
        super().__init__()
        if HAS_DND:
            self.TkdndVersion = TkinterDnD._require(self)

        # ─── Window Setup ────────────────────────────────────────────────
        self.title("🎬 Vid Quotes | Animated Quote Videos")
        self.geometry("1440x900")
        self.minsize(1200, 780)
        self.configure(fg_color=COLORS["bg_darkest"])

        # ─── App Icon ────────────────────────────────────────────────────
        try:
            if getattr(sys, 'frozen', False):
                base_path = getattr(sys, '_MEIPASS', os.path.dirname(sys.executable))
            else:
                base_path = os.path.dirname(os.path.abspath(__file__))
            icon_path = os.path.join(base_path, "icon.ico")
            if os.path.exists(icon_path):
                self.iconbitmap(icon_path)
        except Exception as e:
            logger.debug("Icon not set: %s", e)

        ctk.set_appearance_mode("dark")
        ctk.set_default_color_theme("blue")

        # ─── State ───────────────────────────────────────────────────────
        db.init_db()
        self.settings = db.get_settings(SETTING_DEFAULTS)
        self.studio = Studio(output_dir=self.settings["output_dir"] or None)

        # ─── Build UI ────────────────────────────────────────────────────
        self._build_ui()

        # ─── Load saved settings ─────────────────────────────────────────
        self._load_settings()

        # ─── Save settings on close ──────────────────────────────────────
        self.protocol("WM_DELETE_WINDOW", self._on_close)

        # ─── Warm the encoder probe (background, non-blocking) ───────────
        self.after(1500, self._warm_encoder_probe)

    # ═════════════════════════════════════════════════════════════════════════════
    # SETTINGS PERSISTENCE
    # ═════════════════════════════════════════════════════════════════════════════

    def _load_settings(self):
        """Load the saved API key into the AI tab."""
        saved_key = self.settings["gemini_api_key"]
        if saved_key:
            self._qu_api_key_entry.delete(0, "end")
            self._qu_api_key_entry.insert(0, saved_key)

    def _save_settings(self):
        """Save the output folder and API key."""
        db.save_settings({
            "output_dir": self.studio.pipeline.output_dir or "",
            "gemini_api_key": self._qu_api_key(),
        })

    def _on_close(self):
        """Confirm if an export is running, then save settings and exit."""
        if self.studio.is_busy:
            if not messagebox.askyesno("Export Running",
                                       "An export is still running. Quit anyway?"):
                return
            self.studio.stop_batch()
        self._st_preview_running = False
        self.studio.stop()
        self._save_settings()
        self.destroy()

    def _warm_encoder_probe(self):
        threading.Thread(target=detect_working_hw_encoder, daemon=True).start()

    # ═════════════════════════════════════════════════════════════════════════════
    # UI CONSTRUCTION
    # ═════════════════════════════════════════════════════════════════════════════

    def _build_ui(self):
        """Build the complete user interface."""
        self.main_frame = ctk.CTkFrame(self, fg_color=COLORS["bg_darkest"])
        self.main_frame.pack(fill="both", expand=True)

        self._build_header()

        page_container = ctk.CTkFrame(self.main_frame, fg_color="transparent")
        page_container.pack(fill="both", expand=True)
        self._build_studio_page(page_container)

    def _build_header(self):
        """Build the header bar."""
        header = ctk.CTkFrame(self.main_frame, fg_color=COLORS["bg_dark"], corner_radius=0, height=56)
        header.pack(fill="x")
        header.pack_propagate(False)

        glow = ctk.CTkFrame(header, fg_color=COLORS["neon_blue"], height=2, corner_radius=0)
        glow.pack(fill="x", side="bottom")

        title_box = ctk.CTkFrame(header, fg_color="transparent")
        title_box.pack(side="left", padx=24, pady=8)

        ctk.CTkLabel(
            title_box, text="🎬 Vid Quotes",
            font=ctk.CTkFont(family="Segoe UI", size=22, weight="bold"),
            text_color=COLORS["neon_blue"]
        ).pack(side="left")

        ctk.CTkLabel(
            title_box, text="  |  Animated Quote Videos",
            font=ctk.CTkFont(family="Segoe UI", size=13),
            text_color=COLORS["text_secondary"]
        ).pack(side="left", padx=(8, 0))

        ctk.CTkLabel(
            header, text=f" v{__version__} ", font=ctk.CTkFont(size=11),
            text_color=COLORS["neon_blue"], fg_color=COLORS["bg_card"], corner_radius=6
        ).pack(side="right", padx=24)


# ═════════════════════════════════════════════════════════════════════════════════
# ENTRY POINT
# ═════════════════════════════════════════════════════════════════════════════════

def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = VidQuotesApp()
    app.mainloop()


if __name__ == "__main__":
    main()
