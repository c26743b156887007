"""
Vid Quotes - Quotes, Render Queue & AI Backgrounds UI
Adds the Quotes, Queue and AI tabs to the studio sidebar.
"""

import os
import threading
import logging

import customtkinter as ctk
from tkinter import filedialog, messagebox
from PIL import Image

from ui.theme import COLORS, PANEL
from vidquotes.assets import decode_data_url
from vidquotes.errors import DecodeError, ExternalServiceError, InputError

logger = logging.getLogger(__name__)

THUMB_SIZE = (96, 54)
JOB_STATUS_COLORS = {
    "pending": COLORS["text_secondary"],
    "processing": COLORS["neon_blue"],
    "done": COLORS["success"],
    "error": COLORS["error"],
}


class QueueMixin:
    """Mixin for quote files, the render queue with batch export, and AI images."""

    def _build_queue_tabs(self, tabs):
        self._qu_thumbs = {}
        for name, builder in (
            ("Quotes", self._build_qu_quotes),
            ("Queue", self._build_qu_queue),
            ("AI", self._build_qu_ai),
        ):
            tab = tabs.add(name)
            scroll = ctk.CTkScrollableFrame(
                tab, fg_color="transparent",
                scrollbar_button_color=COLORS["accent_blue"],
                scrollbar_button_hover_color=COLORS["neon_blue"],
            )
            scroll.pack(fill="both", expand=True)
            builder(scroll)

    # ═══════════════════════════════════════════════════════════════════════════
    # QUOTES TAB
    # ═══════════════════════════════════════════════════════════════════════════

    def _build_qu_quotes(self, parent):
        self._st_lbl(parent, "💬  Quotes")
        ctk.CTkLabel(
            parent, text="Load a .txt file with one quote per line.",
            font=ctk.CTkFont(size=10), text_color=COLORS["text_muted"],
        ).pack(anchor="w", pady=(0, 6))
        self._st_button(parent, "📂 Load Quotes File", self._qu_browse_quotes)
        self._st_button(parent, "🗑 Clear Quotes", self._qu_clear_quotes)
        self._qu_quotes_count = ctk.CTkLabel(parent, text="0 quotes", font=ctk.CTkFont(size=10),
                                             text_color=COLORS["text_secondary"])
        self._qu_quotes_count.pack(anchor="w", pady=(4, 4))
        self._qu_quotes_frame = ctk.CTkFrame(parent, fg_color="transparent")
        self._qu_quotes_frame.pack(fill="x")

    def _qu_browse_quotes(self):
        path = filedialog.askopenfilename(title="Select Quotes File",
                                          filetypes=[("Text", "*.txt"), ("All files", "*.*")])
        if path:
            self._qu_load_quotes_from(path)

    def _qu_load_quotes_from(self, path: str):
        try:
            count = self.studio.load_quotes(path)
        except InputError as e:
            messagebox.showerror("Quotes", str(e))
            return
        self._qu_refresh_quotes()
        self._st_status.configure(text=f"📥 {count} quotes queued from {os.path.basename(path)}",
                                  text_color=COLORS["text_secondary"])

    def _qu_clear_quotes(self):
        self.studio.quotes.clear()
        self._qu_refresh_quotes()

    def _qu_next_quote(self):
        if not self.studio.load_next_quote():
            messagebox.showinfo("Quotes", "No quotes left. Load a quotes file first.")
            return
        self._st_refresh_controls()
        self._st_after_edit()

    def _qu_use_quote(self, index: int):
        if self.studio.load_quote_from_queue(index):
            self._st_refresh_controls()
            self._st_after_edit()

    def _qu_refresh_quotes(self):
        for child in self._qu_quotes_frame.winfo_children():
            child.destroy()
        quotes = self.studio.quotes.quotes
        self._qu_quotes_count.configure(text=f"{len(quotes)} quotes")
        for i, quote in enumerate(quotes):
            ctk.CTkButton(
                self._qu_quotes_frame, text=f"{i + 1}. {quote[:40]}", anchor="w",
                height=26, corner_radius=6, fg_color=COLORS["bg_input"],
                hover_color=COLORS["bg_card_hover"], font=ctk.CTkFont(size=10),
                command=lambda idx=i: self._qu_use_quote(idx),
            ).pack(fill="x", pady=1)

    # ═══════════════════════════════════════════════════════════════════════════
    # QUEUE TAB
    # ═══════════════════════════════════════════════════════════════════════════

    def _build_qu_queue(self, parent):
        self._st_lbl(parent, "📁  Output Folder")
        self._qu_output_label = ctk.CTkLabel(
            parent, text="", font=ctk.CTkFont(size=10), text_color=COLORS["text_muted"],
            wraplength=300, justify="left",
        )
        self._qu_output_label.pack(anchor="w", pady=(0, 4))
        self._st_button(parent, "Choose Folder", self._qu_choose_output)

        self._st_sep(parent)
        self._st_lbl(parent, "🎞️  Render Queue")
        self._st_button(parent, "➕ Add Current Design", self._qu_add_to_queue)
        self._st_button(parent, "🗑 Clear Queue", self._qu_clear_queue)

        self._qu_batch_btn = ctk.CTkButton(
            parent, text="▶ Start Batch", height=34, corner_radius=8,
            fg_color=COLORS["accent_purple"], hover_color=COLORS["accent_blue"],
            font=ctk.CTkFont(size=12, weight="bold"), command=self._qu_start_batch,
        )
        self._qu_batch_btn.pack(fill="x", pady=(6, 4))
        self._qu_stop_btn = ctk.CTkButton(
            parent, text="⏹ Stop After Current", height=30, corner_radius=8,
            fg_color=COLORS["stop_red"], hover_color="#cc1133", state="disabled",
            font=ctk.CTkFont(size=11, weight="bold"), command=self._qu_stop_batch,
        )
        self._qu_stop_btn.pack(fill="x", pady=(0, 6))
        self._qu_batch_status = ctk.CTkLabel(parent, text="", font=ctk.CTkFont(size=10),
                                             text_color=COLORS["text_secondary"],
                                             wraplength=300, justify="left")
        self._qu_batch_status.pack(anchor="w", pady=(0, 6))

        self._qu_jobs_frame = ctk.CTkFrame(parent, fg_color="transparent")
        self._qu_jobs_frame.pack(fill="x")

    def _qu_choose_output(self):
        folder = filedialog.askdirectory(title="Choose Output Folder")
        if folder:
            self.studio.pipeline.output_dir = folder
            self._qu_refresh_output()

    def _qu_refresh_output(self):
        self._qu_output_label.configure(text=self.studio.pipeline.output_dir or os.getcwd())

    def _qu_add_to_queue(self):
        try:
            job = self.studio.add_to_queue()
        except InputError as e:
            messagebox.showwarning("Queue", str(e))
            return
        logger.info("Queued job %s (%s)", job["id"], job["name"])
        self._qu_refresh_jobs()

    def _qu_remove_job(self, job_id: str):
        self.studio.remove_job(job_id)
        self._qu_refresh_jobs()

    def _qu_clear_queue(self):
        if self.studio.is_batch_processing:
            return
        self.studio.clear_queue()
        self._qu_refresh_jobs()

    def _qu_refresh_jobs(self):
        for child in self._qu_jobs_frame.winfo_children():
            child.destroy()
        jobs = self.studio.render_queue.jobs
        if not jobs:
            ctk.CTkLabel(self._qu_jobs_frame, text="Queue is empty", font=ctk.CTkFont(size=10),
                         text_color=COLORS["text_muted"]).pack(anchor="w")
            return
        for job in jobs:
            row = ctk.CTkFrame(self._qu_jobs_frame, fg_color=PANEL["card_bg"], corner_radius=6)
            row.pack(fill="x", pady=2)
            ctk.CTkLabel(row, text=job["name"], font=ctk.CTkFont(size=11),
                         text_color=COLORS["text_primary"]).pack(side="left", padx=8, pady=4)
            if job["status"] != "processing":
                ctk.CTkButton(
                    row, text="✕", width=26, height=22, corner_radius=4,
                    fg_color="transparent", hover_color=COLORS["stop_red"],
                    command=lambda jid=job["id"]: self._qu_remove_job(jid),
                ).pack(side="right", padx=4)
            ctk.CTkLabel(row, text=job["status"], font=ctk.CTkFont(size=10, weight="bold"),
                         text_color=JOB_STATUS_COLORS[job["status"]]).pack(side="right", padx=4)

    # ── Batch ──

    def _qu_start_batch(self):
        if self.studio.is_busy:
            messagebox.showwarning("Busy", "An export is already running. Please wait.")
            return
        if not self.studio.render_queue.pending():
            messagebox.showinfo("Queue", "No pending jobs in queue.")
            return

        self._st_set_busy(True)
        self._qu_batch_btn.configure(state="disabled", text="⏳ Processing...")
        self._qu_stop_btn.configure(state="normal")

        def on_status(text):
            self.after(0, lambda: self._qu_on_batch_status(text))

        def on_progress(pct):
            self.after(0, lambda: self._st_on_progress(pct))

        def _worker():
            self.studio.on_progress = on_progress
            try:
                summary = self.studio.start_batch(status_callback=on_status)
                self.after(0, lambda: self._qu_on_batch_done(summary, None))
            except Exception as e:
                message = str(e)
                logger.error("Batch failed: %s", e, exc_info=True)
                self.after(0, lambda: self._qu_on_batch_done(None, message))
            finally:
                self.studio.on_progress = None

        threading.Thread(target=_worker, daemon=True).start()

    def _qu_stop_batch(self):
        self.studio.stop_batch()
        self._qu_stop_btn.configure(state="disabled", text="⏳ Stopping...")

    def _qu_on_batch_status(self, text: str):
        self._qu_batch_status.configure(text=text)
        self._st_status.configure(text=text, text_color=COLORS["neon_blue"])
        self._qu_refresh_jobs()
        self._st_refresh_controls()

    def _qu_on_batch_done(self, summary, error):
        self._qu_batch_btn.configure(state="normal", text="▶ Start Batch")
        self._qu_stop_btn.configure(state="disabled", text="⏹ Stop After Current")
        self._st_set_busy(False)
        if error:
            self._qu_batch_status.configure(text=f"❌ {error}")
            messagebox.showerror("Batch", error)
            return
        text = (f"{'⏹ Stopped' if summary['cancelled'] else '✅ Complete'}: "
                f"{summary['done']}/{summary['total']} exported, {summary['failed']} failed")
        self._qu_batch_status.configure(text=text)
        self._st_status.configure(
            text=text, text_color=COLORS["warning"] if summary["failed"] else COLORS["success"])

    # ═══════════════════════════════════════════════════════════════════════════
    # AI TAB
    # ═══════════════════════════════════════════════════════════════════════════

    def _build_qu_ai(self, parent):
        self._st_lbl(parent, "🔑  Gemini API Key")
        self._qu_api_key_entry = ctk.CTkEntry(
            parent, show="•", height=32, fg_color=COLORS["bg_input"],
            border_color=COLORS["border"], placeholder_text="Paste your API key",
        )
        self._qu_api_key_entry.pack(fill="x", pady=(0, 8))

        self._st_lbl(parent, "✨  Background Prompt")
        self._qu_prompt_box = ctk.CTkTextbox(parent, height=80, fg_color=COLORS["bg_input"],
                                             font=ctk.CTkFont(size=12), wrap="word")
        self._qu_prompt_box.pack(fill="x", pady=(0, 8))
        self._qu_gen_apply_btn = self._st_button(
            parent, "🎨 Generate & Use as Background",
            lambda: self._qu_generate(apply=True), color=COLORS["accent_purple"])
        self._qu_gen_repo_btn = self._st_button(
            parent, "🗂 Generate to Repository", lambda: self._qu_generate(apply=False))
        self._qu_ai_status = ctk.CTkLabel(parent, text="", font=ctk.CTkFont(size=10),
                                          text_color=COLORS["text_secondary"])
        self._qu_ai_status.pack(anchor="w", pady=(0, 6))

        self._st_sep(parent)
        self._st_lbl(parent, "🖼️  Repository")
        self._qu_repo_frame = ctk.CTkFrame(parent, fg_color="transparent")
        self._qu_repo_frame.pack(fill="x")

    def _qu_api_key(self) -> str:
        return self._qu_api_key_entry.get().strip()

    def _qu_generate(self, apply: bool):
        prompt = self._qu_prompt_box.get("1.0", "end-1c").strip()
        api_key = self._qu_api_key()
        if not prompt:
            messagebox.showwarning("AI", "Please enter a description first.")
            return
        if not api_key:
            messagebox.showwarning("AI", "Please enter your Gemini API key.")
            return
        if self.studio.is_generating:
            return

        self._qu_gen_apply_btn.configure(state="disabled")
        self._qu_gen_repo_btn.configure(state="disabled")
        self._qu_ai_status.configure(text="⏳ Generating...", text_color=COLORS["neon_blue"])

        def _worker():
            try:
                if apply:
                    self.studio.generate_and_apply(prompt, api_key)
                else:
                    self.studio.generate_to_repository(prompt, api_key)
                self.after(0, lambda: self._qu_on_generated(apply, None))
            except (ExternalServiceError, InputError, DecodeError) as e:
                message = str(e)
                logger.warning("Image generation failed: %s", message)
                self.after(0, lambda: self._qu_on_generated(apply, message))

        threading.Thread(target=_worker, daemon=True).start()

    def _qu_on_generated(self, applied: bool, error):
        self._qu_gen_apply_btn.configure(state="normal")
        self._qu_gen_repo_btn.configure(state="normal")
        if error:
            self._qu_ai_status.configure(text=f"❌ {error}", text_color=COLORS["error"])
            messagebox.showerror("AI", error)
            return
        self._qu_ai_status.configure(text="✅ Done", text_color=COLORS["success"])
        if applied:
            self._st_refresh_controls()
            self._st_after_edit()
        else:
            self._qu_refresh_repository()

    def _qu_thumbnail(self, entry: dict):
        thumb = self._qu_thumbs.get(entry["id"])
        if thumb is None:
            image = Image.fromarray(decode_data_url(entry["src"]))
            image.thumbnail((THUMB_SIZE[0] * 2, THUMB_SIZE[1] * 2))
            thumb = ctk.CTkImage(light_image=image, dark_image=image, size=THUMB_SIZE)
            self._qu_thumbs[entry["id"]] = thumb
        return thumb

    def _qu_apply_repository_image(self, entry_id: str):
        try:
            self.studio.apply_repository_image(entry_id)
        except (InputError, DecodeError) as e:
            messagebox.showerror("Repository", str(e))
            return
        self._st_refresh_controls()
        self._st_after_edit()

    def _qu_delete_repository_image(self, entry_id: str):
        self.studio.image_repo.remove(entry_id)
        self._qu_thumbs.pop(entry_id, None)
        self._qu_refresh_repository()

    def _qu_refresh_repository(self):
        for child in self._qu_repo_frame.winfo_children():
            child.destroy()
        for entry in self.studio.image_repo.entries:
            row = ctk.CTkFrame(self._qu_repo_frame, fg_color=PANEL["card_bg"], corner_radius=6)
            row.pack(fill="x", pady=2)
            try:
                thumb = self._qu_thumbnail(entry)
            except DecodeError as e:
                logger.debug("Thumbnail failed: %s", e)
                thumb = None
            ctk.CTkButton(
                row, text="" if thumb else "🖼", image=thumb, width=THUMB_SIZE[0],
                height=THUMB_SIZE[1], fg_color="transparent", hover_color=COLORS["bg_card_hover"],
                command=lambda eid=entry["id"]: self._qu_apply_repository_image(eid),
            ).pack(side="left", padx=4, pady=4)
            ctk.CTkLabel(row, text=entry["prompt"][:60], font=ctk.CTkFont(size=10),
                         text_color=COLORS["text_secondary"], wraplength=150,
                         justify="left").pack(side="left", fill="x", expand=True)
            ctk.CTkButton(
                row, text="🗑", width=26, height=22, corner_radius=4,
                fg_color="transparent", hover_color=COLORS["stop_red"],
                command=lambda eid=entry["id"]: self._qu_delete_repository_image(eid),
            ).pack(side="right", padx=4)

    # ═══════════════════════════════════════════════════════════════════════════
    # REFRESH
    # ═══════════════════════════════════════════════════════════════════════════

    def _qu_refresh(self):
        self._qu_refresh_quotes()
        self._qu_refresh_jobs()
        self._qu_refresh_output()
