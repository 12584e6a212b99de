"""
LingoLens - Tkinter desktop app

Flow:
1. Upload card: pick an image (or describe a scene), choose languages.
2. Analysis card: detection, then vocabulary/story/conversation from the
   local Ollama server; export or re-run from here.
3. Practice card: word matching and sentence translation from the bundled
   dictionaries, available as soon as an input is selected.

Setup (from repo root):

    python -m venv .venv
    source .venv/bin/activate   # or .venv\\Scripts\\activate on Windows
    pip install -e .

Make sure Ollama is running with the models pulled:

    ollama pull gemma3n:latest
    ollama pull llama3.2-vision:latest

Then run:
    python main.py
"""

import io
import threading
import tkinter as tk
from tkinter import ttk, filedialog, messagebox
from typing import Callable, Dict, List, Optional, Tuple

from PIL import Image, ImageTk

from lingolens.config import IMAGE_MIME_TYPES, SUPPORTED_LANGUAGES, language_name
from lingolens.errors import ExportError, InputInvalid, PartialAnalysisError
from lingolens.exporter import (
    AnalysisDocument, InputSummary, default_export_filename, export_analysis, import_analysis,
)
from lingolens.game import GameState, PracticeDictionary, TokenStatus, coverage
from lingolens.inputs import format_file_size, load_image
from lingolens.logger import logger
from lingolens.models import AnalysisResult, LanguagePair
from lingolens.ollama import ConnectionStatus, OllamaClient
from lingolens.pipeline import AnalysisRunner, PipelineState, PipelineStatus, StagePipeline
from lingolens.settings import SettingsStore

logger.banner("LingoLens - Starting Application")

PALETTES: Dict[str, Dict[str, str]] = {
    "dark": {
        "bg": "#1e1e1e", "panel": "#2d2d2d", "field": "#3d3d3d", "fg": "#e0e0e0",
        "muted": "#9a9a9a", "accent": "#7bb3ff", "success": "#5cb85c",
        "warning": "#e0b040", "error": "#e05252",
    },
    "light": {
        "bg": "#f4f4f4", "panel": "#ffffff", "field": "#ffffff", "fg": "#202020",
        "muted": "#606060", "accent": "#2f6fdb", "success": "#2e7d32",
        "warning": "#b7791f", "error": "#c62828",
    },
}

LANGUAGE_NAMES = list(SUPPORTED_LANGUAGES.values())
_CODE_BY_NAME = {name: code for code, name in SUPPORTED_LANGUAGES.items()}

IMAGE_FILETYPES = [
    ("Images", " ".join(f"*{ext}" for ext in IMAGE_MIME_TYPES)),
]
JSON_FILETYPES = [("JSON Files", "*.json"), ("All Files", "*.*")]

DIFFICULTY_STARS = {"beginner": "★", "intermediate": "★★", "advanced": "★★★"}


# ---------------------------------------------------------------------------
# Small widgets
# ---------------------------------------------------------------------------

class ToastArea(ttk.Frame):
    """Stack of dismissible notifications in the bottom-right corner."""

    DURATION_MS = 5000

    def __init__(self, parent: tk.Tk) -> None:
        super().__init__(parent)
        self.place(relx=1.0, rely=1.0, anchor="se", x=-16, y=-16)

    def show(self, message: str, kind: str = "info", palette: Optional[Dict[str, str]] = None) -> None:
        palette = palette or PALETTES["dark"]
        color = {
            "success": palette["success"],
            "warning": palette["warning"],
            "error": palette["error"],
        }.get(kind, palette["accent"])

        toast = tk.Label(
            self,
            text=message,
            bg=palette["panel"],
            fg=color,
            font=("Helvetica", 12),
            padx=14,
            pady=8,
            wraplength=360,
            justify="left",
            relief="solid",
            borderwidth=1,
            cursor="hand2",
        )
        toast.pack(side="bottom", anchor="e", pady=(6, 0))
        toast.bind("<Button-1>", lambda _e: toast.destroy())
        self.after(self.DURATION_MS, lambda: toast.winfo_exists() and toast.destroy())
        self.lift()


class ReadOnlyText(ttk.Frame):
    """Scrollable text panel that the app fills programmatically."""

    def __init__(self, parent, height: int = 12) -> None:
        super().__init__(parent)
        self.columnconfigure(0, weight=1)
        self.rowconfigure(0, weight=1)
        self.text = tk.Text(
            self, wrap="word", height=height, relief="flat", padx=12, pady=10,
            font=("Helvetica", 13), state="disabled",
        )
        scrollbar = ttk.Scrollbar(self, orient="vertical", command=self.text.yview)
        self.text.configure(yscrollcommand=scrollbar.set)
        self.text.grid(row=0, column=0, sticky="nsew")
        scrollbar.grid(row=0, column=1, sticky="ns")

    def apply_palette(self, palette: Dict[str, str]) -> None:
        self.text.configure(bg=palette["panel"], fg=palette["fg"], insertbackground=palette["fg"])
        self.text.tag_configure("heading", font=("Helvetica", 15, "bold"), foreground=palette["accent"])
        self.text.tag_configure("muted", foreground=palette["muted"])
        self.text.tag_configure("bold", font=("Helvetica", 13, "bold"))
        self.text.tag_configure("correct", foreground=palette["success"])
        self.text.tag_configure("partial", foreground=palette["warning"])
        self.text.tag_configure("incorrect", foreground=palette["error"])

    def set_lines(self, lines: List[Tuple[str, Optional[str]]]) -> None:
        """Replace the content with (text, tag) chunks."""
        self.text.configure(state="normal")
        self.text.delete("1.0", "end")
        for chunk, tag in lines:
            if tag:
                self.text.insert("end", chunk, tag)
            else:
                self.text.insert("end", chunk)
        self.text.configure(state="disabled")
        self.text.yview_moveto(0)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

class LingoLensApp(tk.Tk):
    def __init__(self) -> None:
        super().__init__()
        logger.ui("Initializing LingoLensApp window...")

        self.title("LingoLens")
        window_width, window_height = 1100, 800
        center_x = int(self.winfo_screenwidth() / 2 - window_width / 2)
        center_y = int(self.winfo_screenheight() / 2 - window_height / 2)
        self.geometry(f"{window_width}x{window_height}+{center_x}+{center_y}")
        self.minsize(800, 600)

        # State slices
        self.settings_store = SettingsStore()
        self.pipeline_state = PipelineState()
        self.game_state = GameState(PracticeDictionary.load())

        # What the analysis card is showing (also set by imports)
        self.analysis_languages: LanguagePair = self.settings_store.languages
        self.input_summary: Optional[InputSummary] = None

        self.client = OllamaClient(self.settings_store.settings.model_server_url)
        self.pipeline = StagePipeline(self.client, on_status=self._on_pipeline_status)
        self.runner = AnalysisRunner(self.pipeline, dispatch=lambda fn: self.after(0, fn))

        container = ttk.Frame(self)
        container.pack(fill="both", expand=True)
        container.rowconfigure(0, weight=1)
        container.columnconfigure(0, weight=1)

        self.cards: Dict[str, ttk.Frame] = {}
        for CardClass in (UploadCard, AnalysisCard, PracticeCard):
            card = CardClass(parent=container, controller=self)
            self.cards[CardClass.__name__] = card
            card.grid(row=0, column=0, sticky="nsew")
            logger.debug(f"  Created: {CardClass.__name__}")

        self.toasts = ToastArea(self)
        self.apply_theme()
        self.cards["PracticeCard"].refresh()
        self.show_card("UploadCard")
        self.check_connection()
        logger.ui("Application initialized successfully")

    # Theme / notifications ------------------------------------------------

    @property
    def palette(self) -> Dict[str, str]:
        return PALETTES[self.settings_store.settings.theme]

    def apply_theme(self) -> None:
        palette = self.palette
        self.configure(bg=palette["bg"])
        style = ttk.Style()
        style.theme_use("clam")
        style.configure("TFrame", background=palette["bg"])
        style.configure("TLabel", background=palette["bg"], foreground=palette["fg"], font=("Helvetica", 13))
        style.configure("Title.TLabel", font=("Helvetica", 26, "bold"), foreground=palette["fg"])
        style.configure("Muted.TLabel", foreground=palette["muted"], font=("Helvetica", 12))
        style.configure("TButton", background=palette["panel"], foreground=palette["fg"], font=("Helvetica", 13))
        style.map("TButton", background=[("active", palette["field"])])
        style.configure("Matched.TButton", background=palette["success"], foreground="#ffffff")
        style.configure("Selected.TButton", background=palette["accent"], foreground="#ffffff")
        style.configure("Wrong.TButton", background=palette["error"], foreground="#ffffff")
        style.configure("TNotebook", background=palette["bg"])
        style.configure("TNotebook.Tab", background=palette["panel"], foreground=palette["fg"], padding=(12, 6))
        style.map("TNotebook.Tab", background=[("selected", palette["field"])])
        style.configure("TCombobox", fieldbackground=palette["field"], background=palette["panel"],
                        foreground=palette["fg"], arrowcolor=palette["fg"])
        style.configure("TEntry", fieldbackground=palette["field"], foreground=palette["fg"])
        style.configure("Horizontal.TProgressbar", background=palette["accent"], troughcolor=palette["panel"])
        for card in self.cards.values():
            card.apply_palette(palette)

    def toast(self, message: str, kind: str = "info") -> None:
        logger.ui(f"Toast ({kind}): {message}")
        self.toasts.show(message, kind, self.palette)

    def show_card(self, name: str) -> None:
        logger.ui_transition("current_card", name)
        self.cards[name].tkraise()

    # Settings -------------------------------------------------------------

    def set_languages(self, source: str, target: str) -> None:
        """Persist a language change; the practice game is re-seeded, analysis is not re-run."""
        current = self.settings_store.settings
        if current.source_language == source and current.target_language == target:
            return
        try:
            self.settings_store.update(source_language=source, target_language=target)
        except OSError as e:
            logger.error(f"Could not save language change: {e}")
            self.toast(f"Could not save settings: {e}", "error")
            return
        self.toast("Settings saved successfully", "success")
        if self.game_state.seeded:
            self.game_state.seed(self.settings_store.languages)
            practice: PracticeCard = self.cards["PracticeCard"]
            practice.refresh()

    def toggle_theme(self) -> None:
        try:
            self.settings_store.toggle_theme()
        except OSError as e:
            logger.error(f"Could not save theme: {e}")
            self.toast(f"Could not save settings: {e}", "error")
            return
        self.apply_theme()

    def set_server_url(self, url: str) -> None:
        """Raises ValueError for a malformed URL and OSError when it cannot be saved."""
        self.settings_store.update(model_server_url=url)
        self.client = OllamaClient(self.settings_store.settings.model_server_url)
        self.pipeline.client = self.client
        self.toast("Settings saved successfully", "success")
        self.check_connection()

    def check_connection(self, client: Optional[OllamaClient] = None,
                         on_done: Optional[Callable[[ConnectionStatus], None]] = None) -> None:
        """Probe the server off the UI thread and update the status label."""
        client = client or self.client

        def _probe() -> None:
            status = client.check_connection()
            self.after(0, lambda: self._on_connection_status(status, on_done))

        threading.Thread(target=_probe, daemon=True).start()

    def _on_connection_status(self, status: ConnectionStatus,
                              on_done: Optional[Callable[[ConnectionStatus], None]]) -> None:
        upload: UploadCard = self.cards["UploadCard"]
        upload.set_connection_status(status)
        if on_done:
            on_done(status)

    # Input selection ------------------------------------------------------

    def select_image_file(self) -> None:
        path = filedialog.askopenfilename(title="Select an image", filetypes=IMAGE_FILETYPES)
        if not path:
            return
        try:
            image = load_image(path)
        except InputInvalid as e:
            self.toast(str(e), "error")
            return
        self.pipeline_state.selection.select_image(image)
        self._seed_practice()
        self.start_analysis()

    def submit_description(self, text: str) -> None:
        try:
            self.pipeline_state.selection.select_description(text)
        except InputInvalid as e:
            self.toast(str(e), "error")
            return
        self._seed_practice()
        self.start_analysis()

    def _seed_practice(self) -> None:
        self.game_state.seed(self.settings_store.languages)
        practice: PracticeCard = self.cards["PracticeCard"]
        practice.refresh()

    # Analysis -------------------------------------------------------------

    def start_analysis(self) -> None:
        try:
            analysis_input = self.pipeline_state.selection.active()
        except InputInvalid as e:
            self.toast(str(e), "error")
            return

        self.analysis_languages = self.settings_store.languages
        self.input_summary = InputSummary.from_input(analysis_input)
        self.pipeline_state.result = None

        analysis: AnalysisCard = self.cards["AnalysisCard"]
        analysis.show_input(self.pipeline_state.selection, self.analysis_languages)
        analysis.show_progress("Starting analysis...", 0)
        self.show_card("AnalysisCard")

        self.pipeline_state.task = self.runner.start(
            analysis_input,
            self.analysis_languages,
            on_result=self._on_analysis_result,
            on_error=self._on_analysis_error,
        )

    def _on_pipeline_status(self, status: PipelineStatus, message: str, percent: int) -> None:
        # Called on the pipeline thread
        self.after(0, lambda: self.cards["AnalysisCard"].show_progress(message, percent))

    def _on_analysis_result(self, result: AnalysisResult) -> None:
        self.pipeline_state.result = result
        analysis: AnalysisCard = self.cards["AnalysisCard"]
        analysis.show_result(result)
        self.toast("Analysis completed successfully!", "success")

    def _on_analysis_error(self, error: Exception) -> None:
        analysis: AnalysisCard = self.cards["AnalysisCard"]
        if isinstance(error, PartialAnalysisError):
            self.pipeline_state.result = error.result
            analysis.show_result(error.result)
            failed = ", ".join(sorted(error.errors))
            self.toast(f"Some sections could not be generated ({failed}). Showing what is available.", "warning")
            return
        logger.error(f"Analysis failed: {error}")
        analysis.show_progress("Analysis failed", 0)
        analysis.enable_actions(rerun=True, export=False)
        self.toast(str(error) or "Analysis failed", "error")

    def reset_to_upload(self) -> None:
        logger.ui("Resetting to upload card")
        self.runner.cancel()
        self.pipeline_state.reset()
        self.game_state.reset()
        self.input_summary = None
        self.cards["AnalysisCard"].reset()
        self.cards["PracticeCard"].refresh()
        self.cards["UploadCard"].reset()
        self.show_card("UploadCard")

    # Export / import ------------------------------------------------------

    def export_results(self) -> None:
        result = self.pipeline_state.result
        if result is None or self.input_summary is None:
            self.toast("No results to export", "error")
            return
        path = filedialog.asksaveasfilename(
            title="Export analysis",
            defaultextension=".json",
            initialfile=default_export_filename(),
            filetypes=JSON_FILETYPES,
        )
        if not path:
            self.toast("Export cancelled", "info")
            return
        document = AnalysisDocument(
            languages=self.analysis_languages, input=self.input_summary, result=result
        )
        try:
            export_analysis(document, path)
        except ExportError as e:
            self.toast(str(e), "error")
            return
        self.toast("Results exported successfully", "success")

    def import_results(self) -> None:
        path = filedialog.askopenfilename(title="Import analysis", filetypes=JSON_FILETYPES)
        if not path:
            return
        try:
            document = import_analysis(path)
        except ExportError as e:
            self.toast(str(e), "error")
            return

        self.runner.cancel()
        self.pipeline_state.reset()
        self.pipeline_state.result = document.result
        self.analysis_languages = document.languages
        self.input_summary = document.input

        analysis: AnalysisCard = self.cards["AnalysisCard"]
        analysis.show_imported(document)
        analysis.show_result(document.result, rerun=False)
        self._seed_practice()
        self.show_card("AnalysisCard")
        self.toast("Analysis imported", "success")

    def open_settings(self) -> None:
        SettingsDialog(self)


# ---------------------------------------------------------------------------
# Upload card
# ---------------------------------------------------------------------------

class UploadCard(ttk.Frame):
    def __init__(self, parent, controller: LingoLensApp) -> None:
        super().__init__(parent)
        self.controller = controller
        self.columnconfigure(0, weight=1)

        top = ttk.Frame(self)
        top.grid(row=0, column=0, sticky="ew", padx=20, pady=(16, 0))
        top.columnconfigure(0, weight=1)
        self.connection_label = ttk.Label(top, text="○ Checking Ollama...", style="Muted.TLabel")
        self.connection_label.grid(row=0, column=0, sticky="w")
        ttk.Button(top, text="Theme", command=controller.toggle_theme).grid(row=0, column=1, padx=4)
        ttk.Button(top, text="Settings", command=controller.open_settings).grid(row=0, column=2, padx=4)

        ttk.Label(self, text="LingoLens", style="Title.TLabel").grid(row=1, column=0, pady=(30, 6))
        ttk.Label(
            self,
            text="Turn a photo or a short scene description into vocabulary, a story and a dialogue.",
            style="Muted.TLabel",
        ).grid(row=2, column=0, pady=(0, 20))

        lang_frame = ttk.Frame(self)
        lang_frame.grid(row=3, column=0, pady=(0, 20))
        settings = controller.settings_store.settings
        ttk.Label(lang_frame, text="I speak:").grid(row=0, column=0, padx=(0, 8))
        self.source_var = tk.StringVar(value=language_name(settings.source_language))
        source_combo = ttk.Combobox(lang_frame, textvariable=self.source_var, values=LANGUAGE_NAMES,
                                    state="readonly", width=22)
        source_combo.grid(row=0, column=1, padx=(0, 20))
        ttk.Label(lang_frame, text="I'm learning:").grid(row=0, column=2, padx=(0, 8))
        self.target_var = tk.StringVar(value=language_name(settings.target_language))
        target_combo = ttk.Combobox(lang_frame, textvariable=self.target_var, values=LANGUAGE_NAMES,
                                    state="readonly", width=22)
        target_combo.grid(row=0, column=3)
        source_combo.bind("<<ComboboxSelected>>", self._on_language_selected)
        target_combo.bind("<<ComboboxSelected>>", self._on_language_selected)

        ttk.Button(self, text="📷  Choose an image...", command=controller.select_image_file).grid(
            row=4, column=0, pady=(0, 20), ipadx=20, ipady=10
        )

        ttk.Label(self, text="…or describe a scene (10–500 characters):").grid(row=5, column=0, pady=(0, 6))
        self.description_text = tk.Text(self, height=5, width=70, wrap="word", relief="flat",
                                        font=("Helvetica", 13), padx=8, pady=6)
        self.description_text.grid(row=6, column=0, padx=40)
        self.description_text.bind("<KeyRelease>", self._update_char_count)
        self.char_count_label = ttk.Label(self, text="0 / 500", style="Muted.TLabel")
        self.char_count_label.grid(row=7, column=0, pady=(4, 8))
        ttk.Button(self, text="Analyze description", command=self._on_analyze_description).grid(
            row=8, column=0, pady=(0, 20)
        )

        ttk.Button(self, text="Import analysis...", command=controller.import_results).grid(row=9, column=0)

    def apply_palette(self, palette: Dict[str, str]) -> None:
        self.description_text.configure(bg=palette["field"], fg=palette["fg"], insertbackground=palette["fg"])

    def _on_language_selected(self, event=None) -> None:
        source = _CODE_BY_NAME.get(self.source_var.get())
        target = _CODE_BY_NAME.get(self.target_var.get())
        if source and target:
            self.controller.set_languages(source, target)

    def _update_char_count(self, event=None) -> None:
        count = len(self.description_text.get("1.0", "end-1c").strip())
        self.char_count_label.configure(text=f"{count} / 500")

    def _on_analyze_description(self) -> None:
        self.controller.submit_description(self.description_text.get("1.0", "end-1c"))

    def set_connection_status(self, status: ConnectionStatus) -> None:
        palette = self.controller.palette
        if status.reachable and status.model_available:
            text, color = "● Connected (model available)", palette["success"]
        elif status.reachable:
            text, color = "● Connected (required model not found)", palette["warning"]
        else:
            text, color = "● Connection failed", palette["error"]
        self.connection_label.configure(text=text, foreground=color)

    def reset(self) -> None:
        self.description_text.delete("1.0", "end")
        self._update_char_count()


# ---------------------------------------------------------------------------
# Analysis card
# ---------------------------------------------------------------------------

class AnalysisCard(ttk.Frame):
    PREVIEW_SIZE = (320, 220)

    def __init__(self, parent, controller: LingoLensApp) -> None:
        super().__init__(parent)
        self.controller = controller
        self.columnconfigure(0, weight=1)
        self.rowconfigure(3, weight=1)
        self._photo: Optional[ImageTk.PhotoImage] = None

        header = ttk.Frame(self)
        header.grid(row=0, column=0, sticky="ew", padx=20, pady=(16, 8))
        header.columnconfigure(1, weight=1)
        self.preview_label = ttk.Label(header)
        self.preview_label.grid(row=0, column=0, rowspan=2, padx=(0, 16))
        self.input_title = ttk.Label(header, text="", font=("Helvetica", 16, "bold"), wraplength=600)
        self.input_title.grid(row=0, column=1, sticky="w")
        self.input_meta = ttk.Label(header, text="", style="Muted.TLabel", wraplength=600)
        self.input_meta.grid(row=1, column=1, sticky="nw")

        status = ttk.Frame(self)
        status.grid(row=1, column=0, sticky="ew", padx=20)
        status.columnconfigure(0, weight=1)
        self.status_label = ttk.Label(status, text="")
        self.status_label.grid(row=0, column=0, sticky="w")
        self.progress = ttk.Progressbar(status, mode="determinate", maximum=100)
        self.progress.grid(row=1, column=0, sticky="ew", pady=(4, 8))

        actions = ttk.Frame(self)
        actions.grid(row=2, column=0, sticky="w", padx=20, pady=(0, 8))
        ttk.Button(actions, text="New input", command=controller.reset_to_upload).grid(row=0, column=0, padx=(0, 6))
        self.rerun_button = ttk.Button(actions, text="Analyze again", command=controller.start_analysis,
                                       state="disabled")
        self.rerun_button.grid(row=0, column=1, padx=6)
        self.export_button = ttk.Button(actions, text="Export", command=controller.export_results,
                                        state="disabled")
        self.export_button.grid(row=0, column=2, padx=6)
        ttk.Button(actions, text="Practice", command=lambda: controller.show_card("PracticeCard")).grid(
            row=0, column=3, padx=6
        )

        self.notebook = ttk.Notebook(self)
        self.notebook.grid(row=3, column=0, sticky="nsew", padx=20, pady=(0, 16))
        self.panels: Dict[str, ReadOnlyText] = {}
        for key, label in (("scene", "Scene"), ("vocabulary", "Vocabulary"),
                           ("story", "Story"), ("conversation", "Conversation")):
            panel = ReadOnlyText(self.notebook)
            self.notebook.add(panel, text=label)
            self.panels[key] = panel

    def apply_palette(self, palette: Dict[str, str]) -> None:
        for panel in self.panels.values():
            panel.apply_palette(palette)

    def enable_actions(self, rerun: bool, export: bool) -> None:
        self.rerun_button.configure(state="normal" if rerun else "disabled")
        self.export_button.configure(state="normal" if export else "disabled")

    def show_input(self, selection, languages: LanguagePair) -> None:
        lang_text = f"{language_name(languages.source)} → {language_name(languages.target)}"
        if selection.image is not None:
            image = selection.image
            self.input_title.configure(text=image.name)
            self.input_meta.configure(text=f"{format_file_size(image.size)} · {lang_text}")
            self._show_preview(image.data)
        elif selection.description is not None:
            self.input_title.configure(text="Scene description")
            self.input_meta.configure(text=f"{selection.description.text}\n{lang_text}")
            self._clear_preview()
        for panel in self.panels.values():
            panel.set_lines([("Waiting for results...", "muted")])
        self.enable_actions(rerun=False, export=False)

    def show_imported(self, document: AnalysisDocument) -> None:
        languages = document.languages
        lang_text = f"{language_name(languages.source)} → {language_name(languages.target)}"
        summary = document.input
        if summary.type == "image":
            self.input_title.configure(text=summary.name or "Imported image")
            size = format_file_size(summary.size) if summary.size else "size unknown"
            self.input_meta.configure(text=f"{size} · {lang_text} · imported from {document.timestamp}")
        else:
            self.input_title.configure(text="Scene description")
            self.input_meta.configure(text=f"{summary.description}\n{lang_text} · imported from {document.timestamp}")
        self._clear_preview()
        self.status_label.configure(text="Imported analysis")
        self.progress.configure(value=100)

    def _show_preview(self, data: bytes) -> None:
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.thumbnail(self.PREVIEW_SIZE)
                self._photo = ImageTk.PhotoImage(img.convert("RGBA"))
            self.preview_label.configure(image=self._photo)
        except OSError as e:
            logger.warning(f"Could not render preview: {e}")
            self._clear_preview()

    def _clear_preview(self) -> None:
        self._photo = None
        self.preview_label.configure(image="")

    def show_progress(self, message: str, percent: int) -> None:
        self.status_label.configure(text=message)
        self.progress.configure(value=percent)

    def show_result(self, result: AnalysisResult, rerun: bool = True) -> None:
        self.panels["scene"].set_lines(self._scene_lines(result))
        self.panels["vocabulary"].set_lines(self._vocabulary_lines(result))
        self.panels["story"].set_lines(self._story_lines(result))
        self.panels["conversation"].set_lines(self._conversation_lines(result))
        self.enable_actions(rerun=rerun, export=True)

    @staticmethod
    def _scene_lines(result: AnalysisResult) -> List[Tuple[str, Optional[str]]]:
        detection = result.detection
        if detection is None:
            return [("No scene information.", "muted")]
        scene = detection.scene
        lines: List[Tuple[str, Optional[str]]] = [("Scene\n", "heading")]
        for label, value in (("Setting", scene.setting), ("Location", scene.location),
                             ("Activity", scene.activity), ("Mood", scene.mood)):
            lines += [(f"{label}: ", "bold"), (f"{value}\n", None)]
        lines.append(("\nObjects\n", "heading"))
        if not detection.objects:
            lines.append(("No objects detected.\n", "muted"))
        for obj in detection.objects:
            lines += [(f"{obj.name}", "bold"), (f"  ({obj.confidence:.0%})\n", "muted"),
                      (f"    {obj.description}\n", None)]
        return lines

    @staticmethod
    def _vocabulary_lines(result: AnalysisResult) -> List[Tuple[str, Optional[str]]]:
        if not result.vocabulary:
            return [("No vocabulary items found.", "muted")]
        lines: List[Tuple[str, Optional[str]]] = []
        for entry in result.vocabulary:
            lines.append((entry.word, "heading"))
            if entry.phonetic:
                lines.append((f"  [{entry.phonetic}]", "muted"))
            lines += [
                (f"\n{entry.translation}", "bold"),
                (f"   {entry.category} · {entry.difficulty}\n", "muted"),
                (f"{entry.example}\n" if entry.example else "", None),
                (f"{entry.context}\n\n" if entry.context else "\n", "muted"),
            ]
        return lines

    @staticmethod
    def _story_lines(result: AnalysisResult) -> List[Tuple[str, Optional[str]]]:
        story = result.story
        if story is None or not story.content:
            return [("No story generated.", "muted")]
        stars = DIFFICULTY_STARS.get(story.difficulty, "★★★")
        lines: List[Tuple[str, Optional[str]]] = [
            (f"{story.title}\n", "heading"),
            (f"Difficulty: {stars} {story.difficulty} · {story.word_count} words\n\n", "muted"),
            (f"{story.content}\n", None),
        ]
        if story.key_vocabulary:
            lines += [("\nKey vocabulary: ", "bold"), (", ".join(story.key_vocabulary) + "\n", None)]
        if story.moral:
            lines += [("\nMoral: ", "bold"), (f"{story.moral}\n", None)]
        if story.translation:
            lines += [("\nSummary: ", "bold"), (f"{story.translation}\n", "muted")]
        return lines

    @staticmethod
    def _conversation_lines(result: AnalysisResult) -> List[Tuple[str, Optional[str]]]:
        conversation = result.conversation
        if conversation is None or not conversation.dialogue:
            return [("No conversations generated.", "muted")]
        lines: List[Tuple[str, Optional[str]]] = [
            (f"{conversation.scenario}\n", "heading"),
            (f"Participants: {', '.join(conversation.participants)} · Level: {conversation.difficulty}\n\n", "muted"),
        ]
        for line in conversation.dialogue:
            lines += [(f"{line.speaker}: ", "bold"), (f"{line.text}\n", None),
                      (f"    {line.translation}\n\n", "muted")]
        if conversation.cultural_notes:
            lines += [("Cultural note: ", "bold"), (f"{conversation.cultural_notes}\n", None)]
        return lines

    def reset(self) -> None:
        self._clear_preview()
        self.input_title.configure(text="")
        self.input_meta.configure(text="")
        self.show_progress("", 0)
        for panel in self.panels.values():
            panel.set_lines([])
        self.enable_actions(rerun=False, export=False)


# ---------------------------------------------------------------------------
# Practice card
# ---------------------------------------------------------------------------

class PracticeCard(ttk.Frame):
    def __init__(self, parent, controller: LingoLensApp) -> None:
        super().__init__(parent)
        self.controller = controller
        self.columnconfigure(0, weight=1)
        self.rowconfigure(1, weight=1)
        self._selected_source: Optional[int] = None
        self._source_buttons: Dict[int, ttk.Button] = {}
        self._target_buttons: Dict[int, ttk.Button] = {}

        top = ttk.Frame(self)
        top.grid(row=0, column=0, sticky="ew", padx=20, pady=(16, 8))
        top.columnconfigure(1, weight=1)
        ttk.Button(top, text="← Back", command=self._on_back).grid(row=0, column=0)
        self.coverage_label = ttk.Label(top, text="", style="Muted.TLabel")
        self.coverage_label.grid(row=0, column=1, sticky="e")

        self.notebook = ttk.Notebook(self)
        self.notebook.grid(row=1, column=0, sticky="nsew", padx=20, pady=(0, 16))

        # Word match tab
        self.match_tab = ttk.Frame(self.notebook)
        self.notebook.add(self.match_tab, text="Word match")
        self.match_tab.columnconfigure(0, weight=1)
        self.match_tab.columnconfigure(1, weight=1)
        self.round_label = ttk.Label(self.match_tab, text="", font=("Helvetica", 15, "bold"))
        self.round_label.grid(row=0, column=0, sticky="w", pady=(12, 4), padx=12)
        self.match_progress_label = ttk.Label(self.match_tab, text="", style="Muted.TLabel")
        self.match_progress_label.grid(row=0, column=1, sticky="e", pady=(12, 4), padx=12)
        self.source_column = ttk.Frame(self.match_tab)
        self.source_column.grid(row=1, column=0, sticky="nsew", padx=12)
        self.target_column = ttk.Frame(self.match_tab)
        self.target_column.grid(row=1, column=1, sticky="nsew", padx=12)
        self.next_round_button = ttk.Button(self.match_tab, text="Next round", command=self._on_next_round,
                                            state="disabled")
        self.next_round_button.grid(row=2, column=0, columnspan=2, pady=12)

        # Sentence tab
        self.sentence_tab = ttk.Frame(self.notebook)
        self.notebook.add(self.sentence_tab, text="Sentences")
        self.sentence_tab.columnconfigure(0, weight=1)
        self.sentence_position_label = ttk.Label(self.sentence_tab, text="", style="Muted.TLabel")
        self.sentence_position_label.grid(row=0, column=0, sticky="w", padx=12, pady=(12, 4))
        self.source_sentence_label = ttk.Label(self.sentence_tab, text="", font=("Helvetica", 16, "bold"),
                                               wraplength=800)
        self.source_sentence_label.grid(row=1, column=0, sticky="w", padx=12, pady=(0, 12))
        self.answer_var = tk.StringVar()
        self.answer_entry = ttk.Entry(self.sentence_tab, textvariable=self.answer_var, font=("Helvetica", 14))
        self.answer_entry.grid(row=2, column=0, sticky="ew", padx=12)
        self.answer_entry.bind("<Return>", lambda _e: self._on_submit_sentence())
        buttons = ttk.Frame(self.sentence_tab)
        buttons.grid(row=3, column=0, sticky="w", padx=12, pady=8)
        ttk.Button(buttons, text="Check", command=self._on_submit_sentence).grid(row=0, column=0, padx=(0, 6))
        self.next_sentence_button = ttk.Button(buttons, text="Next sentence", command=self._on_next_sentence,
                                               state="disabled")
        self.next_sentence_button.grid(row=0, column=1)
        self.feedback = ReadOnlyText(self.sentence_tab, height=6)
        self.feedback.grid(row=4, column=0, sticky="nsew", padx=12, pady=(0, 12))

    def apply_palette(self, palette: Dict[str, str]) -> None:
        self.feedback.apply_palette(palette)

    def _on_back(self) -> None:
        target = "AnalysisCard" if self.controller.input_summary is not None else "UploadCard"
        self.controller.show_card(target)

    def refresh(self) -> None:
        """Rebuild both tabs from the current GameState."""
        state = self.controller.game_state
        if not state.seeded:
            self.coverage_label.configure(text="Select an image or description to start practicing.")
            self._clear_board()
            self.round_label.configure(text="")
            self.match_progress_label.configure(text="")
            self.source_sentence_label.configure(text="")
            self.sentence_position_label.configure(text="")
            self.feedback.set_lines([])
            return
        counts = coverage(state.dictionary, state.languages)
        self.coverage_label.configure(
            text=f"{language_name(state.languages.source)} → {language_name(state.languages.target)} · "
                 f"{counts['words']} words, {counts['sentences']} sentences"
        )
        self._render_round()
        self._render_sentence()

    # Word match -----------------------------------------------------------

    def _clear_board(self) -> None:
        for column in (self.source_column, self.target_column):
            for child in column.winfo_children():
                child.destroy()
        self._source_buttons.clear()
        self._target_buttons.clear()
        self._selected_source = None

    def _render_round(self) -> None:
        game = self.controller.game_state.word_match
        self._clear_board()
        if game is None:
            return
        board = game.current
        for row, (item_id, text) in enumerate(board.source_items):
            button = ttk.Button(self.source_column, text=text, command=lambda i=item_id: self._on_pick_source(i))
            button.grid(row=row, column=0, sticky="ew", pady=3)
            self._source_buttons[item_id] = button
        for row, (item_id, text) in enumerate(board.target_items):
            button = ttk.Button(self.target_column, text=text, command=lambda i=item_id: self._on_pick_target(i))
            button.grid(row=row, column=0, sticky="ew", pady=3)
            self._target_buttons[item_id] = button
        self.source_column.columnconfigure(0, weight=1)
        self.target_column.columnconfigure(0, weight=1)
        self.round_label.configure(text=f"Round {game.round_number} / {game.rounds}")
        self._update_match_progress()

    def _update_match_progress(self) -> None:
        game = self.controller.game_state.word_match
        matched, total = game.current.progress
        self.match_progress_label.configure(text=f"{matched} / {total} matched")
        complete = game.current.is_complete
        self.next_round_button.configure(state="normal" if complete and game.has_next_round else "disabled")
        if complete and not game.has_next_round:
            self.match_progress_label.configure(text=f"{matched} / {total} matched · all rounds done!")

    def _on_pick_source(self, item_id: int) -> None:
        board = self.controller.game_state.word_match.current
        if item_id in board.matched:
            return
        if self._selected_source is not None and self._selected_source not in board.matched:
            self._source_buttons[self._selected_source].configure(style="TButton")
        self._selected_source = item_id
        self._source_buttons[item_id].configure(style="Selected.TButton")

    def _on_pick_target(self, item_id: int) -> None:
        board = self.controller.game_state.word_match.current
        if self._selected_source is None or item_id in board.matched:
            return
        source_id = self._selected_source
        if board.match(source_id, item_id):
            for button in (self._source_buttons[source_id], self._target_buttons[item_id]):
                button.configure(style="Matched.TButton", state="disabled")
            self._selected_source = None
            self._update_match_progress()
        else:
            button = self._target_buttons[item_id]
            button.configure(style="Wrong.TButton")
            self.after(600, lambda: button.winfo_exists() and button.configure(style="TButton"))

    def _on_next_round(self) -> None:
        game = self.controller.game_state.word_match
        if game is not None and game.has_next_round:
            game.next_round()
            self._render_round()

    # Sentences ------------------------------------------------------------

    def _render_sentence(self) -> None:
        practice = self.controller.game_state.sentences
        self.answer_var.set("")
        self.feedback.set_lines([])
        if practice is None or practice.current is None:
            self.source_sentence_label.configure(text="No sentences available for this language pair.")
            self.sentence_position_label.configure(text="")
            self.next_sentence_button.configure(state="disabled")
            return
        self.sentence_position_label.configure(
            text=f"Sentence {practice.position + 1} / {len(practice.pairs)} · translate into "
                 f"{language_name(self.controller.game_state.languages.target)}"
        )
        self.source_sentence_label.configure(text=practice.current.source)
        self.next_sentence_button.configure(state="disabled")

    def _on_submit_sentence(self) -> None:
        practice = self.controller.game_state.sentences
        if practice is None or practice.current is None:
            return
        answer = self.answer_var.get()
        if not answer.strip():
            return
        matches = practice.submit(answer)
        lines: List[Tuple[str, Optional[str]]] = []
        for match in matches:
            lines.append((match.token + " ", match.status.value))
        lines += [("\n\nReference: ", "bold"), (practice.current.target, None)]
        correct = sum(1 for m in matches if m.status == TokenStatus.CORRECT)
        lines.append((f"\n{correct} of {len(matches)} words correct", "muted"))
        self.feedback.set_lines(lines)
        self.next_sentence_button.configure(state="normal" if practice.has_next else "disabled")

    def _on_next_sentence(self) -> None:
        practice = self.controller.game_state.sentences
        if practice is not None and practice.has_next:
            practice.advance()
            self._render_sentence()


# ---------------------------------------------------------------------------
# Settings dialog
# ---------------------------------------------------------------------------

class SettingsDialog(tk.Toplevel):
    def __init__(self, controller: LingoLensApp) -> None:
        super().__init__(controller)
        self.controller = controller
        self.title("Settings")
        self.transient(controller)
        self.resizable(False, False)
        self.configure(bg=controller.palette["bg"], padx=20, pady=16)

        ttk.Label(self, text="Ollama server URL").grid(row=0, column=0, sticky="w")
        self.url_var = tk.StringVar(value=controller.settings_store.settings.model_server_url)
        ttk.Entry(self, textvariable=self.url_var, width=42).grid(row=1, column=0, columnspan=3, pady=(4, 8))
        self.status_label = ttk.Label(self, text="", style="Muted.TLabel")
        self.status_label.grid(row=2, column=0, columnspan=3, sticky="w", pady=(0, 12))

        ttk.Button(self, text="Test connection", command=self._on_test).grid(row=3, column=0, sticky="w")
        ttk.Button(self, text="Cancel", command=self.destroy).grid(row=3, column=1, padx=6)
        ttk.Button(self, text="Save", command=self._on_save).grid(row=3, column=2)
        self.grab_set()

    def _on_test(self) -> None:
        self.status_label.configure(text="Testing...")
        client = OllamaClient(self.url_var.get().strip() or self.controller.client.base_url)
        self.controller.check_connection(client=client, on_done=self._show_status)

    def _show_status(self, status: ConnectionStatus) -> None:
        if not self.winfo_exists():
            return
        if status.reachable:
            found = "model available" if status.model_available else "required model not found"
            self.status_label.configure(text=f"Connected ({found}, {len(status.models)} models installed)")
        else:
            self.status_label.configure(text="Connection failed")

    def _on_save(self) -> None:
        try:
            self.controller.set_server_url(self.url_var.get())
        except (ValueError, OSError) as e:
            messagebox.showerror("Settings", str(e), parent=self)
            return
        self.destroy()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    logger.separator("Application Starting")
    try:
        app = LingoLensApp()
    except (OSError, ValueError, tk.TclError) as e:
        logger.error(f"Could not start LingoLens: {e}", exc_info=True)
        raise
    logger.success("Application window created, entering main loop")
    app.mainloop()
    logger.separator("Application Closed")


if __name__ == "__main__":
    main()
