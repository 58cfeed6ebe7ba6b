"""
One editing session: the current DocumentSettings plus a live surface, controller and command
executor per fragment. Everything that changes the settings goes through here so the surfaces
and the authoritative fragments stay reconciled.
"""
import logging
import threading
from functools import partial

from editing.commands import Command, CommandExecutor, InsertRaw, InsertText
from editing.controller import SurfaceController
from editing.surface import Selection, Surface
from lettergen import settings as settings_ops
from lettergen import variables as registry
from lettergen.analysis import DocumentAnalyzer, settings_from_analysis
from lettergen.compiler import CompiledDocument, compile_document
from lettergen.errors import AnalysisInProgressError, UnknownFragmentError
from lettergen.logo import LogoGenerator
from lettergen.settings import FRAGMENT_FIELDS, DocumentSettings, default_settings
from lettergen.uploads import accept_attachment_image, accept_for_analysis, attachment_image_markup

logger = logging.getLogger(__name__)


class EditorSession:

    def __init__(self, settings: DocumentSettings | None = None, analyzer: DocumentAnalyzer | None = None,
                 logo_generator: LogoGenerator | None = None, focus_reporting: bool = True):
        self._settings = settings or default_settings()
        self._analyzer = analyzer or DocumentAnalyzer()
        self._logo_generator = logo_generator or LogoGenerator()
        self._analysis_lock = threading.Lock()
        self._lock = threading.RLock()
        self._controllers: dict[str, SurfaceController] = {}
        self._executors: dict[str, CommandExecutor] = {}
        for fragment_id in FRAGMENT_FIELDS:
            surface = Surface(fragment_id, focus_reporting=focus_reporting)
            controller = SurfaceController(surface, on_change=partial(self._on_fragment_change, fragment_id))
            controller.mount(self._settings.fragment(fragment_id))
            self._controllers[fragment_id] = controller
            self._executors[fragment_id] = CommandExecutor(controller)

    @property
    def settings(self) -> DocumentSettings:
        return self._settings

    @property
    def analysis_pending(self) -> bool:
        return self._analysis_lock.locked()

    def controller(self, fragment_id: str) -> SurfaceController:
        try:
            return self._controllers[fragment_id]
        except KeyError:
            raise UnknownFragmentError(fragment_id) from None

    def surface(self, fragment_id: str) -> Surface:
        return self.controller(fragment_id).surface

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def _on_fragment_change(self, fragment_id: str, markup: str) -> None:
        # surface -> authority; the surface already shows markup, so no sync back
        self._settings = settings_ops.update_settings(self._settings, FRAGMENT_FIELDS[fragment_id], markup)

    def replace_settings(self, settings: DocumentSettings) -> DocumentSettings:
        """Swap in new settings as one step and push changed fragments to the surfaces."""
        with self._lock:
            self._settings = settings
            for fragment_id, controller in self._controllers.items():
                controller.sync_from_authority(settings.fragment(fragment_id))
            return self._settings

    def update(self, path, value) -> DocumentSettings:
        with self._lock:
            return self.replace_settings(settings_ops.update_settings(self._settings, path, value))

    def update_many(self, changes: dict) -> DocumentSettings:
        with self._lock:
            return self.replace_settings(settings_ops.update_many(self._settings, changes))

    def reset(self) -> DocumentSettings:
        return self.replace_settings(default_settings())

    def set_unit(self, unit) -> DocumentSettings:
        with self._lock:
            return self.replace_settings(settings_ops.convert_settings_unit(self._settings, unit))

    def apply_preset(self, page_size) -> DocumentSettings:
        with self._lock:
            return self.replace_settings(settings_ops.apply_page_preset(self._settings, page_size))

    # -------------------------------------------------------------------------
    # Surfaces
    # -------------------------------------------------------------------------

    def focus(self, fragment_id: str) -> None:
        self.surface(fragment_id).focus()

    def blur(self, fragment_id: str) -> DocumentSettings:
        with self._lock:
            self.controller(fragment_id).handle_blur()
            return self._settings

    def mirror_input(self, fragment_id: str, markup: str, focused: bool | None = None) -> DocumentSettings:
        """A raw input event from a remote surface: take its markup as the live content."""
        with self._lock:
            surface = self.surface(fragment_id)
            if focused is True:
                surface.focus()
            elif focused is False:
                surface.blur()
            surface.set_inner_html(markup)
            surface.dispatch_input()
            return self._settings

    def execute(self, fragment_id: str, command: Command, selection: Selection | None = None) -> str:
        with self._lock:
            executor = self._executors.get(fragment_id)
            if executor is None:
                raise UnknownFragmentError(fragment_id)
            return executor.execute(command, selection)

    # -------------------------------------------------------------------------
    # Variables
    # -------------------------------------------------------------------------

    def insert_variable(self, fragment_id: str, name: str, selection: Selection | None = None) -> str:
        """Write {{ $key }} at the caret as plain text, then register key if it is new. Returns the key."""
        key = registry.clean_key(name)
        if not key:
            raise ValueError("Variable name needs at least one letter, digit or underscore")
        with self._lock:
            self.execute(fragment_id, InsertText(text=registry.canonical_token(key)), selection)
            self.replace_settings(settings_ops.register_variable(self._settings, key))
        return key

    def convert_selection_to_variable(self, fragment_id: str, name: str, selection: Selection,
                                      label: str | None = None) -> str:
        """
        Replace the selected range with a token. The selected text becomes the default value
        when the key is new. Only the selected nodes change, never other occurrences of the text.
        """
        key = registry.clean_key(name)
        if not key:
            raise ValueError("Variable name needs at least one letter, digit or underscore")
        if selection is None or selection.collapsed:
            raise ValueError("Select the text to turn into a variable first")
        with self._lock:
            surface = self.surface(fragment_id)
            selected = surface.text_content[selection.start_offset:selection.end_offset].strip()
            self.execute(fragment_id, InsertText(text=registry.canonical_token(key)), selection)
            self.replace_settings(settings_ops.register_variable(
                self._settings, key, label=label, default_value=selected or None,
            ))
        return key

    def add_variable(self, name: str, label: str | None = None, default_value: str | None = None) -> str:
        key = registry.clean_key(name)
        if not key:
            raise ValueError("Variable name needs at least one letter, digit or underscore")
        with self._lock:
            self.replace_settings(settings_ops.register_variable(self._settings, key, label, default_value))
        return key

    def update_variable(self, key: str, label: str | None = None, default_value: str | None = None,
                        new_key: str | None = None, update_tokens: bool = True) -> DocumentSettings:
        """Edit label / default and optionally rename, applied as one step: a failed rename changes nothing."""
        with self._lock:
            variables = registry.update_variable(self._settings.variables, key, label=label,
                                                 default_value=default_value)
            updated = settings_ops.update_settings(self._settings, "variables", variables)
            if new_key is not None and new_key != key:
                updated = settings_ops.rename_variable(updated, key, new_key, update_tokens)
            return self.replace_settings(updated)

    def remove_variable(self, key: str) -> DocumentSettings:
        """Drop the entry. Tokens that use it stay in the fragments, unresolved."""
        with self._lock:
            if registry.get_variable(self._settings.variables, key) is None:
                raise KeyError(key)
            return self.update("variables", registry.remove_variable(self._settings.variables, key))

    def rename_variable(self, old_key: str, new_key: str, update_tokens: bool = True) -> DocumentSettings:
        with self._lock:
            return self.replace_settings(
                settings_ops.rename_variable(self._settings, old_key, new_key, update_tokens)
            )

    # -------------------------------------------------------------------------
    # External services
    # -------------------------------------------------------------------------

    def analyze(self, data: bytes, filename: str = "", mime_type: str | None = None) -> DocumentSettings:
        """
        Analyze an uploaded letter and replace the settings with the result.
        Only one analysis runs per session; a second call while one is pending raises
        AnalysisInProgressError. On failure the settings are left as they were.
        """
        upload = accept_for_analysis(data, filename, mime_type)
        if not self._analysis_lock.acquire(blocking=False):
            raise AnalysisInProgressError()
        try:
            logger.info("Analyzing %s (%s, %d bytes)", upload.filename or "upload", upload.mime_type, len(upload.data))
            result = self._analyzer.analyze(upload)
            seeded = settings_from_analysis(result, base=default_settings())
            logger.info("Analysis found %d variables, attachment=%s",
                        len(seeded.variables), seeded.has_attachment)
            return self.replace_settings(seeded)
        finally:
            self._analysis_lock.release()

    def generate_logo(self, prompt: str, aspect_ratio: str | None = None) -> DocumentSettings:
        ratio = settings_ops.coerce_aspect_ratio(aspect_ratio)
        logger.info("Generating logo (aspect ratio %s)", ratio)
        logo_url = self._logo_generator.generate(prompt, ratio)
        return self.update_many({"logo_url": logo_url, "logo_aspect_ratio": ratio})

    def insert_attachment_image(self, data: bytes, filename: str = "", mime_type: str | None = None,
                                selection: Selection | None = None) -> str:
        upload = accept_attachment_image(data, filename, mime_type)
        return self.execute("attachment", InsertRaw(markup=attachment_image_markup(upload)), selection)

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def compile(self) -> CompiledDocument:
        return compile_document(self._settings)
