"""
Flask Blueprint for the letter template editor.
Mount at /editor (e.g. /editor/api/session to start editing, /editor/api/session/<token>/export
for the Blade download).
Sessions live in memory, keyed by a short-lived token; idle sessions expire after SESSION_TTL_SEC.
"""
import secrets
import threading
import time

from flask import Blueprint, Response, current_app, jsonify, request
from pydantic import ValidationError
from werkzeug.utils import secure_filename

from editing.commands import parse_command
from editing.surface import Selection
from lettergen.compiler import EXPORT_FILENAME
from lettergen.config import SESSION_TTL_SEC
from lettergen.errors import (
    AnalysisInProgressError,
    LetterGenError,
    ServiceError,
    UnknownFragmentError,
    UnknownSessionError,
    UnsupportedInputError,
)
from lettergen.session import EditorSession

editor_bp = Blueprint("editor", __name__, url_prefix="/editor")

# token -> { "session": EditorSession, "touched": last access time }
_SESSION_STORE = {}
_STORE_TTL_SEC = SESSION_TTL_SEC
_STORE_LOCK = threading.Lock()


def _expire_old():
    now = time.time()
    with _STORE_LOCK:
        for token in list(_SESSION_STORE):
            if now - _SESSION_STORE[token]["touched"] > _STORE_TTL_SEC:
                del _SESSION_STORE[token]


def _get_session(token: str) -> EditorSession:
    _expire_old()
    with _STORE_LOCK:
        entry = _SESSION_STORE.get(token)
        if not entry:
            raise UnknownSessionError(token)
        entry["touched"] = time.time()
        return entry["session"]


def _new_session() -> EditorSession:
    factory = current_app.config.get("EDITOR_SESSION_FACTORY") or EditorSession
    return factory()


def _json_body() -> dict:
    data = request.get_json(force=True, silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Invalid JSON body")
    return data


def _selection(fragment_id: str, data) -> Selection | None:
    if not data:
        return None
    if not isinstance(data, dict):
        raise ValueError("Missing or invalid 'selection' field")
    return Selection(
        fragment_id=fragment_id,
        start_offset=data.get("start_offset", data.get("startOffset")),
        end_offset=data.get("end_offset", data.get("endOffset")),
    )


def _settings_payload(session: EditorSession):
    return jsonify({"settings": session.settings.model_dump(mode="json")})


def _fragment_payload(session: EditorSession, fragment_id: str, **extra):
    surface = session.surface(fragment_id)
    selection = surface.selection
    return jsonify({
        "html": surface.inner_html,
        "selection": selection.model_dump() if selection else None,
        "settings": session.settings.model_dump(mode="json"),
        **extra,
    })


# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------

def _status_for(e: LetterGenError) -> int:
    if isinstance(e, (UnknownFragmentError, UnknownSessionError)):
        return 404
    if isinstance(e, AnalysisInProgressError):
        return 409
    if isinstance(e, UnsupportedInputError):
        return 415
    if isinstance(e, ServiceError):
        return 502
    return 400


@editor_bp.errorhandler(LetterGenError)
def _letter_gen_error(e):
    if isinstance(e, ServiceError):
        current_app.logger.warning("Service failure: %s", e.__cause__ or e)
    return jsonify({"error": e.message}), _status_for(e)


@editor_bp.errorhandler(ValidationError)
def _validation_error(e):
    first = e.errors()[0] if e.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()))
    message = first.get("msg", "Invalid value")
    return jsonify({"error": f"{where}: {message}" if where else message}), 400


@editor_bp.errorhandler(KeyError)
@editor_bp.errorhandler(IndexError)
def _bad_path(e):
    return jsonify({"error": f"Not found: {e.args[0] if e.args else e}"}), 400


@editor_bp.errorhandler(ValueError)
def _bad_value(e):
    return jsonify({"error": str(e)}), 400


# -----------------------------------------------------------------------------
# Session and settings
# -----------------------------------------------------------------------------

@editor_bp.route("/api/session", methods=["POST"])
def create_session():
    """Start an editing session from the built-in defaults. Returns its token and settings."""
    _expire_old()
    session = _new_session()
    token = secrets.token_urlsafe(12)
    with _STORE_LOCK:
        _SESSION_STORE[token] = {"session": session, "touched": time.time()}
    return jsonify({"token": token, "settings": session.settings.model_dump(mode="json")}), 201


@editor_bp.route("/api/session/<token>/settings", methods=["GET"])
def get_settings(token):
    return _settings_payload(_get_session(token))


@editor_bp.route("/api/session/<token>/settings", methods=["PATCH"])
def patch_settings(token):
    """Accept JSON { "path": "signatures.0.name", "value": ... } and update that one field."""
    session = _get_session(token)
    data = _json_body()
    path = data.get("path")
    if not path or not isinstance(path, (str, list)):
        return jsonify({"error": "Missing or invalid 'path' field"}), 400
    if "value" not in data:
        return jsonify({"error": "Missing 'value' field"}), 400
    session.update(path, data["value"])
    return _settings_payload(session)


@editor_bp.route("/api/session/<token>/reset", methods=["POST"])
def reset_settings(token):
    session = _get_session(token)
    session.reset()
    return _settings_payload(session)


@editor_bp.route("/api/session/<token>/unit", methods=["POST"])
def set_unit(token):
    session = _get_session(token)
    session.set_unit(_json_body().get("unit"))
    return _settings_payload(session)


@editor_bp.route("/api/session/<token>/preset", methods=["POST"])
def apply_preset(token):
    session = _get_session(token)
    session.apply_preset(_json_body().get("page_size"))
    return _settings_payload(session)


# -----------------------------------------------------------------------------
# Fragments
# -----------------------------------------------------------------------------

@editor_bp.route("/api/session/<token>/fragments/<fragment_id>/input", methods=["POST"])
def fragment_input(token, fragment_id):
    """Mirror a raw input event: JSON { "html": "...", "focused": true }."""
    session = _get_session(token)
    data = _json_body()
    html = data.get("html")
    if not isinstance(html, str):
        return jsonify({"error": "Missing or invalid 'html' field"}), 400
    focused = data.get("focused")
    session.mirror_input(fragment_id, html, focused if isinstance(focused, bool) else None)
    return _fragment_payload(session, fragment_id)


@editor_bp.route("/api/session/<token>/fragments/<fragment_id>/focus", methods=["POST"])
def fragment_focus(token, fragment_id):
    session = _get_session(token)
    session.focus(fragment_id)
    return _fragment_payload(session, fragment_id)


@editor_bp.route("/api/session/<token>/fragments/<fragment_id>/blur", methods=["POST"])
def fragment_blur(token, fragment_id):
    session = _get_session(token)
    session.blur(fragment_id)
    return _fragment_payload(session, fragment_id)


@editor_bp.route("/api/session/<token>/fragments/<fragment_id>/command", methods=["POST"])
def fragment_command(token, fragment_id):
    """Run a formatting command: JSON { "command": {"kind": "font_size", "pt": 14}, "selection": {...} }."""
    session = _get_session(token)
    data = _json_body()
    if not isinstance(data.get("command"), dict):
        return jsonify({"error": "Missing or invalid 'command' field"}), 400
    command = parse_command(data["command"])
    session.execute(fragment_id, command, _selection(fragment_id, data.get("selection")))
    return _fragment_payload(session, fragment_id)


@editor_bp.route("/api/session/<token>/fragments/<fragment_id>/variables", methods=["POST"])
def fragment_variable(token, fragment_id):
    """Insert {{ $key }} at the caret, or with "convert": true turn the selection into a variable."""
    session = _get_session(token)
    data = _json_body()
    key = data.get("key")
    if not isinstance(key, str):
        return jsonify({"error": "Missing or invalid 'key' field"}), 400
    selection = _selection(fragment_id, data.get("selection"))
    if data.get("convert"):
        key = session.convert_selection_to_variable(fragment_id, key, selection, label=data.get("label"))
    else:
        key = session.insert_variable(fragment_id, key, selection)
    return _fragment_payload(session, fragment_id, key=key)


# -----------------------------------------------------------------------------
# Variables
# -----------------------------------------------------------------------------

@editor_bp.route("/api/session/<token>/variables", methods=["POST"])
def add_variable(token):
    session = _get_session(token)
    data = _json_body()
    key = data.get("key")
    if not isinstance(key, str):
        return jsonify({"error": "Missing or invalid 'key' field"}), 400
    session.add_variable(key, data.get("label"), data.get("default_value"))
    return _settings_payload(session), 201


@editor_bp.route("/api/session/<token>/variables/<key>", methods=["PATCH"])
def update_variable(token, key):
    """JSON { "label": ..., "default_value": ..., "key": <new key>, "update_tokens": true }."""
    session = _get_session(token)
    data = _json_body()
    new_key = data.get("key")
    session.update_variable(
        key,
        label=data.get("label"),
        default_value=data.get("default_value"),
        new_key=new_key if isinstance(new_key, str) else None,
        update_tokens=data.get("update_tokens", True) is not False,
    )
    return _settings_payload(session)


@editor_bp.route("/api/session/<token>/variables/<key>", methods=["DELETE"])
def delete_variable(token, key):
    session = _get_session(token)
    session.remove_variable(key)
    return _settings_payload(session)


# -----------------------------------------------------------------------------
# Services and files
# -----------------------------------------------------------------------------

@editor_bp.route("/api/session/<token>/analyze", methods=["POST"])
def analyze_document(token):
    """Multipart upload (field "file") of a letter image or PDF; replaces the settings with the analysis."""
    session = _get_session(token)
    if "file" not in request.files:
        return jsonify({"error": "No file part"}), 400
    file = request.files["file"]
    if file.filename == "":
        return jsonify({"error": "No file selected"}), 400
    session.analyze(file.read(), secure_filename(file.filename), file.mimetype)
    return _settings_payload(session)


@editor_bp.route("/api/session/<token>/logo", methods=["POST"])
def generate_logo(token):
    session = _get_session(token)
    data = _json_body()
    prompt = data.get("prompt")
    if not isinstance(prompt, str):
        return jsonify({"error": "Missing or invalid 'prompt' field"}), 400
    session.generate_logo(prompt, data.get("aspect_ratio"))
    return _settings_payload(session)


@editor_bp.route("/api/session/<token>/attachment-image", methods=["POST"])
def attachment_image(token):
    """Multipart upload (field "file") of an image, inserted inline into the attachment."""
    session = _get_session(token)
    if "file" not in request.files:
        return jsonify({"error": "No file part"}), 400
    file = request.files["file"]
    if file.filename == "":
        return jsonify({"error": "No file selected"}), 400
    session.insert_attachment_image(file.read(), secure_filename(file.filename), file.mimetype)
    return _fragment_payload(session, "attachment")


# -----------------------------------------------------------------------------
# Output
# -----------------------------------------------------------------------------

@editor_bp.route("/api/session/<token>/preview", methods=["GET"])
def preview(token):
    session = _get_session(token)
    return Response(session.compile().preview_markup, mimetype="text/html")


@editor_bp.route("/api/session/<token>/export", methods=["GET"])
def export_template(token):
    """Return the Blade template as a download."""
    session = _get_session(token)
    return Response(
        session.compile().export_markup,
        mimetype="text/plain",
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"},
    )
