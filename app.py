"""
Letter template editor API: editing sessions, preview and Blade export under /editor.
Run: python app.py  then POST http://127.0.0.1:5000/editor/api/session
"""
import logging

from flask import Flask, jsonify

from editor_bp import editor_bp
from lettergen.config import LOG_LEVEL, MAX_UPLOAD_MB

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_MB * 1024 * 1024
app.register_blueprint(editor_bp)


@app.route("/")
def index():
    return jsonify({"ok": True, "editor": "/editor/api/session"})


@app.errorhandler(413)
def too_large(e):
    return jsonify({"error": f"File too large (max {MAX_UPLOAD_MB} MB)"}), 413


if __name__ == "__main__":
    app.run(debug=True, port=5000, use_reloader=False)
