"""
Run the letter template editor API (sessions, preview and Blade export at /editor).
Activate your venv first, then: python run_flask.py  (PORT overrides 5000)
"""
import os
import sys
from pathlib import Path

# Ensure project root is on path
_root = Path(__file__).resolve().parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from app import app

if __name__ == "__main__":
    port = int(os.getenv("PORT", "5000"))
    app.run(debug=True, port=port, use_reloader=False)
