"""Container healthcheck: exit 0 once the API reports the catalog loaded and the pipeline wired."""

from __future__ import annotations

import json
import os
import sys
import urllib.error
import urllib.request

port = os.environ.get("SMILE_API_PORT", "8080")

try:
    with urllib.request.urlopen(f"http://localhost:{port}/ready", timeout=5) as resp:
        body = json.load(resp)
except (urllib.error.URLError, OSError, ValueError):
    sys.exit(1)

sys.exit(0 if body.get("status") == "ready" else 1)
