#!/usr/bin/env python3
"""Run the Ollama web tools MCP server over stdio or streamable HTTP."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ollama_web_lib.cli import main  # noqa: E402

if __name__ == "__main__":  # pragma: no cover - script entry
    main()
