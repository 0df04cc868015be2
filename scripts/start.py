#!/usr/bin/env python3
"""
Container entrypoint: run the release step, then hand the process over to
gunicorn so it receives signals directly.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

DEFAULT_PORT = 8080


def listen_port(raw: str | None) -> int:
    if not (raw or "").strip():
        return DEFAULT_PORT
    try:
        port = int(raw)
    except ValueError:
        raise SystemExit(f"PORT must be an integer, got {raw!r}")
    if not 1 <= port <= 65535:
        raise SystemExit(f"PORT out of range: {port}")
    return port


def gunicorn_argv(port: int, workers: int = 2) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        f"--bind=0.0.0.0:{port}",
        f"--workers={workers}",
        "--timeout=60",
        "--preload",
        "--access-logfile=-",
        "--error-logfile=-",
    ]


def main() -> None:
    port = listen_port(os.environ.get("PORT"))

    from scripts.release import run_release

    run_release()
    argv = gunicorn_argv(port, workers=int(os.environ.get("WEB_CONCURRENCY") or 2))
    print(f"exec {' '.join(argv)}", flush=True)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
