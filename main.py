"""
main.py — CBT test session server entry point

  exam-prep-cbt                 serve on HOST:PORT
  exam-prep-cbt --open          also open the test list in a browser once up
  exam-prep-cbt --port 0        pick any free port
"""

import argparse
import logging
import os
import socket
import sys
import threading
import time
import webbrowser

# ── Package path (must come first) ───────────────────────────────────────────
# api/ and exam_prep_cbt/ import from BASE_DIR without installation.
_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
if _BASE_DIR not in sys.path:
    sys.path.insert(0, _BASE_DIR)

from config import DEFAULT_HOST, DEFAULT_PORT, LOG_FILE, REPORTS_DIR, TESTS_DIR

logger = logging.getLogger(__name__)


# ── Logging ──────────────────────────────────────────────────────────────────

class _NullStream:
    """Stand-in for stdout/stderr when launched without a console."""

    def write(self, data): pass
    def flush(self): pass
    def isatty(self): return False


def _setup_logging(verbose: bool) -> None:
    if sys.stdout is None:
        sys.stdout = _NullStream()
    if sys.stderr is None:
        sys.stderr = _NullStream()

    level = logging.DEBUG if verbose else logging.INFO
    fmt = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
    try:
        logging.basicConfig(
            level=level,
            format=fmt,
            handlers=[
                logging.FileHandler(LOG_FILE, encoding='utf-8'),
                logging.StreamHandler(sys.stdout),
            ],
        )
    except PermissionError:
        # log file not writable: console only
        logging.basicConfig(level=level, format=fmt)


# ── Network helpers ──────────────────────────────────────────────────────────

def _free_port(host: str) -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return s.getsockname()[1]


def _open_when_ready(host: str, port: int, timeout: float = 15.0) -> None:
    """Poll the port, then open the test list. Runs on a daemon thread."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            with socket.create_connection((host, port), timeout=0.5):
                break
        except OSError:
            time.sleep(0.1)
    else:
        logger.error(f"server not reachable on {host}:{port} after {timeout:.0f}s")
        return
    url = f"http://{host}:{port}/"
    logger.info(f"opening browser: {url}")
    webbrowser.open(url)


# ── Main ─────────────────────────────────────────────────────────────────────

def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Timed CBT test session server")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="0 picks a free port")
    parser.add_argument("--tests-dir", default=TESTS_DIR, help="directory of test definitions")
    parser.add_argument("--reports-dir", default=REPORTS_DIR, help="directory for saved reports")
    parser.add_argument("--open", action="store_true", help="open a browser once the server is up")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = _parse_args(argv)
    _setup_logging(args.verbose)

    import uvicorn
    from api.app import create_app

    port = args.port or _free_port(args.host)
    logger.info(f"=== CBT test session server on {args.host}:{port} ===")
    logger.info(f"tests: {args.tests_dir}  reports: {args.reports_dir}")

    if args.open:
        threading.Thread(target=_open_when_ready, args=(args.host, port), daemon=True).start()

    app = create_app(tests_dir=args.tests_dir, reports_dir=args.reports_dir)
    uvicorn.run(app, host=args.host, port=port, log_level="warning")
    logger.info("server stopped")


if __name__ == "__main__":
    main()
