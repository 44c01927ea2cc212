"""Ruby Chat launcher.

``integrated`` (default) serves the API and the NiceGUI page from one
uvicorn process. ``separate`` runs the API on :8000 and the UI on :8080
as two child processes; the UI then reaches the API via API_BASE_URL.
"""

import logging
import os
import subprocess
import sys
import time

from dotenv import load_dotenv

# Before importing anything that reads configuration
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

API_PORT = 8000
UI_PORT = 8080


def _host() -> str:
    return os.getenv("HOST", "0.0.0.0")


def run_integrated() -> None:
    """Mount the chat page on the FastAPI app and serve both on PORT."""
    import uvicorn
    from nicegui import ui

    from ruby_chat.api.app import create_app
    from ruby_chat.ui.chat_page import chat_page  # noqa: F401 - registers "/"

    app = create_app()
    ui.run_with(
        app,
        title="Ruby",
        favicon="💎",
        storage_secret=os.getenv("NICEGUI_STORAGE_SECRET", "ruby-chat-secret"),
    )

    port = int(os.getenv("PORT", str(API_PORT)))
    logger.info(f"Ruby Chat on http://localhost:{port} (UI at /, API docs at /docs)")
    uvicorn.run(app, host=_host(), port=port, log_level=os.getenv("LOG_LEVEL", "info").lower())


def run_separate() -> None:
    """Run API and UI as child processes until either exits or Ctrl+C."""
    commands = {
        "api": [
            sys.executable, "-m", "uvicorn", "ruby_chat.api.app:app",
            "--host", _host(), "--port", str(API_PORT), "--reload",
        ],
        "ui": [sys.executable, "-c", "from ruby_chat.ui.chat_page import main; main()"],
    }
    logger.info(f"API on http://localhost:{API_PORT}, UI on http://localhost:{UI_PORT}")
    processes = {name: subprocess.Popen(cmd) for name, cmd in commands.items()}

    try:
        while all(proc.poll() is None for proc in processes.values()):
            time.sleep(1)
        exited = [name for name, proc in processes.items() if proc.poll() is not None]
        logger.warning(f"Process exited: {', '.join(exited)}")
    except KeyboardInterrupt:
        logger.info("Shutting down servers...")
    finally:
        for proc in processes.values():
            proc.terminate()
        for proc in processes.values():
            proc.wait()


def main() -> None:
    """Entry point for the ``ruby-chat`` script.

    RUN_MODE selects ``integrated`` or ``separate``.
    """
    mode = os.getenv("RUN_MODE", "integrated").lower()
    logger.info(f"Starting Ruby Chat in {mode} mode")

    if mode == "separate":
        run_separate()
    else:
        run_integrated()


if __name__ == "__main__":
    main()
