"""
main.py — Single entry point.

Runs the analysis REST API in one asyncio event loop, with no threads or subprocesses.

Architecture:
  asyncio event loop
    └── aiohttp web server
          ├── Orchestrator   (identification + memoized facets)
          └── ChatHandler    (product Q&A)
        both sharing one StrategyCatalog and one AnalysisStore
"""
import asyncio
import logging
import signal
import sys

from catalog import StrategyCatalog
from chat import ChatHandler
from config import Settings
from orchestrator import Orchestrator
from server import build_web_app, start_server
from storage.base import build_store

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings) -> None:
    # Log file lives in DATA_DIR next to the SQLite database
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        level=getattr(logging, settings.log_level, logging.INFO),
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(str(settings.data_dir / "server.log"), encoding="utf-8"),
        ],
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


async def run(settings: Settings) -> None:
    # ── Storage bootstrap (must happen before anything else) ──────────────────
    store = build_store(settings)
    try:
        await store.init()
    except Exception as exc:
        logger.critical("FATAL: store init failed: %s", exc, exc_info=True)
        raise

    catalog = StrategyCatalog(settings)
    if not any(p.configured for p in catalog.providers):
        logger.warning("No LLM provider has an API key; every upload will use the fallback path.")
    orchestrator = Orchestrator(settings, store, catalog)
    chat = ChatHandler(orchestrator, catalog)

    runner = await start_server(build_web_app(settings, orchestrator, chat), settings.host, settings.port)

    stop_event = asyncio.Event()

    def _stop(*_):
        logger.info("Shutdown signal received.")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _stop)
        except (NotImplementedError, RuntimeError):
            # Windows doesn't support add_signal_handler for all signals
            pass

    logger.info("✅ Server is running. Press Ctrl+C to stop.")

    # Block until signal received
    try:
        await stop_event.wait()
    except (KeyboardInterrupt, SystemExit):
        pass

    logger.info("Shutting down…")
    await runner.cleanup()
    await store.close()
    logger.info("Goodbye.")


def main() -> None:
    settings = Settings.from_env()
    setup_logging(settings)
    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
