"""Entry point for running pushscribe as a module: python -m pushscribe"""

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from pushscribe.app import DictationApp
from pushscribe.config import Config


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity setting."""
    # Only show warnings and above unless explicitly verbose
    level = logging.DEBUG if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    # Reduce noise from all third-party libraries
    for name in ("urllib3", "httpx", "httpcore", "mlx", "sounddevice", "pynput"):
        logging.getLogger(name).setLevel(logging.ERROR)


def main() -> int:
    """Main entry point."""
    # Load .env before reading configuration from the environment
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config = Config.from_env()
    setup_logging(config.verbose)

    app = DictationApp(config)

    try:
        app.run()
        return 0
    except KeyboardInterrupt:
        print("\n👋 Interrupted")
        return 130
    except Exception as e:
        logging.exception("Fatal error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
