import sys
import logging
from pathlib import Path


def setup_paths():
    """Setup Python paths for proper module resolution"""
    src_dir = Path(__file__).parent / "src"
    if str(src_dir) not in sys.path:
        sys.path.insert(0, str(src_dir))
    return src_dir


def main():
    """Main entry point"""
    setup_paths()

    from config import config
    config.setup_logging()
    logging.getLogger(__name__).info(f"Starting {config.APP_NAME} v{config.APP_VERSION}")

    from main import main as app_main
    app_main()


if __name__ == "__main__":
    main()
