"""
Entry point for the interactive terminal copilot.
"""

import logging
import sys

from utils.config import initialize_environment

from .terminal import main


def run() -> int:
    """Configure logging and the environment, then start the terminal copilot."""
    # Configure logging
    logging.basicConfig(
        level=logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )
    initialize_environment()
    return main()


if __name__ == "__main__":
    sys.exit(run())
