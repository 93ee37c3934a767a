"""MindCanvas launcher.

Provides a stable entry point that configures logging and runs preflight
checks before importing GTK-related modules, which gives clearer error
messages on new systems.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

LOG_LEVEL_ENV = "MINDCANVAS_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[Union[str, int]] = None) -> int:
    """Install the stream handler used by the editor and the CLI.

    Returns the numeric level that was applied.
    """
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "WARNING")
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("mindcanvas").setLevel(level)
    return level


def main() -> int:
    configure_logging()

    from mindcanvas.preflight import run_preflight_or_die

    run_preflight_or_die(check_deps=True, require_gui=True)

    from mindcanvas.app import main as app_main

    return int(app_main())


if __name__ == "__main__":
    raise SystemExit(main())
