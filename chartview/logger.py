from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(
    level: Union[int, str] = logging.INFO,
    logfile: Optional[Path] = None,
) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(logfile))
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        handlers=handlers,
    )
    # urllib3 logs every tile request at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
