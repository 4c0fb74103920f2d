import logging
import sys
from typing import Optional

from ..config import LOG_FORMAT, LOG_LEVEL

ROOT_LOGGER = "sealcodes"


def _configure(root: logging.Logger) -> None:
    if root.handlers:
        return
    h = logging.StreamHandler(sys.stdout)
    h.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(h)
    root.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger under the ``sealcodes`` root; modules pass ``__name__``.

    Only the root carries a handler, children propagate to it.
    """
    root = logging.getLogger(ROOT_LOGGER)
    _configure(root)
    if not name or name == ROOT_LOGGER:
        return root
    prefix = ROOT_LOGGER + "."
    return root.getChild(name[len(prefix):] if name.startswith(prefix) else name)
