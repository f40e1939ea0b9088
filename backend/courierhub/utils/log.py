import logging
import sys

from courierhub.config import settings


def get_logger(name: str, prefix: str = None) -> logging.Logger:
    """
    Return the named logger, attaching a stdout handler with a bracketed
    component prefix the first time it is requested.
    """
    log = logging.getLogger(name)
    log.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    if not log.handlers:
        h = logging.StreamHandler(sys.stdout)
        tag = (prefix or name.rsplit(".", 1)[-1]).upper()
        h.setFormatter(logging.Formatter(f"[{tag}] %(levelname)s %(message)s"))
        log.addHandler(h)
        log.propagate = False
    return log
