import logging
import os
from typing import Dict, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Third-party loggers re-routed through root: env var holding the level, and its default.
# httpx logs every request line (query string included) at INFO.
ROUTED_LOGGERS: Dict[str, tuple] = {
    "apscheduler": ("LOG_LEVEL", "INFO"),
    "httpx": ("HTTP_LOG_LEVEL", "WARNING"),
    "sqlalchemy.engine": ("SQL_LOG_LEVEL", "WARNING"),
}


def _env_level(env_name: str, default: str) -> int:
    name = (os.getenv(env_name) or default).strip().upper()
    return getattr(logging, name, getattr(logging, default))


def configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_env_level("LOG_LEVEL", "INFO"))

    for name, (env_name, default) in ROUTED_LOGGERS.items():
        lg = logging.getLogger(name)
        lg.handlers.clear()
        lg.propagate = True
        lg.setLevel(_env_level(env_name, default))


configure_logging()


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Loggers live under the ``pitchedge`` namespace: get_logger("services.ledger")."""
    if not name:
        return logging.getLogger("pitchedge")
    return logging.getLogger(f"pitchedge.{name}")
