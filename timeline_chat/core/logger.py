import logging

from timeline_chat.core.config import settings

ROOT_LOGGER_NAME = "timeline_chat"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s"


def _root_logger() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.setLevel(logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL.upper())
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``timeline_chat`` hierarchy; all of them share one handler."""
    _root_logger()
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
