import sys
from loguru import logger

_configured_level = None

def configure_logging(level: str = "INFO"):
    """Route loguru output to stderr at ``level``.

    Safe to call once per app; re-configuring with the same level is a no-op.
    """
    global _configured_level
    level = (level or "INFO").upper()
    if _configured_level == level:
        return logger
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
               "<cyan>{extra[name]}</cyan> - <level>{message}</level>",
    )
    logger.configure(extra={"name": "delivery_api"})
    _configured_level = level
    return logger

def get_logger(name: str = None):
    """Logger bound to ``name`` (shown in every record)."""
    if name:
        return logger.bind(name=name)
    return logger
