import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
import json
from typing import Any

from vnsalary.core.config import settings

def mkdir_safe(path: str):
    Path(path).mkdir(parents=True, exist_ok=True)

def atomic_write_json(path: str, obj: Any):
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, default=str)
    os.replace(str(tmp), str(p))

def resolve_log_level(component: str, log_level: str = None) -> int:
    """Explicit level, else the component's entry in LOG_LEVELS, else LOG_LEVEL."""
    name = (log_level or settings.LOG_LEVELS.get(component) or settings.LOG_LEVEL).upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level {name!r} for component {component!r}")
    return level

def setup_logging(component: str = "engine", *, log_level: str = None):
    logger_name = f"{settings.APP_NAME}.{component}"
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger
    logger.setLevel(resolve_log_level(component, log_level))
    mkdir_safe(settings.LOG_PATH)
    logfile = Path(settings.LOG_PATH) / f"{component}.log"
    handler = RotatingFileHandler(str(logfile), maxBytes=settings.LOG_MAX_BYTES,
                                  backupCount=settings.LOG_BACKUP_COUNT)
    formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    if os.getenv("DEV", "").lower() in ("1","true","yes"):
        ch = logging.StreamHandler()
        ch.setFormatter(formatter)
        logger.addHandler(ch)
    logger.propagate = False
    return logger
