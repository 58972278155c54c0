# utils/__init__.py

from utils.logger import logger, mask
from utils.config import load_cfg

__all__ = ["logger", "mask", "load_cfg"]
