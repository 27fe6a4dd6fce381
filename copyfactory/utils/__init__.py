# copyfactory/utils/__init__.py

from copyfactory.utils.logger import logger, setup_logging, mask

__all__ = ["logger", "setup_logging", "mask"]
