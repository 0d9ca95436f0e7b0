"""Core types shared by every layer."""

from .config import ConfigError, PublishConfig, ValidationConfig, load_publish_config
from .errors import ErrorCode
from .result import Err, Ok, Result

__all__ = [
    # config
    "ConfigError",
    "PublishConfig",
    "ValidationConfig",
    "load_publish_config",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
]
