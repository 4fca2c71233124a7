from .configuration import Configuration
from .configuration_schema import ConfigurationSchema, ConfigValueError, default_schema_path, load_default_schema
from .rank_logger import RankLoggerAdapter, configure_logging, make_rank_logger
from .readfile import readfile
from .timer import Timer

__all__ = [
    "Configuration",
    "ConfigurationSchema",
    "ConfigValueError",
    "RankLoggerAdapter",
    "Timer",
    "configure_logging",
    "default_schema_path",
    "load_default_schema",
    "make_rank_logger",
    "readfile",
]
