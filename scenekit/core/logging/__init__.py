from .logger import LoggerConfig, build_logger

__all__ = ["LoggerConfig", "build_logger"]
