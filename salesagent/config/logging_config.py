"""
Tiered Logging Configuration for the Sales Agent service

Provides a flexible logging system with 5 levels:
- TRACE (5): Ultra-verbose debugging (cache payloads, lock hand-offs)
- DEBUG (10): Detailed debugging (cache hits/misses, state changes)
- INFO (20): Standard operational messages (sessions created/ended)
- WARN (30): Warnings (cache degradation, fallbacks)
- ERROR (40): Errors (storage failures)

Environment Variables:
- LOG_LEVEL: Global log level (TRACE, DEBUG, INFO, WARN, ERROR) [default: INFO]
- LOG_LEVEL_CONVERSATION: Override for the conversation coordinator
- LOG_LEVEL_CACHE: Override for the conversation cache backends
- LOG_LEVEL_STORE: Override for the durable conversation store
- LOG_LEVEL_API: Override for the HTTP layer

Example Usage:
    from salesagent.config.logging_config import get_logger

    logger = get_logger(__name__)
    logger.trace("🔍 Cache payload: %s", payload)
    logger.debug("📡 Loaded session from store")
    logger.info("✅ Created conversation context")
    logger.warning("⚠️ Cache unavailable, using store only")
    logger.error("❌ Store write failed: %s", error)
"""

import logging
import os


# Define custom TRACE level (more verbose than DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


def trace(self, message, *args, **kwargs):
    """Log a message with severity 'TRACE'."""
    if self.isEnabledFor(TRACE):
        self._log(TRACE, message, args, **kwargs)


# Add trace method to Logger class
logging.Logger.trace = trace


# Module name mapping: Python module path → Logical service name
MODULE_NAME_MAP = {
    "salesagent.services.conversation_service": "salesagent.conversation",
    "salesagent.services.session_locks": "salesagent.conversation",
    "salesagent.services.conversation_cache": "salesagent.cache",
    "salesagent.services.conversation_store": "salesagent.store",
    "salesagent.database.session": "salesagent.store",
    "salesagent.routes.conversation_routes": "salesagent.api",
    "salesagent.api.server": "salesagent.api",
}

OVERRIDE_SERVICES = ["CONVERSATION", "CACHE", "STORE", "API"]


def get_log_level(module_name: str, default: str = "INFO") -> int:
    """
    Get the log level for a module, checking both module-specific and global env vars.

    Priority:
    1. Module-specific env var (LOG_LEVEL_CONVERSATION, LOG_LEVEL_CACHE, etc.)
    2. Global LOG_LEVEL env var
    3. Default level (INFO)

    Args:
        module_name: Python module name (e.g., "salesagent.services.conversation_cache")
        default: Default log level if no env vars set

    Returns:
        Numeric log level (5=TRACE, 10=DEBUG, 20=INFO, 30=WARN, 40=ERROR)
    """
    logical_name = MODULE_NAME_MAP.get(module_name)

    # "salesagent.cache" → "CACHE"
    service_name = logical_name.split(".")[-1].upper() if logical_name else None

    if service_name:
        module_level = os.getenv(f"LOG_LEVEL_{service_name}")
        if module_level:
            return _parse_log_level(module_level)

    global_level = os.getenv("LOG_LEVEL")
    if global_level:
        return _parse_log_level(global_level)

    return _parse_log_level(default)


def _parse_log_level(level_str: str) -> int:
    """
    Parse log level string to numeric value.

    Unknown names fall back to INFO.
    """
    level_map = {
        "TRACE": TRACE,
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARN": logging.WARNING,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
    }
    return level_map.get(level_str.upper(), logging.INFO)


def configure_logging(default_level: str = "INFO") -> None:
    """
    Configure logging system with tiered levels and per-module control.

    This should be called once at application startup (see salesagent.api.server).

    Args:
        default_level: Default log level if LOG_LEVEL env var not set
    """
    global_level = os.getenv("LOG_LEVEL", default_level)
    numeric_level = _parse_log_level(global_level)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.info(f"🚀 Logging system initialized (global level: {global_level})")

    module_overrides = []
    for env_var in OVERRIDE_SERVICES:
        override = os.getenv(f"LOG_LEVEL_{env_var}")
        if override:
            module_overrides.append(f"{env_var}={override}")

    if module_overrides:
        root_logger.info(f"📋 Module overrides: {', '.join(module_overrides)}")


def get_logger(module_name: str) -> logging.Logger:
    """
    Get a logger for a module with appropriate log level.

    This is the main entry point for getting loggers in service code.

    Args:
        module_name: Python module name (use __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(module_name)
    logger.setLevel(get_log_level(module_name))
    return logger
