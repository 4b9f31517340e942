"""Process-wide settings and logging.

The embedding application calls ``configure()`` once at startup, before any
connection is created, e.g.::

    from src.core.logging import configure as configure_logging

    configure_logging()

Library modules only fetch loggers with ``structlog.get_logger()``.
"""
