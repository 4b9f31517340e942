import logging.config
from typing import Any, Generic, TypeVar

import structlog

from src.core.config import Settings, settings

RendererType = TypeVar("RendererType")

Logger = structlog.stdlib.BoundLogger


class Logging(Generic[RendererType]):
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.UnicodeDecoder(),
        structlog.processors.StackInfoRenderer(),
    ]

    @classmethod
    def pre_chain(cls, config: Settings) -> list[Any]:
        if config.is_production:
            return cls.shared_processors + [structlog.processors.format_exc_info]
        return list(cls.shared_processors)

    @classmethod
    def get_processors(cls, config: Settings) -> list[Any]:
        return cls.pre_chain(config) + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter
        ]

    @classmethod
    def get_renderer(cls) -> RendererType:
        raise NotImplementedError()

    @classmethod
    def build_dict_config(cls, config: Settings) -> dict[str, Any]:
        level = config.LOG_LEVEL

        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        cls.get_renderer(),
                    ],
                    "foreign_pre_chain": cls.pre_chain(config),
                },
            },
            "handlers": {
                "default": {
                    "level": level,
                    "class": "logging.StreamHandler",
                    "formatter": "structured",
                },
            },
            "loggers": {
                "": {
                    "handlers": ["default"],
                    "level": level,
                    "propagate": False,
                },
                # websockets logs every keepalive frame at DEBUG
                "websockets.client": {
                    "handlers": ["default"],
                    "level": config.WEBSOCKETS_LOG_LEVEL,
                    "propagate": False,
                },
            },
        }

    @classmethod
    def configure_stdlib(cls, config: Settings) -> None:
        logging.config.dictConfig(cls.build_dict_config(config))

    @classmethod
    def configure_structlog(cls, config: Settings) -> None:
        structlog.configure_once(
            processors=cls.get_processors(config),
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    @classmethod
    def configure(cls, config: Settings) -> None:
        cls.configure_stdlib(config)
        cls.configure_structlog(config)


class Development(Logging[structlog.dev.ConsoleRenderer]):
    @classmethod
    def get_renderer(cls) -> structlog.dev.ConsoleRenderer:
        return structlog.dev.ConsoleRenderer(colors=True)


class Production(Logging[structlog.processors.JSONRenderer]):
    @classmethod
    def get_renderer(cls) -> structlog.processors.JSONRenderer:
        return structlog.processors.JSONRenderer()


def configure(config: Settings | None = None) -> None:
    config = config or settings

    if config.is_production:
        Production.configure(config)
    else:
        Development.configure(config)
