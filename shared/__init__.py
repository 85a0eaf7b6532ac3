"""
Process-wide plumbing used by the gateway package.

- shared.config.settings: environment-driven Settings (pydantic-settings)
- shared.config.logging: StructuredLogger, formatters, setup_logging()
- shared.infrastructure.correlation: connection id carried into log records

Import from the canonical module paths, e.g.:

    from shared.config.settings import settings
    from shared.config.logging import get_logger
"""
