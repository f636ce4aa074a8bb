"""Centralized logging configuration using Loguru."""

import sys
from typing import Any

from loguru import logger

from npiscraper.core.config import settings


def setup_logging() -> None:
    """Configure Loguru logging for the application."""
    # Remove default handler
    logger.remove()

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )

    # File format (more detailed)
    file_format = (
        "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
        "{level: <8} | "
        "{name}:{function}:{line} | "
        "{message} | "
        "{extra}"
    )

    logger.add(
        sys.stderr,
        format=console_format,
        level=settings.log_level,
        colorize=True,
        backtrace=True,
        diagnose=settings.debug,
    )

    if settings.log_to_file:
        logs_dir = settings.logs_dir
        logger.add(
            logs_dir / "npiscraper_{time:YYYY-MM-DD}.log",
            format=file_format,
            level="DEBUG",
            rotation="00:00",
            retention="30 days",
            compression="gz",
            backtrace=True,
            diagnose=settings.debug,
        )

        logger.add(
            logs_dir / "errors_{time:YYYY-MM-DD}.log",
            format=file_format,
            level="ERROR",
            rotation="00:00",
            retention="90 days",
            compression="gz",
            backtrace=True,
            diagnose=settings.debug,
        )

        # JSON lines for log aggregation
        logger.add(
            logs_dir / "npiscraper_{time:YYYY-MM-DD}.json",
            format="{message}",
            level="INFO",
            rotation="00:00",
            retention="14 days",
            compression="gz",
            serialize=True,
        )

    logger.info(
        f"Logging initialized | level={settings.log_level} | env={settings.app_env.value}"
    )


def get_logger(name: str) -> Any:
    """Get a logger instance with the given name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    return logger.bind(name=name)


def log_page_event(
    url: str, page: int, rows: int, status: int | None = None, **extra: Any
) -> None:
    """Log one fetched listing page.

    Args:
        url: Page URL
        page: 1-based page number within the run
        rows: Rows kept from the page
        status: HTTP status of the response
        **extra: Additional context
    """
    logger.bind(url=url, page=page, rows=rows, status=status, **extra).debug(
        f"Page fetched | page={page} | rows={rows} | status={status} | url={url}"
    )


def log_scraping_event(
    url: str,
    items_count: int,
    duration: float,
    success: bool = True,
    **extra: Any,
) -> None:
    """Log scraping run summary.

    Args:
        url: Start URL of the run
        items_count: Number of rows collected
        duration: Run duration in seconds
        success: Whether the run ended without a fetch failure
        **extra: Additional context
    """
    status = "SUCCESS" if success else "PARTIAL"
    log_func = logger.info if success else logger.warning

    log_func(
        f"Scraping | url={url} | items={items_count} | "
        f"status={status} | duration={duration:.2f}s",
        url=url,
        items_count=items_count,
        duration=duration,
        success=success,
        **extra,
    )


def log_proxy_event(proxy: str, action: str, success: bool = True, **extra: Any) -> None:
    """Log proxy-related event.

    Args:
        proxy: Proxy address without credentials
        action: Action performed (rotation, failure, etc.)
        success: Whether action was successful
        **extra: Additional context
    """
    status = "SUCCESS" if success else "FAILED"
    log_func = logger.debug if success else logger.warning

    log_func(
        f"Proxy {action} | proxy={proxy} | status={status}",
        proxy=proxy,
        action=action,
        success=success,
        **extra,
    )
