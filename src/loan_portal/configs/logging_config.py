from __future__ import annotations

import logging
import sys


def setup_logging(level: str = "INFO", service_name: str = "loan-portal") -> None:
    """
    Route all portal logs to stdout with the service name on every line.

    Messages are `event key=value` pairs; tokens and bank secrets are never
    passed to a logger.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt=f"%(asctime)s {service_name} %(levelname)s [%(name)s] %(message)s",
        )
    )
    # uvicorn --reload calls startup again
    root.handlers = [handler]

    # httpx logs every request line at INFO, including query strings
    logging.getLogger("httpx").setLevel(max(root.level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
