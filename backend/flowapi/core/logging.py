"""Logging configuration for the PalletFlow service"""
import logging
import sys

from .settings import settings


def setup_logging(level: str = "INFO"):
    """Configure logging for the service and the simulation engine"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    # Engine loggers live under "palletflow.engine"
    return logging.getLogger("palletflow")


logger = setup_logging(settings.log_level)
