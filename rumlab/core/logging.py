# rumlab/core/logging.py
import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configures the root logger once for the whole process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
