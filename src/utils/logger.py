import logging

from rich.logging import RichHandler

from utils import config


class CenteredFormatter(logging.Formatter):
    """Pads logger names so messages from different modules line up."""

    longest_name_length = 14

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        width = CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(record.name)
        )
        record.name = record.name.center(width)
        return super().format(record)


def get_logger(name=None) -> logging.Logger:
    """
    Return a logger writing through a RichHandler.

    Level is DEBUG when the DEBUG env var is set, INFO otherwise. Handlers are
    attached once per logger name.
    """
    logger = logging.getLogger(name or "pos")
    log_level = logging.DEBUG if config.DEBUG else logging.INFO
    logger.setLevel(log_level)

    if not logger.handlers:
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
            log_time_format="[%X]",
        )
        handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
        handler.setLevel(log_level)
        logger.addHandler(handler)
        logger.propagate = False
        logger.debug(f"Logger for '{logger.name}' ready.")

    return logger
