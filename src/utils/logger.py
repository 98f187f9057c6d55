"""
Logging utility for the rental reservation reconciliation pipeline.
"""
import logging
import sys
from typing import Dict, List, Optional
from colorama import Fore, Style, init
import structlog

# Initialize colorama for cross-platform colored output
init(autoreset=True)

ROOT_LOGGER_NAME = "reservation_sync"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ColorizedFormatter(logging.Formatter):
    """Console formatter colouring the level name and the message."""

    LEVEL_COLORS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.MAGENTA + Style.BRIGHT,
    }

    def __init__(self):
        super().__init__(LOG_FORMAT, datefmt=DATE_FORMAT)

    def format(self, record):
        # Work on a copy so file handlers keep the plain message
        record = logging.makeLogRecord(record.__dict__)
        color = self.LEVEL_COLORS.get(record.levelno)
        if color:
            record.levelname = f"{color}{record.levelname}{Style.RESET_ALL}"

        message_color = Fore.RED if record.levelno >= logging.WARNING else self.LEVEL_COLORS.get(record.levelno, "")
        if record.levelno >= logging.INFO:
            record.msg = f"{message_color}{record.msg}{Style.RESET_ALL}"

        return super().format(record)


def _configure_structlog(json_output: bool):
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _build_handlers(log_file: Optional[str]) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ColorizedFormatter())
    handlers: List[logging.Handler] = [console]

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        handlers.append(file_handler)
    return handlers


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str = "INFO",
    log_file: Optional[str] = None
) -> structlog.BoundLogger:
    """
    Set up structured logging with colorized console output.

    Component loggers are children of the root pipeline logger, so the
    handlers installed here receive their records too. With a log file the
    event lines are rendered as JSON.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for logging to file

    Returns:
        Configured structured logger
    """
    _configure_structlog(json_output=bool(log_file))

    stdlib_logger = logging.getLogger(name)
    stdlib_logger.setLevel(getattr(logging, level.upper()))

    # Re-running setup (e.g. per CLI invocation) must not stack handlers
    for handler in list(stdlib_logger.handlers):
        stdlib_logger.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(log_file):
        stdlib_logger.addHandler(handler)

    return structlog.get_logger(name)


def get_logger(name: str = ROOT_LOGGER_NAME) -> structlog.BoundLogger:
    """
    Get a logger for a pipeline component.

    Args:
        name: Component name, nested under the root pipeline logger

    Returns:
        Structured logger
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return structlog.get_logger(name)


class RunLogger:
    """Counts the outcomes of one job run and prints a summary."""

    def __init__(self, logger: structlog.BoundLogger, job_name: str):
        self.logger = logger
        self.job_name = job_name
        self.stats: Dict[str, int] = {}

    def increment(self, counter: str, amount: int = 1):
        """Increase a named counter."""
        self.stats[counter] = self.stats.get(counter, 0) + amount

    def log_error(self, error: Exception, context: str = ""):
        """Log an item-level error and count it."""
        self.increment('errors')
        self.logger.error(
            "Error occurred",
            job=self.job_name,
            error=str(error),
            error_type=type(error).__name__,
            context=context
        )

    def print_summary(self):
        """Print a summary of the run."""
        self.logger.info("Run summary", job=self.job_name, **self.stats)

        print(f"\n{Fore.CYAN}{'='*50}")
        print(f"{Fore.WHITE}{self.job_name.upper()} SUMMARY")
        print(f"{Fore.CYAN}{'='*50}")
        for counter, value in self.stats.items():
            colour = Fore.RED if counter == 'errors' and value else Fore.GREEN
            print(f"{colour}{counter.replace('_', ' ').capitalize()}: {value}")
        print(f"{Fore.CYAN}{'='*50}\n")

    def reset_stats(self):
        """Reset statistics."""
        self.stats = {}
