"""
Logging setup for the SEO analysis engine

Operator-facing output only. Domain events (analyses, submissions, batch
summaries) are recorded by the ActionLog in the database.
"""
import os
import logging
from logging.handlers import RotatingFileHandler

from config import config

DETAILED_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ('urllib3', 'schedule')


def _file_handler(log_dir: str, filename: str, level: int, formatter: logging.Formatter,
                  backup_count: int = 5) -> logging.Handler:
    handler = RotatingFileHandler(os.path.join(log_dir, filename),
                                  maxBytes=5 * 1024 * 1024,
                                  backupCount=backup_count,
                                  encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_level: str = None, log_dir: str = None, console: bool = True):
    """Setup console, engine log, error log and the task timing log"""
    log_level = (log_level or config.log_level).upper()
    log_dir = log_dir or config.log_directory
    os.makedirs(log_dir, exist_ok=True)

    detailed = logging.Formatter(DETAILED_FORMAT)
    simple = logging.Formatter(config.log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))
    root_logger.handlers.clear()

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(simple)
        root_logger.addHandler(console_handler)

    root_logger.addHandler(_file_handler(log_dir, 'seo_engine.log', logging.DEBUG, detailed))
    root_logger.addHandler(_file_handler(log_dir, 'errors.log', logging.ERROR, detailed, backup_count=3))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # PerformanceMonitor timings for scheduled tasks, kept out of the main log
    perf_logger = logging.getLogger('performance')
    perf_logger.handlers.clear()
    perf_logger.addHandler(_file_handler(log_dir, 'task_timings.log', logging.INFO, simple, backup_count=2))
    perf_logger.setLevel(logging.INFO)
    perf_logger.propagate = False

    logging.getLogger(__name__).debug(f"Logging configured at {log_level} in {log_dir}")
    return root_logger
