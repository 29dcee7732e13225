"""Logging setup for scripts and notebooks driving pylaplace

The library itself only creates module level loggers; nothing is printed unless
an application configures handlers, for instance through `setup_logging`
"""
import logging
import sys
from typing import Optional


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Configure the logger of the 'pylaplace' namespace

    Parameters
    ----------
    level : int
        logging level, f.i. logging.DEBUG to trace searches and relaxation sweeps
    log_file : str, optional
        if given, records are also written to this file

    Returns
    -------
    logging.Logger
        the configured package logger
    """
    logger = logging.getLogger('pylaplace')
    logger.setLevel(level)

    # calling this twice should not duplicate every record
    for handler in list(logger.handlers):
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug('logging initialized')
    return logger
