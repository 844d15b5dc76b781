"""
Helpers shared by the browser-control commands: package paths and logging setup.
"""

import importlib.resources as importlib_resources
import logging
from pathlib import Path

from browser_control.common.logger import setup_logging


def get_package_root():
    """
    Determines the root path of the 'browser_control' package.
    """
    return Path(importlib_resources.files("browser_control")).resolve()


def get_log_dir():
    """
    Logs are stored in the user's home directory under '.browser_control/logs/'.
    """
    log_dir = Path.home() / '.browser_control' / 'logs'
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def setup_command_logger(log_filename, package_root=None, verbose=False):
    """
    Configure logging from the packaged logging config, writing to ~/.browser_control/logs/<log_filename>.
    """
    package_root = package_root or get_package_root()
    config_path = package_root / 'configs' / 'logging_config.yaml'
    log_file_path = get_log_dir() / log_filename
    setup_logging(
        config_file_path=config_path if config_path.exists() else None,
        log_file_path=log_file_path,
        verbose=verbose,
    )
    return logging.getLogger("browser_control")
