# logger.py
import json
import logging
import logging.config
from pathlib import Path

import yaml


def _load_logging_config(config_file_path):
    path = Path(config_file_path)
    with path.open("r", encoding="utf-8") as handle:
        if path.suffix.lower() == ".json":
            return json.load(handle)
        return yaml.safe_load(handle)


def setup_logging(
    config_file_path=None,
    log_file_path=None,
    verbose=False,
):
    """
    Loads logging config from 'config_file_path' (YAML or JSON) and sets up logging.
    Optionally override file handler's filename, and set root logger to DEBUG if 'verbose'.
    Falls back to a plain console configuration when no config file is given.
    """
    if config_file_path is None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    else:
        config = _load_logging_config(config_file_path)

        # If user passed a custom file path for logs, override the "filename" in the config
        if log_file_path and "file_handler" in config.get("handlers", {}):
            config["handlers"]["file_handler"]["filename"] = str(log_file_path)

        logging.config.dictConfig(config)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    return logging.getLogger(__name__)
