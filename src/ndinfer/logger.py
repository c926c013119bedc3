# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import logging
import os


def get_logger(name="ndinfer", level=None):
    logger = logging.getLogger(name)

    # Only configure if no handlers exist
    if not logger.handlers:
        if level is None:
            level = os.environ.get("NDINFER_LOG_LEVEL", "WARNING").strip().upper()
            if level.isdigit():
                level = int(level)
        logger.setLevel(level)
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def set_log_level(level) -> None:
    """Change the level of the ndinfer logger and its handlers."""
    logger = get_logger()
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
