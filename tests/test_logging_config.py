import logging

import pytest

from exam_quest.utils.logging_config import configure_logging


def test_level_names_are_accepted():
    logger = configure_logging("debug")
    assert logger.name == "exam_quest"
    assert logger.level == logging.DEBUG


def test_unknown_level_name_is_rejected():
    with pytest.raises(ValueError):
        configure_logging("chatty")
