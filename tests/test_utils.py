"""
Tests for utility functions and helper modules.
"""

import logging

import pytest
from loguru import logger

from dayplanner.core.logger import log_async_function_call, setup_logging
from dayplanner.utils.text_utils import (
    clean_text, find_mentioned, format_clock, format_duration, names_match, normalize_name
)

from conftest import make_place


class TestTextUtils:
    """Test text cleaning and name matching."""

    def test_clean_text(self):
        assert clean_text("  Osaka \n  Castle ") == "Osaka Castle"
        assert clean_text("") == ""
        assert clean_text(None) == ""

    def test_normalize_name(self):
        assert normalize_name("  Kuromon   MARKET ") == "kuromon market"

    def test_names_match_both_directions(self):
        assert names_match("Osaka Castle", "castle") is True
        assert names_match("castle", "Osaka Castle") is True
        assert names_match("Osaka Castle", "Nara Park") is False

    def test_empty_names_never_match(self):
        assert names_match("", "Osaka Castle") is False
        assert names_match("Osaka Castle", None) is False
        assert names_match("   ", "   ") is False

    def test_find_mentioned_returns_first_match(self):
        places = [make_place("Sushi Bar"), make_place("Ramen Shop"), make_place("Ramen")]

        assert find_mentioned("swap ramen shop please", places).name == "Ramen Shop"
        assert find_mentioned("nothing relevant", places) is None

    def test_find_mentioned_with_custom_name(self):
        items = [{"title": "Dotonbori"}]
        assert find_mentioned("skip dotonbori", items, name_of=lambda i: i["title"]) == items[0]


class TestTimeFormatting:
    """Test clock and duration formatting."""

    def test_format_clock(self):
        assert format_clock(9) == "09:00"
        assert format_clock(12, 30) == "12:30"

    def test_format_duration(self):
        assert format_duration(150) == "2h 30m"
        assert format_duration(120) == "2h"
        assert format_duration(45) == "45m"
        assert format_duration(-5) == "0m"


class TestLogging:
    """Test loguru setup and the call-logging decorator."""

    def test_stdlib_logging_is_intercepted(self):
        messages = []
        sink_id = logger.add(lambda message: messages.append(message.record["message"]), level="INFO")
        try:
            logging.getLogger("dayplanner.tests").warning("routed through loguru")
        finally:
            logger.remove(sink_id)

        assert "routed through loguru" in messages

    def test_setup_logging_quiets_libraries(self):
        setup_logging("debug")

        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    async def test_decorated_call_failure_is_logged_and_raised(self):
        messages = []
        sink_id = logger.add(lambda message: messages.append(message.record["message"]), level="ERROR")

        @log_async_function_call
        async def explode():
            raise ValueError("no plan")

        try:
            with pytest.raises(ValueError):
                await explode()
        finally:
            logger.remove(sink_id)

        assert any("explode failed" in m for m in messages)
