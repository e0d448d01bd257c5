from srtforge.logging import get_logger


def test_get_logger_hierarchy():
    assert get_logger().name == "srtforge"
    assert get_logger("srtforge.core.engine").name == "srtforge.core.engine"
    assert get_logger("custom").name == "srtforge.custom"
