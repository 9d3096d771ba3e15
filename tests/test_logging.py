from loguru import logger

from secret_santa.core.logging import setup_logging


def test_file_sink_receives_records(tmp_path):
    log_path = tmp_path / "santa.log"
    setup_logging("INFO", str(log_path))
    try:
        logger.bind(group_id="g-1").debug("Assignments generated")
    finally:
        logger.remove()

    content = log_path.read_text()
    assert "DEBUG" in content
    assert "Assignments generated" in content


def test_no_file_sink_without_path(tmp_path):
    setup_logging("INFO", None)
    try:
        logger.info("stderr only")
    finally:
        logger.remove()

    assert list(tmp_path.iterdir()) == []
