import logging

from fundraiser_tracker.logging import get_logger


def test_logger_is_namespaced_and_configured_once(monkeypatch):
    monkeypatch.delenv("LOG_FILE", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "debug")

    logger = get_logger("test-once")
    again = get_logger("test-once")

    assert logger is again
    assert logger.name == "fundraiser.test-once"
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert logger.propagate is False


def test_unknown_level_falls_back_to_info(monkeypatch):
    monkeypatch.delenv("LOG_FILE", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "chatty")

    assert get_logger("test-unknown-level").level == logging.INFO


def test_log_file_receives_records(tmp_path, monkeypatch):
    log_path = tmp_path / "fundraiser.log"
    monkeypatch.setenv("LOG_FILE", str(log_path))
    monkeypatch.setenv("LOG_LEVEL", "INFO")

    logger = get_logger("test-file")
    logger.info("order saved")
    for handler in logger.handlers:
        handler.flush()

    assert "[fundraiser.test-file] INFO: order saved" in log_path.read_text(encoding="utf-8")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_unwritable_log_file_keeps_stderr_handler(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "missing-dir" / "fundraiser.log"))

    logger = get_logger("test-bad-file")

    assert [type(h) for h in logger.handlers] == [logging.StreamHandler]
