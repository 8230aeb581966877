import logging

from analyzer_operator.core.logs import configure_logging, instance_logger


def test_instance_logger_prefixes_messages(caplog):
    log = instance_logger("analyzer_operator.tests", "ops/analyzer")

    with caplog.at_level(logging.INFO, logger="analyzer_operator.tests"):
        log.info("created %s", "Service")

    assert "[ops/analyzer] created Service" in caplog.messages


def test_configure_logging_replaces_handlers():
    logger = logging.getLogger("analyzer_operator")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    try:
        configure_logging("DEBUG")
        configure_logging("WARNING")

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        assert logger.propagate is False
    finally:
        logger.handlers[:] = saved[0]
        logger.setLevel(saved[1])
        logger.propagate = saved[2]
