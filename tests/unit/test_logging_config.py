import logging

from covgate.logging_config import configure_logging


def test_configure_logging_levels(caplog):
    # None: keep default WARNING (>=20)
    configure_logging(None)
    logger = logging.getLogger("covgate.test")
    logger.warning("warn")
    assert any("warn" in rec.message for rec in caplog.records)

    # INFO lowers threshold
    caplog.clear()
    configure_logging(logging.INFO)
    logger.info("info-ok")
    assert any("info-ok" in rec.message for rec in caplog.records)

    # DEBUG includes debug
    caplog.clear()
    configure_logging(logging.DEBUG)
    logger.debug("dbg")
    assert any("dbg" in rec.message for rec in caplog.records)


def test_connection_pool_noise_stays_at_warning():
    pool = logging.getLogger("urllib3.connectionpool")
    pool.setLevel(logging.NOTSET)
    configure_logging(logging.DEBUG)
    assert pool.level == logging.WARNING


def test_retry_logger_also_quieted():
    retry = logging.getLogger("urllib3.util.retry")
    retry.setLevel(logging.DEBUG)
    configure_logging(logging.DEBUG)
    assert retry.level == logging.WARNING
