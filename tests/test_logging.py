import logging

from matchmaking.core.logging import NOISY_LOGGERS, configure_logging, service_context


def test_service_context_adds_service_fields() -> None:
    processor = service_context("matchmaking", "prod")

    event = processor(None, "info", {"event": "tournament_started", "service": "override"})

    assert event == {"event": "tournament_started", "service": "override", "env": "prod"}
    assert processor(None, "info", {"event": "x"})["service"] == "matchmaking"
    assert "env" not in service_context("matchmaking")(None, "info", {"event": "x"})


def test_configure_logging_quiets_noisy_loggers() -> None:
    configure_logging("info", app_env="test")

    assert logging.getLogger().level == logging.INFO
    for name in NOISY_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING

    configure_logging("debug")
    for name in NOISY_LOGGERS:
        assert logging.getLogger(name).level == logging.DEBUG

    configure_logging("info")
