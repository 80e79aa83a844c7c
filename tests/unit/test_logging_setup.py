import logging

from audio_insight.logging_setup import configure_logging


def test_configure_logging_attaches_file_handler(tmp_path, settings_factory):
    log_path = tmp_path / "service.log"
    root = logging.getLogger()
    before = list(root.handlers)

    logger = configure_logging(settings_factory().service, log_file=str(log_path))
    try:
        logging.getLogger("audio_insight.test").warning("pipeline.stage.failed")
        for handler in root.handlers:
            handler.flush()

        assert logger.name == "audio-insight-test"
        assert "pipeline.stage.failed" in log_path.read_text()
    finally:
        for handler in list(root.handlers):
            if handler not in before:
                root.removeHandler(handler)
                handler.close()


def test_configure_logging_does_not_duplicate_file_handler(tmp_path, settings_factory):
    log_path = tmp_path / "service.log"
    root = logging.getLogger()
    before = list(root.handlers)

    try:
        configure_logging(settings_factory().service, log_file=str(log_path))
        configure_logging(settings_factory().service, log_file=str(log_path))

        file_handlers = [
            handler
            for handler in root.handlers
            if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(log_path)
        ]
        assert len(file_handlers) == 1
    finally:
        for handler in list(root.handlers):
            if handler not in before:
                root.removeHandler(handler)
                handler.close()
