import logging

PACKAGE_LOGGER = "marker_tracker"


class SessionContextFilter(logging.Filter):
    """Stamps ``camera`` and ``session`` onto every record a handler emits."""

    def __init__(self, camera_name: str, session_id: str = "-"):
        super().__init__()
        self.camera_name = camera_name
        self.session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:
        # an explicit extra={"camera": ...} wins
        if not hasattr(record, "camera"):
            record.camera = self.camera_name
        record.session = self.session_id
        return True


def _formatter() -> logging.Formatter:
    return logging.Formatter(
        "%(asctime)s %(levelname)s [%(camera)s %(session)s] %(name)s: %(message)s"
    )


def _context_filters(logger: logging.Logger) -> list[SessionContextFilter]:
    return [
        flt
        for handler in logger.handlers
        for flt in handler.filters
        if isinstance(flt, SessionContextFilter)
    ]


def setup_logger(camera_name: str, level: int | str = logging.INFO) -> logging.Logger:
    """
    Logger for one tracking session.

    Library modules log under ``marker_tracker.*``; the handler sits on the
    package logger so their records carry the camera name too. Calling it
    again for another camera rebinds the existing handlers.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_formatter())
        handler.addFilter(SessionContextFilter(camera_name))
        logger.addHandler(handler)
    else:
        for flt in _context_filters(logger):
            flt.camera_name = camera_name

    return logger.getChild(camera_name)


def bind_session(session_id: str) -> None:
    for flt in _context_filters(logging.getLogger(PACKAGE_LOGGER)):
        flt.session_id = session_id


def add_file_handler(camera_name: str, log_path: str, session_id: str = "-") -> logging.FileHandler:
    handler = logging.FileHandler(log_path)
    handler.setFormatter(_formatter())
    handler.addFilter(SessionContextFilter(camera_name, session_id))
    logging.getLogger(PACKAGE_LOGGER).addHandler(handler)
    return handler
