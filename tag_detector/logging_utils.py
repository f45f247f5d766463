import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(camera)s] %(message)s"


class CameraNameFilter(logging.Filter):
    """Stamps every record with the camera it came from."""

    def __init__(self, camera_name: str):
        super().__init__()
        self.camera_name = camera_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.camera = self.camera_name
        return True


def _for_camera(handler: logging.Handler, camera_name: str) -> logging.Handler:
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(CameraNameFilter(camera_name))
    return handler


def setup_logger(camera_name: str, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(f"tag_detector.{camera_name}")
    logger.setLevel(level)

    if not logger.handlers:
        logger.addHandler(_for_camera(logging.StreamHandler(), camera_name))

    return logger


def add_file_handler(logger: logging.Logger, camera_name: str, log_path: str) -> logging.Handler:
    """Mirror the camera logger into a session log file; detach with remove_handler()."""
    handler = _for_camera(logging.FileHandler(log_path, encoding="utf-8"), camera_name)
    logger.addHandler(handler)
    return handler


def remove_handler(logger: logging.Logger, handler: logging.Handler) -> None:
    logger.removeHandler(handler)
    handler.close()
