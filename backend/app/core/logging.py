import logging

from app.core.settings import settings

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger("app")
    if any(getattr(h, "_golf_handler", False) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._golf_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel((level or settings.LOG_LEVEL).upper())
