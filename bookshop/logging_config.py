import logging

from bookshop.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
    # uvicorn logs every request itself; ours already does
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
