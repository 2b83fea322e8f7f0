import logging
import logging.config
import os
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_LOG_CONF = REPO_ROOT / "logging.conf"

# Client libraries that log every outbound request at INFO.
CHATTY_LOGGERS = ("openai", "httpx", "urllib3")


def configure_logging(log_conf_path: Path | None = None, log_dir: Path | None = None) -> logging.Logger:
    """
    Configure the `order_relay` logger.

    `logging.conf` (or `LOG_CONF`) is used when present, with its file handler
    writing below `LOG_DIR`. Without a config file, logs go to stderr.
    `LOG_LEVEL` overrides the level of the app logger in both cases.
    """
    conf_path = Path(log_conf_path or os.getenv("LOG_CONF", "") or DEFAULT_LOG_CONF)
    directory = Path(log_dir or os.getenv("LOG_DIR", "") or REPO_ROOT / "logs")

    if conf_path.exists():
        directory.mkdir(parents=True, exist_ok=True)
        logging.config.fileConfig(
            conf_path,
            disable_existing_loggers=False,
            defaults={"logdirpath": directory.as_posix()},
        )
    else:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )

    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    app_logger = logging.getLogger("order_relay")
    level = os.getenv("LOG_LEVEL", "").strip().upper()
    if level:
        app_logger.setLevel(level)
    return app_logger


logger = configure_logging()
