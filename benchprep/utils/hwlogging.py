import json
import logging
import pathlib
import sys
from time import gmtime, strftime
from typing import Optional

DATEFMT = "%Y/%m/%dT%H:%M:%SZ"


def init_logging(verbose: bool = False, tuning_logfile: Optional[pathlib.Path] = None) -> None:
    logger = tuninglog()
    logger.setLevel(logging.DEBUG)
    # main() can be called several times in the same interpreter (tests)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console)

    if tuning_logfile:
        out = logging.FileHandler(
            filename=tuning_logfile,
            encoding="utf-8",
        )
        out.setLevel(logging.DEBUG)
        out.setFormatter(CustomJsonFormatter(datefmt=DATEFMT))
        logger.addHandler(out)


def tuninglog() -> logging.Logger:
    return logging.getLogger("tuning")


class CustomJsonFormatter(logging.Formatter):
    dropped_keys = {
        "name",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "msecs",
        "threadName",
        "processName",
        "taskName",
        "msg",
        "args",
    }

    def format(self, record: logging.LogRecord) -> str:
        super().format(record)
        output = {k: v for k, v in record.__dict__.items() if k not in self.dropped_keys}
        output["timestamp"] = strftime(DATEFMT, gmtime(record.created))
        return json.dumps(output, default=str)
