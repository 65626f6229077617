from __future__ import annotations

import logging
import sys

from releasegate.github.actions import format_annotation


class AnnotationHandler(logging.Handler):
    """
    Mirror WARNING and ERROR records as workflow annotations
    (`::warning::` / `::error::`) so they surface on the CI run page.
    """

    def __init__(self, stream=None) -> None:
        super().__init__(level=logging.WARNING)
        self.stream = stream or sys.stdout
        self.setFormatter(logging.Formatter("%(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            kind = "error" if record.levelno >= logging.ERROR else "warning"
            self.stream.write(format_annotation(kind, self.format(record)) + "\n")
            self.flush()
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        if hasattr(self.stream, "flush"):
            self.stream.flush()


def build_annotation_handler() -> logging.Handler:
    return AnnotationHandler()
