"""
Logging setup
"""

import logging


class _SafeFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "event"):
            record.event = "system"
        if not hasattr(record, "patient_id"):
            record.patient_id = "-"
        return super().format(record)


def configure_logging(level: str) -> None:
    """Install a single stream handler on the root logger

    Records may carry ``event`` and ``patient_id`` through ``extra``.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(
        _SafeFormatter(
            "%(asctime)s %(levelname)s %(name)s "
            "event=%(event)s patient_id=%(patient_id)s %(message)s"
        )
    )

    logging.basicConfig(level=level.upper(), handlers=[handler])
