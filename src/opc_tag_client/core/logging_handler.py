import logging
from PySide6.QtCore import QObject, Signal


class QtLogHandler(logging.Handler, QObject):
    """
    Redirects Python logging records to a Qt Signal.
    """
    new_record = Signal(str, str, str)  # level, source, message

    def __init__(self):
        logging.Handler.__init__(self)
        QObject.__init__(self)

    @staticmethod
    def short_source(name: str) -> str:
        """Drop the package prefix: opc_tag_client.core.x -> x."""
        if name.startswith("opc_tag_client."):
            return name.split(".")[-1]
        return name

    def emit(self, record):
        try:
            msg = self.format(record)
            self.new_record.emit(record.levelname, self.short_source(record.name), msg)
        except RuntimeError:
            # Qt object already deleted during shutdown
            pass
        except Exception:
            self.handleError(record)
