from .event_logger import EventLogger, emit
