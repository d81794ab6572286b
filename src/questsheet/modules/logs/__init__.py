"""QuestSheet Logs Module - buffered completion log writes."""

from questsheet.modules.logs.queue import CompletionLogQueue, LogEntry
from questsheet.modules.logs.router import router

__all__ = ["router", "CompletionLogQueue", "LogEntry"]
