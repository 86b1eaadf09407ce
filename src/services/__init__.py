"""Services that wire and schedule the code watch."""

from src.services.code_watch import CodeWatchRunner, create_code_watch_service, create_notifier

__all__ = ["CodeWatchRunner", "create_code_watch_service", "create_notifier"]
