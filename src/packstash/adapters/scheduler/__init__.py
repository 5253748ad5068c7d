"""Task scheduler adapters for background downloads."""

from packstash.adapters.scheduler.scheduler import DownloadFuture, ThreadedTaskScheduler


__all__ = ["DownloadFuture", "ThreadedTaskScheduler"]
