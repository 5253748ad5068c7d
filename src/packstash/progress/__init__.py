"""Progress reporting adapters."""

from packstash.progress.rich_progress import RichProgressReporter


__all__ = ["RichProgressReporter"]
