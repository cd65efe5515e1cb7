"""
Jobs module.

Contains the job queue and the worker pool.
"""

from gengate.jobs.queue import JobQueue
from gengate.jobs.worker import WorkerPool

__all__ = ["JobQueue", "WorkerPool"]
