"""
Utility modules for scriptcast.
"""

from .logger import get_job_logger, setup_logging
from .file_manager import FileManager, JobWorkspace

__all__ = [
    "get_job_logger",
    "setup_logging",
    "FileManager",
    "JobWorkspace",
]
