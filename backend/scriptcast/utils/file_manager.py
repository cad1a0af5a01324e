"""
File management utilities for job scratch storage.
"""

import shutil
from dataclasses import dataclass
from pathlib import Path
import logging
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobWorkspace:
    """Scratch directories owned by a single job."""
    root: Path
    audio: Path
    video: Path
    stock: Path
    output: Path


class FileManager:
    """
    Manages scratch storage for jobs.

    Features:
    - One directory tree per job (audio, video, stock, output)
    - Job cleanup after download / delete
    - Removal of stale directories left by previous runs
    """

    def __init__(self, temp_dir: str = "storage/temp"):
        self.temp_dir = Path(temp_dir)
        self.temp_dir.mkdir(parents=True, exist_ok=True)

    def get_job_dir(self, job_id: str) -> Path:
        return self.temp_dir / job_id

    def create_workspace(self, job_id: str) -> JobWorkspace:
        """Create (or reuse) the scratch tree for a job."""
        root = self.get_job_dir(job_id)
        workspace = JobWorkspace(
            root=root,
            audio=root / "audio",
            video=root / "video",
            stock=root / "stock",
            output=root / "output",
        )
        for dir_path in [workspace.audio, workspace.video, workspace.stock, workspace.output]:
            dir_path.mkdir(parents=True, exist_ok=True)
        return workspace

    def cleanup_job(self, job_id: str) -> None:
        """Remove all scratch files for a job."""
        job_dir = self.get_job_dir(job_id)
        if job_dir.exists():
            try:
                shutil.rmtree(job_dir)
                logger.info(f"Cleaned up temp files for job: {job_id}")
            except OSError as e:
                logger.error(f"Failed to cleanup temp files for job {job_id}: {e}")

    def cleanup_old_temp_files(self, max_age_hours: int = 24) -> int:
        """
        Remove job directories older than max_age_hours.

        Returns:
            Number of directories removed
        """
        cutoff = datetime.now() - timedelta(hours=max_age_hours)
        removed_count = 0

        for item in self.temp_dir.iterdir():
            if item.is_dir():
                try:
                    mtime = datetime.fromtimestamp(item.stat().st_mtime)
                    if mtime < cutoff:
                        shutil.rmtree(item)
                        removed_count += 1
                        logger.info(f"Removed old temp directory: {item}")
                except OSError as e:
                    logger.error(f"Failed to remove temp directory {item}: {e}")

        return removed_count
