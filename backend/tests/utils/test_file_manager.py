"""
Tests for scriptcast.utils (file manager and job logger)
"""

import logging
import os
import time

from scriptcast.utils.file_manager import FileManager
from scriptcast.utils.logger import get_job_logger


def test_workspace_layout(tmp_path):
    manager = FileManager(temp_dir=str(tmp_path / "temp"))
    workspace = manager.create_workspace("job-1")

    assert workspace.root == tmp_path / "temp" / "job-1"
    for path in (workspace.audio, workspace.video, workspace.stock, workspace.output):
        assert path.is_dir()
        assert path.parent == workspace.root


def test_cleanup_job_removes_tree(tmp_path):
    manager = FileManager(temp_dir=str(tmp_path))
    workspace = manager.create_workspace("job-1")
    (workspace.audio / "chunk_000.mp3").write_bytes(b"x")

    manager.cleanup_job("job-1")
    manager.cleanup_job("job-1")

    assert not workspace.root.exists()


def test_cleanup_old_temp_files(tmp_path):
    manager = FileManager(temp_dir=str(tmp_path))
    old = manager.create_workspace("old").root
    fresh = manager.create_workspace("fresh").root
    two_days_ago = time.time() - 48 * 3600
    os.utime(old, (two_days_ago, two_days_ago))

    assert manager.cleanup_old_temp_files(max_age_hours=24) == 1
    assert not old.exists()
    assert fresh.exists()


def test_job_logger_prefixes_job_id(caplog):
    log = get_job_logger("scriptcast.test", "job-42")
    with caplog.at_level(logging.INFO, logger="scriptcast.test"):
        log.info("Merging audio")
    assert "[Job job-42] Merging audio" in caplog.text
