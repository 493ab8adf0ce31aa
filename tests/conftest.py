"""Test harness configuration.

This repo uses a `src/` layout. In some developer environments an older
installed `bkp` package can shadow the local sources.

Ensure tests always import the in-repo code.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ENV_VARS = (
    "BKP_LOG_LEVEL",
    "BKP_LOG_FILE",
    "BKP_LOG_MAX_BYTES",
    "BKP_LOG_BACKUP_COUNT",
    "BKP_COPY_CHUNK_SIZE",
    "BKP_VERSION",
    "BKP_COMMIT",
    "BKP_BUILD_DATE",
)


def pytest_configure() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src_dir = repo_root / "src"
    src_path = str(src_dir)
    if sys.path[:1] != [src_path] and src_path not in sys.path:
        sys.path.insert(0, src_path)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    # The CLI configures the shared "bkp" logger against the runner's streams.
    from bkp.core.logging_utils import shutdown_logger

    shutdown_logger("bkp")


@pytest.fixture()
def src_tree(tmp_path: Path) -> Path:
    """
    Create a small source tree:

        source/file1.txt          "File 1"
        source/subdir/file2.txt   "File 2"
    """
    src = tmp_path / "source"
    (src / "subdir").mkdir(parents=True)
    (src / "file1.txt").write_text("File 1", encoding="utf-8")
    (src / "subdir" / "file2.txt").write_text("File 2", encoding="utf-8")
    return src
