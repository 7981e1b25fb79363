#!filepath: amtest/utils/filesystem.py
import os
import shutil
import tempfile
from pathlib import Path

from amtest.utils.logger import logs


class FileSystem:
    """
    Filesystem helpers used by managed instances
    - temp artifacts (config file, data dir, output logs)
    - atomic rewrite (tmp file -> rename)
    - best-effort removal
    - tail of a log file
    """

    @staticmethod
    def ensure_dir(path: str | Path) -> Path:
        p = Path(path)
        if not p.exists():
            p.mkdir(parents=True, exist_ok=True)
            logs.debug(f"[FS] created dir: {p}")
        return p

    @staticmethod
    def temp_file(prefix: str, suffix: str = "") -> Path:
        """
        Create an empty temp file and return its path; the handle is closed
        right away so the file can be rewritten by name.
        """
        fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix)
        os.close(fd)
        return Path(name)

    @staticmethod
    def temp_dir(prefix: str) -> Path:
        return Path(tempfile.mkdtemp(prefix=prefix))

    @staticmethod
    def safe_write(path: str | Path, data: str) -> None:
        """
        Atomic write:
            1) write to <path>.tmp
            2) rename -> path
        """
        path = Path(path)
        FileSystem.ensure_dir(path.parent)

        tmp_path = path.with_name(path.name + ".tmp")

        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        os.replace(tmp_path, path)
        logs.debug(f"[FS] wrote {path}")

    @staticmethod
    def remove(path: str | Path | None) -> None:
        """
        Remove a file or directory; missing paths are fine.
        """
        if path is None:
            return
        p = Path(path)

        if not p.exists():
            return

        try:
            if p.is_dir():
                shutil.rmtree(p)
            else:
                p.unlink()
        except OSError as e:
            logs.warning(f"[FS] could not remove {p}: {e}")
            return
        logs.debug(f"[FS] removed {p}")

    @staticmethod
    def tail(path: str | Path | None, n: int = 50) -> str:
        if path is None:
            return ""
        p = Path(path)
        if not p.exists():
            return ""
        lines = p.read_text(errors="ignore").splitlines()
        return "\n".join(lines[-n:])
