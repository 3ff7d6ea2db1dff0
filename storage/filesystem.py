import shutil
from pathlib import Path
from typing import Union

from common.logger import get_logger


class Storage:
    """Screenshots kept on disk, one PNG per job id."""

    def __init__(self, base_dir: Union[str, Path]) -> None:
        self._logger = get_logger(__name__)
        self._base_save_directory = Path(base_dir)
        self._base_save_directory.mkdir(parents=True, exist_ok=True)

    def save(self, job_id: str, image: bytes) -> Path:
        scr_path = self._build_path(job_id)
        self._write_file(scr_path, image, job_id)

        return scr_path

    def exists(self, job_id: str) -> bool:
        return self._build_path(job_id).exists()

    def size(self, job_id: str) -> int:
        path = self._build_path(job_id)
        return path.stat().st_size if path.exists() else 0

    def load(self, job_id: str) -> bytes:
        path = self._build_path(job_id)
        try:
            return path.read_bytes()
        except OSError as e:
            self._logger.warning("Job %s: cannot read %s: %s", job_id, path, e)
            return b""

    def copy_to(self, job_id: str, target: Union[str, Path]) -> str:
        source = self._build_path(job_id)
        if not source.exists():
            self._logger.warning("Job %s: no image stored", job_id)
            return ""

        try:
            shutil.copyfile(source, target)
        except OSError as e:
            self._logger.warning("Job %s: cannot write %s: %s", job_id, target, e)
            return ""

        return str(target)

    def _build_path(self, job_id: str) -> Path:
        return self._base_save_directory / f"{Path(str(job_id)).name}.png"

    @staticmethod
    def _write_file(scr_path: Path, scr_bytes: bytes, job_id: str) -> None:
        tmp_path = scr_path.with_suffix(".tmp")
        try:
            tmp_path.write_bytes(scr_bytes)
            tmp_path.replace(scr_path)

        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)
            raise OSError(
                f"Job {job_id}: error write file {scr_path}: {e}"
            ) from e
