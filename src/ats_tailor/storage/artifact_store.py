"""Local-directory storage for rendered documents."""

from __future__ import annotations

import asyncio
from pathlib import Path

DEFAULT_ARTIFACTS_DIR = Path.home() / ".ats-tailor" / "artifacts"


def artifact_key(user_id: str, resume_id: str, job_id: str, template_name: str) -> str:
    return f"{user_id}/{resume_id}/{job_id}/template_{template_name}.pdf"


class ArtifactStore:
    """Writes artifacts under ``root`` and hands back ``file://`` URLs."""

    def __init__(self, root: str | Path = DEFAULT_ARTIFACTS_DIR):
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise ValueError(f"Artifact key escapes the store root: {key}")
        return path

    async def upload(self, key: str, data: bytes) -> str:
        """Store ``data`` under ``key`` (overwriting) and return its URL."""
        path = self.path_for(key)
        await asyncio.to_thread(self._write, path, data)
        return path.as_uri()

    async def delete_prefix(self, prefix: str) -> int:
        """Remove every artifact whose key starts with ``prefix``/."""
        return await asyncio.to_thread(self._delete_prefix, prefix)

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def _delete_prefix(self, prefix: str) -> int:
        base = self.path_for(prefix)
        if not base.is_dir():
            return 0
        removed = 0
        for path in sorted(base.rglob("*"), reverse=True):
            if path.is_file():
                path.unlink()
                removed += 1
            else:
                path.rmdir()
        base.rmdir()
        return removed
