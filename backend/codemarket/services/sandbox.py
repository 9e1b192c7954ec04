"""Sandbox file area: per-project uploaded sources, browsing, running and zipping."""
import asyncio
import io
import json
import logging
import os
import re
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Optional

from codemarket.config import settings

logger = logging.getLogger(__name__)

PROJECT_INFO_FILE = "project-info.json"

ALLOWED_EXTENSIONS = {
    ".js", ".ts", ".jsx", ".tsx", ".vue", ".py", ".java", ".cpp", ".c", ".cs",
    ".php", ".rb", ".go", ".rs", ".swift", ".kt", ".dart", ".html", ".css",
    ".scss", ".sass", ".less", ".json", ".xml", ".yaml", ".yml", ".md", ".txt",
}


class SandboxError(Exception):
    """Base class for sandbox failures."""


class SandboxNotFound(SandboxError):
    """The project has no sandbox, or the requested file does not exist."""


class InvalidSandboxPath(SandboxError):
    """A path escapes the project sandbox or names a disallowed file."""


class SandboxStorage:
    """Per-project directories under a single root."""

    def __init__(self, root: str, run_timeout: float = 30.0):
        self.root = Path(root).resolve()
        self.run_timeout = run_timeout

    def project_dir(self, project_id: str) -> Path:
        if not re.fullmatch(r"[A-Za-z0-9-]+", project_id):
            raise InvalidSandboxPath("Invalid project id")
        return self.root / project_id

    def _existing_project_dir(self, project_id: str) -> Path:
        project_dir = self.project_dir(project_id)
        if not project_dir.is_dir():
            raise SandboxNotFound("Project files not found in sandbox")
        return project_dir

    def _resolve_inside(self, project_dir: Path, relative: str) -> Path:
        """Resolve a relative path, refusing anything outside the project dir."""
        target = (project_dir / relative).resolve()
        if target != project_dir and project_dir not in target.parents:
            raise InvalidSandboxPath("Invalid file path")
        return target

    @staticmethod
    def check_filename(filename: str) -> str:
        """Normalise an uploaded filename and check its extension."""
        cleaned = filename.replace("\\", "/").lstrip("/")
        parts = [p for p in cleaned.split("/") if p not in ("", ".")]
        if not parts or ".." in parts:
            raise InvalidSandboxPath(f"Invalid file name: {filename}")
        if parts[-1] == PROJECT_INFO_FILE:
            raise InvalidSandboxPath(f"Reserved file name: {filename}")
        if Path(parts[-1]).suffix.lower() not in ALLOWED_EXTENSIONS:
            raise InvalidSandboxPath(f"File type not allowed: {filename}")
        return "/".join(parts)

    def save_files(
        self,
        project_id: str,
        files: list[tuple[str, bytes]],
        description: Optional[str] = None,
    ) -> list[str]:
        """
        Write uploaded files into the project sandbox and record metadata.

        Every name in the batch is checked before anything is written, so a
        rejected batch leaves the sandbox untouched.
        """
        project_dir = self.project_dir(project_id)

        staged = []
        for filename, content in files:
            relative = self.check_filename(filename)
            staged.append((relative, self._resolve_inside(project_dir, relative), content))

        project_dir.mkdir(parents=True, exist_ok=True)
        saved = []
        for relative, dest, content in staged:
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(content)
            saved.append(relative)

        info = {
            "projectId": project_id,
            "description": description,
            "uploadedAt": datetime.utcnow().isoformat(),
            "files": saved,
        }
        (project_dir / PROJECT_INFO_FILE).write_text(json.dumps(info, indent=2), encoding="utf-8")

        logger.info(f"Saved {len(saved)} file(s) to sandbox for project {project_id}")
        return saved

    def project_info(self, project_id: str) -> dict:
        info_path = self._existing_project_dir(project_id) / PROJECT_INFO_FILE
        if not info_path.exists():
            return {}
        return json.loads(info_path.read_text(encoding="utf-8"))

    def file_tree(self, project_id: str) -> list[dict]:
        """Nested listing of the sandbox, metadata file excluded."""
        project_dir = self._existing_project_dir(project_id)
        return self._walk(project_dir, project_dir)

    def _walk(self, directory: Path, project_dir: Path) -> list[dict]:
        items = []
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            if entry.name == PROJECT_INFO_FILE and directory == project_dir:
                continue
            rel_path = entry.relative_to(project_dir).as_posix()
            if entry.is_dir():
                items.append({
                    "name": entry.name,
                    "type": "directory",
                    "path": rel_path,
                    "children": self._walk(entry, project_dir),
                })
            else:
                stat = entry.stat()
                items.append({
                    "name": entry.name,
                    "type": "file",
                    "path": rel_path,
                    "size": stat.st_size,
                    "modified": datetime.utcfromtimestamp(stat.st_mtime),
                })
        return items

    def read_file(self, project_id: str, relative: str) -> dict:
        project_dir = self._existing_project_dir(project_id)
        target = self._resolve_inside(project_dir, relative)
        if not target.is_file() or target == project_dir / PROJECT_INFO_FILE:
            raise SandboxNotFound("File not found")

        stat = target.stat()
        return {
            "filename": relative,
            "content": target.read_text(encoding="utf-8", errors="replace"),
            "size": stat.st_size,
            "modified": datetime.utcfromtimestamp(stat.st_mtime),
        }

    def build_zip(self, project_id: str) -> bytes:
        """Zip the sandbox in memory, leaving out the metadata file."""
        project_dir = self._existing_project_dir(project_id)
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for dirpath, _dirnames, filenames in os.walk(project_dir):
                for name in sorted(filenames):
                    path = Path(dirpath) / name
                    if path == project_dir / PROJECT_INFO_FILE:
                        continue
                    archive.write(path, path.relative_to(project_dir).as_posix())
        return buffer.getvalue()

    async def run(self, project_id: str) -> dict:
        """
        Best-effort execution of a sandboxed project.

        - package.json: ``npm start`` bounded by the run timeout
        - index.html: return the page for client-side rendering
        - otherwise: report that only the files are available
        """
        project_dir = self._existing_project_dir(project_id)

        if (project_dir / "package.json").is_file():
            result = await self._run_npm(project_dir)
            if result["success"]:
                return result
            logger.info(f"npm start failed for project {project_id}, falling back: {result.get('stderr', '')[:200]}")

        index_html = project_dir / "index.html"
        if index_html.is_file():
            return {
                "type": "html",
                "content": index_html.read_text(encoding="utf-8", errors="replace"),
                "success": True,
            }

        return {
            "type": "files",
            "message": "Project files available for viewing",
            "success": True,
        }

    async def _run_npm(self, project_dir: Path) -> dict:
        try:
            process = await asyncio.create_subprocess_exec(
                "npm", "start",
                cwd=str(project_dir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            return {"type": "node", "stdout": "", "stderr": str(e), "success": False}

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.run_timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.error(f"npm start timed out after {self.run_timeout}s in {project_dir}")
            return {
                "type": "node",
                "stdout": "",
                "stderr": f"Timed out after {self.run_timeout} seconds",
                "success": False,
            }

        return {
            "type": "node",
            "stdout": stdout.decode(errors="replace") if stdout else "",
            "stderr": stderr.decode(errors="replace") if stderr else "",
            "success": process.returncode == 0,
        }


def get_sandbox() -> SandboxStorage:
    """Dependency returning sandbox storage rooted at ``SANDBOX_ROOT``."""
    return SandboxStorage(settings.SANDBOX_ROOT, run_timeout=settings.SANDBOX_RUN_TIMEOUT_SECONDS)
