"""Tests for the sandbox storage and endpoints."""
import asyncio
import io
import zipfile
from unittest.mock import patch, MagicMock

import pytest

from codemarket.config import settings
from codemarket.models.license import License
from codemarket.services.sandbox import InvalidSandboxPath, SandboxNotFound, SandboxStorage
from conftest import auth_headers


async def _upload(client, user, project, files):
    return await client.post(
        "/api/sandbox/upload-project",
        data={"project_id": project.uuid, "description": "demo build"},
        files=[("files", (name, content, "text/plain")) for name, content in files],
        headers=auth_headers(user),
    )


async def test_upload_and_browse(client, seller, project):
    response = await _upload(client, seller, project, [
        ("index.html", b"<h1>Tasks</h1>"),
        ("src/app.js", b"console.log('tasks')"),
    ])

    assert response.status_code == 201
    assert response.json()["files"] == ["index.html", "src/app.js"]

    response = await client.get(f"/api/sandbox/code/{project.uuid}")
    assert response.status_code == 200
    tree = response.json()["files"]
    assert [node["name"] for node in tree] == ["index.html", "src"]
    assert tree[1]["children"][0]["path"] == "src/app.js"

    response = await client.get(f"/api/sandbox/code/{project.uuid}?file=src/app.js")
    assert response.status_code == 200
    assert response.json()["content"] == "console.log('tasks')"


async def test_upload_author_only(client, buyer, project):
    response = await _upload(client, buyer, project, [("index.html", b"<p>x</p>")])

    assert response.status_code == 403


async def test_upload_rejects_disallowed_extension(client, seller, project):
    response = await _upload(client, seller, project, [("payload.exe", b"MZ")])

    assert response.status_code == 400


async def test_rejected_batch_writes_nothing(client, seller, project, sandbox_storage):
    response = await _upload(client, seller, project, [("a.js", b"let a = 1"), ("evil.exe", b"MZ")])

    assert response.status_code == 400
    assert not sandbox_storage.project_dir(project.uuid).exists()


def test_save_files_keeps_previous_upload_on_bad_batch(tmp_path):
    storage = SandboxStorage(str(tmp_path))
    storage.save_files("proj-1", [("index.html", b"<p>v1</p>")])

    with pytest.raises(InvalidSandboxPath):
        storage.save_files("proj-1", [("index.html", b"<p>v2</p>"), ("../escape.js", b"x")])

    assert storage.read_file("proj-1", "index.html")["content"] == "<p>v1</p>"
    assert storage.project_info("proj-1")["files"] == ["index.html"]


async def test_upload_rejects_oversized_file(client, seller, project, monkeypatch):
    monkeypatch.setattr(settings, "SANDBOX_MAX_FILE_BYTES", 8)

    response = await _upload(client, seller, project, [("big.js", b"x" * 64)])

    assert response.status_code == 413


async def test_code_rejects_path_traversal(client, seller, project):
    await _upload(client, seller, project, [("index.html", b"<p>x</p>")])

    response = await client.get(f"/api/sandbox/code/{project.uuid}?file=../../etc/passwd")
    assert response.status_code == 400

    response = await client.get(f"/api/sandbox/code/{project.uuid}?file=missing.js")
    assert response.status_code == 404


async def test_code_missing_sandbox(client, project):
    response = await client.get(f"/api/sandbox/code/{project.uuid}")

    assert response.status_code == 404


async def test_private_code_denied(client, test_db, seller, buyer, project):
    await _upload(client, seller, project, [("index.html", b"<p>x</p>")])
    project.access_view_code = "private"
    await test_db.commit()

    response = await client.get(f"/api/sandbox/code/{project.uuid}", headers=auth_headers(buyer))

    assert response.status_code == 403


async def test_run_serves_index_html(client, test_db, seller, project):
    await _upload(client, seller, project, [("index.html", b"<h1>Tasks</h1>")])

    response = await client.get(f"/api/sandbox/run/{project.uuid}")

    assert response.status_code == 200
    assert response.json()["type"] == "html"
    assert response.json()["content"] == "<h1>Tasks</h1>"

    await test_db.refresh(project)
    assert project.views == 1


async def test_download_requires_license(client, test_db, seller, buyer, project):
    await _upload(client, seller, project, [("index.html", b"<h1>Tasks</h1>"), ("README.md", b"# Tasks")])

    response = await client.get(f"/api/sandbox/download/{project.uuid}", headers=auth_headers(buyer))
    assert response.status_code == 403

    test_db.add(License(
        project_id=project.uuid,
        licensee_id=buyer.uuid,
        license_type="basic",
        view_code=True,
        download_code=True,
        amount=10,
        payment_status="completed",
        is_active=True,
    ))
    await test_db.commit()

    response = await client.get(f"/api/sandbox/download/{project.uuid}", headers=auth_headers(buyer))
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/zip"

    archive = zipfile.ZipFile(io.BytesIO(response.content))
    assert sorted(archive.namelist()) == ["README.md", "index.html"]


async def test_download_requires_authentication(client, project):
    response = await client.get(f"/api/sandbox/download/{project.uuid}")

    assert response.status_code == 401


def test_check_filename_normalises_paths():
    assert SandboxStorage.check_filename("src\\lib\\util.py") == "src/lib/util.py"
    assert SandboxStorage.check_filename("/./app.js") == "app.js"

    with pytest.raises(InvalidSandboxPath):
        SandboxStorage.check_filename("../escape.js")
    with pytest.raises(InvalidSandboxPath):
        SandboxStorage.check_filename("project-info.json")
    with pytest.raises(InvalidSandboxPath):
        SandboxStorage.check_filename("binary.so")


def test_project_id_must_be_plain(tmp_path):
    storage = SandboxStorage(str(tmp_path))

    with pytest.raises(InvalidSandboxPath):
        storage.project_dir("../other")
    with pytest.raises(SandboxNotFound):
        storage.file_tree("abc-123")


async def test_run_falls_back_when_npm_missing(tmp_path):
    storage = SandboxStorage(str(tmp_path))
    storage.save_files("proj-1", [("package.json", b"{}"), ("index.html", b"<p>hi</p>")])

    with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError("npm")):
        result = await storage.run("proj-1")

    assert result["type"] == "html"
    assert result["success"] is True


async def test_run_npm_times_out(tmp_path):
    storage = SandboxStorage(str(tmp_path), run_timeout=0.05)
    storage.save_files("proj-1", [("package.json", b"{}")])

    process = MagicMock()
    process.returncode = None

    async def slow_communicate():
        await asyncio.sleep(1)
        return b"", b""

    async def wait():
        return -9

    process.communicate = slow_communicate
    process.wait = wait

    with patch("asyncio.create_subprocess_exec", return_value=process) as mock_exec:
        result = await storage.run("proj-1")

    process.kill.assert_called_once()
    assert mock_exec.call_args.args == ("npm", "start")
    assert result["type"] == "files"


async def test_run_npm_success(tmp_path):
    storage = SandboxStorage(str(tmp_path))
    storage.save_files("proj-1", [("package.json", b"{}")])

    process = MagicMock()
    process.returncode = 0

    async def communicate():
        return b"listening on 3000", b""

    process.communicate = communicate

    with patch("asyncio.create_subprocess_exec", return_value=process):
        result = await storage.run("proj-1")

    assert result == {"type": "node", "stdout": "listening on 3000", "stderr": "", "success": True}
