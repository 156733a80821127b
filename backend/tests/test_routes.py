"""
IDE Workspace — API Endpoint Tests
===================================

What:  End-to-end tests through the FastAPI app.
How:   httpx AsyncClient over ASGITransport against the test SQLite database;
       the GitHub client is swapped for the in-memory remote.

What we test:
    ✅ Health endpoint and request IDs
    ✅ Project CRUD and tree edits, including error codes
    ✅ The access token never appears in a response
    ✅ Push / pull / clone and the partial-failure body
"""

import pytest
from unittest.mock import AsyncMock, patch

from ide_workspace.schemas.api import ExecutionResult
from ide_workspace.services.sync_engine import SyncEngine
from ide_workspace.services.workspace_service import workspace_service


async def create_project(client, name="demo", language="python"):
    response = await client.post("/api/projects", json={"name": name, "language": language})
    assert response.status_code == 201
    return response.json()


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["database"] == "connected"
        assert body["status"] in ("healthy", "degraded")

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"


class TestProjects:
    @pytest.mark.asyncio
    async def test_create_and_get(self, test_client):
        project = await create_project(test_client)
        assert [f["path"] for f in project["files"]] == ["main.py"]
        assert project["has_remote_token"] is False
        assert "remote_token" not in project

        response = await test_client.get(f"/api/projects/{project['id']}")
        assert response.status_code == 200
        assert response.json()["name"] == "demo"

    @pytest.mark.asyncio
    async def test_list_contains_new_project(self, test_client):
        project = await create_project(test_client, "listed")
        response = await test_client.get("/api/projects")
        assert response.status_code == 200
        summaries = {p["id"]: p for p in response.json()}
        assert summaries[project["id"]]["file_count"] == 1

    @pytest.mark.asyncio
    async def test_unknown_project_is_404(self, test_client):
        response = await test_client.get("/api/projects/does-not-exist")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_unknown_language_is_rejected(self, test_client):
        response = await test_client.post("/api/projects", json={"name": "x", "language": "go"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_rename_and_delete(self, test_client):
        project = await create_project(test_client)
        response = await test_client.patch(f"/api/projects/{project['id']}", json={"name": "renamed"})
        assert response.json()["name"] == "renamed"

        response = await test_client.delete(f"/api/projects/{project['id']}")
        assert response.status_code == 204
        response = await test_client.get(f"/api/projects/{project['id']}")
        assert response.status_code == 404


class TestTreeEndpoints:
    @pytest.mark.asyncio
    async def test_add_rename_move_remove(self, test_client):
        project = await create_project(test_client)
        pid = project["id"]

        response = await test_client.post(f"/api/projects/{pid}/folders", json={})
        assert response.status_code == 201
        assert response.json()["entry"]["path"] == "folder"

        response = await test_client.post(f"/api/projects/{pid}/files", json={"parent_folder": "folder"})
        assert response.json()["entry"]["path"] == "folder/script.py"

        response = await test_client.post(
            f"/api/projects/{pid}/rename", json={"path": "folder", "new_name": "pkg"}
        )
        assert response.status_code == 200
        assert response.json()["remapped"]["folder/script.py"] == "pkg/script.py"

        response = await test_client.post(
            f"/api/projects/{pid}/move", json={"path": "pkg/script.py", "new_parent_folder": None}
        )
        assert response.json()["entry"]["path"] == "script.py"

        response = await test_client.post(f"/api/projects/{pid}/remove", json={"path": "pkg"})
        paths = [f["path"] for f in response.json()["project"]["files"]]
        assert paths == ["main.py", "script.py"]

        response = await test_client.get(f"/api/projects/{pid}/children")
        assert [c["path"] for c in response.json()["children"]] == ["main.py", "script.py"]

    @pytest.mark.asyncio
    async def test_name_conflict_is_409(self, test_client):
        project = await create_project(test_client)
        pid = project["id"]
        await test_client.post(f"/api/projects/{pid}/files", json={})

        response = await test_client.post(
            f"/api/projects/{pid}/rename", json={"path": "script.py", "new_name": "main.py"}
        )
        assert response.status_code == 409
        assert response.json()["error"] == "name_conflict"

    @pytest.mark.asyncio
    async def test_cyclic_move_is_409(self, test_client):
        project = await create_project(test_client)
        pid = project["id"]
        await test_client.post(f"/api/projects/{pid}/folders", json={})
        await test_client.post(f"/api/projects/{pid}/folders", json={"parent_folder": "folder"})

        response = await test_client.post(
            f"/api/projects/{pid}/move", json={"path": "folder", "new_parent_folder": "folder/folder"}
        )
        assert response.status_code == 409
        assert response.json()["error"] == "cyclic_move"

    @pytest.mark.asyncio
    async def test_last_file_is_409(self, test_client):
        project = await create_project(test_client)
        response = await test_client.post(f"/api/projects/{project['id']}/remove", json={"path": "main.py"})
        assert response.status_code == 409
        assert response.json()["error"] == "last_file_protected"

    @pytest.mark.asyncio
    async def test_invalid_name_is_400(self, test_client):
        project = await create_project(test_client)
        response = await test_client.post(
            f"/api/projects/{project['id']}/upload", json={"filename": "a/b.py", "contents": ""}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_contents_edit_is_visible_before_autosave(self, test_client):
        project = await create_project(test_client)
        pid = project["id"]

        response = await test_client.put(
            f"/api/projects/{pid}/contents", json={"path": "main.py", "contents": "print(42)\n"}
        )
        assert response.status_code == 200

        response = await test_client.get(f"/api/projects/{pid}")
        assert response.json()["files"][0]["contents"] == "print(42)\n"

        response = await test_client.post(f"/api/projects/{pid}/save")
        assert response.status_code == 200
        assert workspace_service.autosave.pending(pid) is None

    @pytest.mark.asyncio
    async def test_packages(self, test_client):
        project = await create_project(test_client)
        pid = project["id"]
        response = await test_client.post(f"/api/projects/{pid}/packages", json={"name": " requests "})
        assert response.json()["installed_packages"] == ["requests"]
        response = await test_client.delete(f"/api/projects/{pid}/packages/requests")
        assert response.json()["installed_packages"] == []


class TestRun:
    @pytest.mark.asyncio
    async def test_run_project(self, test_client):
        project = await create_project(test_client)
        result = ExecutionResult(success=True, stdout="Hello, World!\n", output="Hello, World!\n", provider="piston")
        with patch("ide_workspace.services.languages.execution_service") as mock_service:
            mock_service.run = AsyncMock(return_value=result)
            response = await test_client.post(f"/api/projects/{project['id']}/run", json={"stdin": ""})

        assert response.status_code == 200
        assert response.json()["output"] == "Hello, World!\n"


class TestSyncEndpoints:
    @pytest.fixture(autouse=True)
    def _remote(self, monkeypatch, remote):
        self.remote = remote
        monkeypatch.setattr(workspace_service, "sync_engine", SyncEngine(remote))

    @pytest.mark.asyncio
    async def test_push_then_pull(self, test_client):
        project = await create_project(test_client)
        pid = project["id"]

        response = await test_client.post(f"/api/projects/{pid}/push", json={"token": "tok", "repo": "demo"})
        assert response.status_code == 200
        body = response.json()
        assert body["repo"] == "student/demo"
        assert body["commit_sha"]
        assert body["project"]["has_remote_token"] is True
        assert "remote_token" not in body["project"]

        response = await test_client.post(f"/api/projects/{pid}/pull", json={})
        assert response.status_code == 200
        paths = [f["path"] for f in response.json()["files"]]
        assert paths == ["README.md", "main.py"]

    @pytest.mark.asyncio
    async def test_push_without_token_is_401(self, test_client):
        project = await create_project(test_client)
        response = await test_client.post(f"/api/projects/{project['id']}/push", json={"repo": "demo"})
        assert response.status_code == 401
        assert response.json()["error"] == "remote_auth_error"

    @pytest.mark.asyncio
    async def test_partial_push_is_502_with_breakdown(self, test_client):
        project = await create_project(test_client)
        self.remote.fail_blobs_containing = "Hello"

        response = await test_client.post(
            f"/api/projects/{project['id']}/push", json={"token": "tok", "repo": "demo"}
        )

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "remote_partial_failure"
        assert body["details"]["stage"] == "blob"
        assert body["details"]["result"]["failed"] == 1

    @pytest.mark.asyncio
    async def test_pull_unbound_is_400(self, test_client):
        project = await create_project(test_client)
        response = await test_client.post(f"/api/projects/{project['id']}/pull", json={"token": "tok"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_clone(self, test_client):
        self.remote.seed("octo/tool", {"src/Main.java": "public class Main { public static void main(String[] a) {} }"})

        response = await test_client.post(
            "/api/projects/clone",
            json={"repo_url": "octo/tool", "token": "tok", "language": "java"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["active_file"] == "src/Main.java"
        assert body["project"]["remote_repo"] == "octo/tool"

        response = await test_client.get(f"/api/projects/{body['project']['id']}")
        assert [f["path"] for f in response.json()["files"]] == ["src", "src/Main.java"]

    @pytest.mark.asyncio
    async def test_clone_missing_repository_is_404(self, test_client):
        response = await test_client.post(
            "/api/projects/clone", json={"repo_url": "octo/missing", "token": "tok"}
        )
        assert response.status_code == 404
        assert response.json()["error"] == "remote_not_found"
