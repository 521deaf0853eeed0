"""End-to-end tests for the HTTP API against a live mock FTP server."""

import base64
import json

import pytest
from fastapi.testclient import TestClient

from webftp.core.metrics import metrics
from webftp.main import SESSION_COOKIE, create_app

from tests.conftest import build_app_config


def _app(ftp_server, **overrides):
    return create_app(build_app_config(ftp_server.host, ftp_server.port, **overrides))


@pytest.fixture
def client(ftp_server):
    with TestClient(_app(ftp_server)) as test_client:
        yield test_client


def csrf_token(client: TestClient) -> str:
    response = client.get("/api/auth/csrf-token")
    assert response.status_code == 200
    return response.json()["csrf_token"]


def login(client: TestClient, username: str, password: str):
    return client.post(
        "/api/auth/login",
        data={"username": username, "password": password},
        headers={"X-CSRF-Token": csrf_token(client)},
    )


@pytest.fixture
def session(client, ftp_server):
    """Logged-in client plus the CSRF header to send with mutations."""
    response = login(client, ftp_server.username, ftp_server.password)
    assert response.status_code == 200, response.text
    return client, {"X-CSRF-Token": response.json()["csrf_token"]}


class TestAuth:
    """Login, logout and request guards."""

    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "healthy"
        assert body["ftp_server"]["reachable"] is True
        assert body["active_sessions"] == 0

    def test_security_headers_and_request_id(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Request-ID"] == "abc123"

    def test_requires_login(self, client):
        response = client.get("/api/files/contents", params={"path": "/"})
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Not authenticated", "error": "unauthorized"}

    def test_login_requires_csrf_token(self, client, ftp_server):
        response = client.post(
            "/api/auth/login",
            data={"username": ftp_server.username, "password": ftp_server.password},
        )
        assert response.status_code == 403
        assert response.json()["message"] == "Invalid security token"

    def test_login(self, client, ftp_server):
        response = login(client, ftp_server.username, ftp_server.password)

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["message"] == "Connected successfully"
        assert body["username"] == ftp_server.username
        assert body["csrf_token"]

        status = client.get("/api/auth/status").json()
        assert status == {
            "authenticated": True,
            "username": ftp_server.username,
            "host": ftp_server.host,
            "port": ftp_server.port,
        }

    def test_password_not_in_cookie(self, session, ftp_server):
        client, _ = session
        payload = client.cookies[SESSION_COOKIE].strip('"').split(".")[0]
        decoded = base64.b64decode(payload + "=" * (-len(payload) % 4))
        assert ftp_server.password.encode() not in decoded
        assert b"sid" in decoded

    def test_wrong_password(self, client, ftp_server):
        response = login(client, ftp_server.username, "wrongpassword")

        assert response.status_code == 401
        assert response.json()["message"] == "Authentication failed - invalid username or password"
        assert client.get("/api/auth/status").json() == {"authenticated": False}

    def test_missing_credentials(self, client):
        response = login(client, "", "")
        assert response.status_code == 400
        assert response.json()["message"] == "Username and password are required"

    def test_lockout_after_repeated_failures(self, ftp_server):
        with TestClient(_app(ftp_server, max_attempts=2)) as client:
            for _ in range(2):
                assert login(client, ftp_server.username, "bad").status_code == 401

            response = login(client, ftp_server.username, ftp_server.password)

        assert response.status_code == 429
        assert response.json()["message"] == "Too many failed attempts. Please try again in 15 minute(s)."

    def test_forwarded_header_ignored_from_untrusted_peer(self, ftp_server):
        with TestClient(_app(ftp_server, max_attempts=2)) as client:
            for forwarded in ("10.0.0.1", "10.0.0.2"):
                response = client.post(
                    "/api/auth/login",
                    data={"username": ftp_server.username, "password": "bad"},
                    headers={"X-CSRF-Token": csrf_token(client), "X-Forwarded-For": forwarded},
                )
                assert response.status_code == 401

            response = client.post(
                "/api/auth/login",
                data={"username": ftp_server.username, "password": ftp_server.password},
                headers={"X-CSRF-Token": csrf_token(client), "X-Forwarded-For": "10.0.0.3"},
            )

        assert response.status_code == 429

    def test_forwarded_header_from_trusted_proxy(self, ftp_server):
        app = _app(ftp_server, max_attempts=1, trusted_proxies=("testclient",))
        with TestClient(app) as client:
            def attempt(forwarded, password):
                return client.post(
                    "/api/auth/login",
                    data={"username": ftp_server.username, "password": password},
                    headers={"X-CSRF-Token": csrf_token(client), "X-Forwarded-For": forwarded},
                )

            assert attempt("10.0.0.1", "bad").status_code == 401
            assert attempt("10.0.0.1", ftp_server.password).status_code == 429
            assert attempt("10.0.0.2, 10.0.0.1", ftp_server.password).status_code == 200
            # unparseable values fall back to the proxy address
            assert attempt("not-an-ip", "bad").status_code == 401
            assert attempt("also-bad", ftp_server.password).status_code == 429

    def test_logout(self, session):
        client, headers = session
        response = client.post("/api/auth/logout", headers=headers)

        assert response.json() == {"success": True, "message": "You have been logged out successfully."}
        assert client.get("/api/files/contents").status_code == 401

    def test_mutation_without_token_rejected(self, session, ftp_server):
        client, _ = session
        response = client.post("/api/files/create-folder", data={"path": "/", "foldername": "x"})

        assert response.status_code == 403
        assert not ftp_server.local("/x").exists()

    def test_token_accepted_as_form_field(self, session, ftp_server):
        client, headers = session
        response = client.post(
            "/api/files/create-folder",
            data={"path": "/", "foldername": "via-form", "_csrf_token": headers["X-CSRF-Token"]},
        )
        assert response.json()["success"] is True
        assert ftp_server.local("/via-form").is_dir()

    def test_metrics_require_login(self, client):
        assert client.get("/api/metrics").status_code == 401

    def test_metrics_count_failed_requests(self, client, ftp_server):
        metrics.reset()
        assert client.get("/api/files/contents", params={"path": "/"}).status_code == 401
        login(client, ftp_server.username, ftp_server.password)

        snapshot = client.get("/api/metrics").json()["metrics"]

        route = snapshot["api./api/files/contents"]
        assert route["count"] == 1
        assert route["errors"] == 1
        assert route["error_rate"] == 1.0


class TestBrowsing:
    """Read-only file manager endpoints."""

    def test_contents(self, session):
        client, _ = session
        body = client.get("/api/files/contents", params={"path": "/"}).json()

        assert body["success"] is True
        assert body["message"] == ""
        assert body["path"] == "/"
        assert [f["name"] for f in body["folders"]] == ["docs", "empty", "images", "site"]
        config_file = body["files"][0]
        assert config_file["name"] == "config.json"
        assert config_file["type"] == "file"
        assert config_file["extension"] == "json"
        assert "size" not in body["folders"][0]

    def test_contents_of_missing_folder(self, session):
        client, _ = session
        body = client.get("/api/files/contents", params={"path": "/nope"}).json()
        assert body == {"success": False, "message": "Folder not found", "path": "/nope", "folders": [], "files": []}

    def test_traversal_rejected(self, session):
        client, _ = session
        body = client.get("/api/files/contents", params={"path": "/docs/../.."}).json()
        assert body["success"] is False
        assert body["message"] == "Invalid path"

    def test_tree(self, session):
        client, _ = session
        body = client.get("/api/files/tree", params={"path": "/site"}).json()

        assert [entry["name"] for entry in body["tree"]] == ["assets", "index.html"]
        assert body["tree"][0]["children"] == []
        assert "children" not in body["tree"][1]

    def test_read(self, session):
        client, _ = session
        body = client.get("/api/files/read", params={"path": "/docs/readme.txt"}).json()

        assert body["success"] is True
        assert body["content"] == "hello from webftp\n"
        assert body["isEditable"] is True
        assert body["isPreviewable"] is False

    def test_read_image_as_base64(self, session):
        client, _ = session
        body = client.get("/api/files/read", params={"path": "/images/logo.png"}).json()
        assert base64.b64decode(body["content"]).startswith(b"\x89PNG")
        assert body["isPreviewable"] is True

    def test_image_preview(self, session):
        client, _ = session
        response = client.get("/api/files/image", params={"path": "/images/logo.png"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content.startswith(b"\x89PNG")

    def test_download(self, session):
        client, _ = session
        response = client.get("/api/files/download", params={"path": "/site/index.html"})

        assert response.status_code == 200
        assert response.content == b"<h1>Hello</h1>\n"
        assert response.headers["content-disposition"] == 'attachment; filename="index.html"'

    def test_download_missing_file(self, session):
        client, _ = session
        response = client.get("/api/files/download", params={"path": "/nope.bin"})

        assert response.status_code == 404
        assert response.json()["message"] == "File not found"


class TestMutations:
    """Mutating endpoints, verified on the served filesystem."""

    def test_write(self, session, ftp_server):
        client, headers = session
        response = client.post(
            "/api/files/write",
            data={"path": "/docs/notes.md", "content": "# Updated\n"},
            headers=headers,
        )

        assert response.json() == {"success": True, "message": "File saved successfully", "path": "/docs/notes.md"}
        assert ftp_server.local("/docs/notes.md").read_text() == "# Updated\n"

    def test_write_non_editable(self, session):
        client, headers = session
        response = client.post(
            "/api/files/write",
            data={"path": "/images/logo.png", "content": "x"},
            headers=headers,
        )
        assert response.json() == {"success": False, "message": "File type not editable"}

    def test_create_file(self, session, ftp_server):
        client, headers = session
        response = client.post(
            "/api/files/create-file",
            data={"path": "/docs", "filename": "todo.txt"},
            headers=headers,
        )

        assert response.json()["path"] == "/docs/todo.txt"
        assert ftp_server.local("/docs/todo.txt").exists()

    def test_create_folder(self, session, ftp_server):
        client, headers = session
        response = client.post(
            "/api/files/create-folder",
            data={"path": "/site", "foldername": "css"},
            headers=headers,
        )

        assert response.json()["success"] is True
        assert ftp_server.local("/site/css").is_dir()

    def test_rename(self, session, ftp_server):
        client, headers = session
        response = client.post(
            "/api/files/rename",
            data={"old_path": "/docs/readme.txt", "new_name": "README.txt"},
            headers=headers,
        )

        body = response.json()
        assert body["success"] is True
        assert body["new_path"] == "/docs/README.txt"
        assert body["parent_path"] == "/docs"
        assert ftp_server.local("/docs/README.txt").exists()

    def test_move_into_other_folder(self, session, ftp_server):
        client, headers = session
        response = client.post(
            "/api/files/move",
            data={"source_path": "/docs/notes.md", "destination_path": "/site/assets/notes.md"},
            headers=headers,
        )

        body = response.json()
        assert body["success"] is True
        assert body["source_path"] == "/docs/notes.md"
        assert body["destination_path"] == "/site/assets/notes.md"
        assert not ftp_server.local("/docs/notes.md").exists()
        assert ftp_server.local("/site/assets/notes.md").exists()

    def test_move_onto_existing_file(self, session, ftp_server):
        client, headers = session
        response = client.post(
            "/api/files/move",
            data={"source_path": "/docs/notes.md", "destination_path": "/config.json"},
            headers=headers,
        )

        assert response.json()["message"] == "A file or folder with this name already exists"
        assert ftp_server.local("/docs/notes.md").exists()

    def test_move_rejects_traversal(self, session, ftp_server):
        client, headers = session
        response = client.post(
            "/api/files/move",
            data={"source_path": "/docs/notes.md", "destination_path": "/../notes.md"},
            headers=headers,
        )

        assert response.json() == {"success": False, "message": "Invalid path"}
        assert ftp_server.local("/docs/notes.md").exists()

    def test_delete_batch(self, session, ftp_server):
        client, headers = session
        response = client.post(
            "/api/files/delete",
            data={"paths": json.dumps(["/site", "/config.json"])},
            headers=headers,
        )

        body = response.json()
        assert body["success"] is True
        assert body["successCount"] == 2
        assert body["failedCount"] == 0
        assert {item["type"] for item in body["results"]} == {"directory", "file"}
        assert not ftp_server.local("/site").exists()
        assert not ftp_server.local("/config.json").exists()

    def test_delete_invalid_json(self, session):
        client, headers = session
        response = client.post("/api/files/delete", data={"paths": "[oops"}, headers=headers)
        assert response.json()["message"] == "Invalid JSON in paths"
