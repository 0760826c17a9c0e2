from __future__ import annotations

import base64
import io

import pytest
from PIL import Image

import app as web
from generation import GenerationError


@pytest.fixture
def client(monkeypatch, session):
    monkeypatch.setattr(web, "editor", session)
    web.app.config["TESTING"] = True
    return web.app.test_client()


def png_data_url():
    buf = io.BytesIO()
    Image.new("RGBA", (4, 4), (255, 0, 0, 128)).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("utf-8")


def test_index_serves_editor(client):
    res = client.get("/")
    assert res.status_code == 200
    assert b"Godot Architect" in res.data


def test_project_state(client):
    data = client.get("/api/project").get_json()

    assert [f["name"] for f in data["files"]] == ["player.gd", "enemy.gd"]
    assert data["activeFileId"] == "1"
    assert data["canUndo"] is False


def test_create_select_update_delete_flow(client):
    res = client.post("/api/files", json={"name": "save.json"})
    assert res.status_code == 201
    created = res.get_json()["file"]
    assert created["language"] == "json"
    assert res.get_json()["project"]["activeFileId"] == created["id"]

    res = client.put(f"/api/files/{created['id']}", json={"content": '{"level": 2}'})
    assert res.get_json()["historyLength"] == 3

    res = client.post("/api/files/1/select")
    assert res.get_json()["activeFileId"] == "1"

    res = client.delete("/api/files/1")
    data = res.get_json()
    assert data["activeFileId"] == "2"
    assert len(data["files"]) == 2


def test_undo_redo_routes(client):
    client.put("/api/files/1", json={"content": "B"})

    data = client.post("/api/history/undo").get_json()
    assert data["files"][0]["content"] == "A"
    assert data["canRedo"] is True

    data = client.post("/api/history/redo").get_json()
    assert data["files"][0]["content"] == "B"


def test_validation_errors_return_400(client, session):
    assert client.post("/api/files", json={"name": "  "}).status_code == 400
    assert client.put("/api/files/1", json={"content": 5}).status_code == 400
    assert client.delete("/api/files/missing").status_code == 400
    client.delete("/api/files/2")
    res = client.delete("/api/files/1")
    assert res.status_code == 400
    assert "at least one file" in res.get_json()["error"]
    assert len(session.history) == 2


def test_generate_code_route(client, fake_client):
    res = client.post("/api/generate/code", json={
        "prompt": "add double jump",
        "mode": "physics",
        "context": "2D",
        "config": {"creativity": 0.2, "verbosity": "educational"},
    })

    assert res.status_code == 200
    data = res.get_json()
    assert data["applied"] is True
    assert data["project"]["files"][0]["content"] == "extends Node2D\n"
    assert data["project"]["explanation"] == "Rewrote the script."
    assert fake_client.code_requests[0].config.verbosity == "educational"


def test_generate_code_converts_reference_image_to_jpeg(client, fake_client):
    res = client.post("/api/generate/code", json={"prompt": "", "image": png_data_url()})

    assert res.status_code == 200
    request = fake_client.code_requests[0]
    assert request.reference_image.startswith(b"\xff\xd8")
    assert request.prompt.startswith("Analyze this image")


def test_invalid_image_is_rejected(client, fake_client):
    res = client.post("/api/generate/code", json={"prompt": "x", "image": "data:image/png;base64,bm9wZQ=="})

    assert res.status_code == 400
    assert fake_client.code_requests == []


def test_bad_config_is_rejected(client):
    res = client.post("/api/generate/code", json={"prompt": "x", "config": {"typing": "loose"}})
    assert res.status_code == 400


def test_failed_generation_returns_502_and_keeps_state(client, session, fake_client):
    before = client.get("/api/project").get_json()
    fake_client.error = GenerationError("model overloaded")

    res = client.post("/api/generate/code", json={"prompt": "anything"})

    assert res.status_code == 502
    assert res.get_json()["error"] == "model overloaded"
    assert client.get("/api/project").get_json() == before


def test_busy_tool_returns_409(client, session):
    with session.loading("code"):
        res = client.post("/api/generate/code", json={"prompt": "again"})
    assert res.status_code == 409


def test_generate_image_route(client, fake_client):
    data = client.post("/api/generate/image", json={"prompt": "lava tiles"}).get_json()

    assert data["image"] == fake_client.image_url
    assert data["project"]["generatedImage"] == fake_client.image_url
    assert data["project"]["historyLength"] == 1


def test_chat_routes(client, fake_client):
    transcript = client.get("/api/chat").get_json()["transcript"]
    assert len(transcript) == 1

    data = client.post("/api/chat", json={"message": "hi"}).get_json()
    assert data["reply"] == fake_client.chat_reply
    assert len(data["transcript"]) == 3


def test_chat_failure_returns_transcript(client, fake_client):
    fake_client.error = GenerationError("down")

    res = client.post("/api/chat", json={"message": "hi"})

    assert res.status_code == 502
    assert res.get_json()["transcript"][-1]["content"] == "Error communicating with Gemini."


def test_analyze_route(client, fake_client):
    data = client.post("/api/analyze", json={"error": "Null instance"}).get_json()

    assert data["analysis"] == fake_client.analysis
    assert client.post("/api/analyze", json={"error": ""}).status_code == 400


@pytest.mark.parametrize("method, url, body", [
    ("post", "/api/files", {"name": 5}),
    ("post", "/api/files", ["x"]),
    ("put", "/api/files/1", ["B"]),
    ("post", "/api/generate/code", {"prompt": 7}),
    ("post", "/api/generate/code", {"prompt": "x", "mode": ["physics"]}),
    ("post", "/api/generate/code", {"prompt": "x", "image": 12}),
    ("post", "/api/generate/image", {"prompt": {"text": "rock"}}),
    ("post", "/api/chat", {"message": ["hi"]}),
    ("post", "/api/analyze", {"error": 404}),
])
def test_malformed_bodies_return_400(client, session, fake_client, method, url, body):
    res = getattr(client, method)(url, json=body)

    assert res.status_code == 400
    assert "error" in res.get_json()
    assert len(session.history) == 1
    assert fake_client.code_requests == fake_client.image_calls == fake_client.chat_calls == []


def test_index_renders_quick_actions(client):
    page = client.get("/").get_data(as_text=True)

    assert "/*__QUICK_ACTIONS__*/" not in page
    assert "Add a complete Health system to this script." in page
    assert "Generate a vaporwave aesthetic version." in page


def test_analyze_route_falls_back_to_prompt(client, fake_client):
    res = client.post("/api/analyze", json={"error": "", "prompt": "Player falls through the floor"})

    assert res.status_code == 200
    assert fake_client.analyze_calls[0][0] == "Player falls through the floor"
