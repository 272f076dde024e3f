"""HTTP 接口测试：验证消息处理、技能目录、健康检查与请求 ID 透传。"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from yozuk.main import app


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def test_health_endpoints(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/healthz").json() == {"status": "ok"}


def test_post_message_returns_blocks(client: TestClient) -> None:
    response = client.post(
        "/api/v1/conversations/api-c1/messages",
        json={"text": "2 + 2", "username": "tester"},
        headers={"X-Request-Id": "req-123"},
    )

    assert response.status_code == 200
    assert response.headers["X-Request-Id"] == "req-123"
    payload = response.json()
    assert payload["conversation_id"] == "api-c1"
    assert payload["blocks"][0]["kind"] == "text"
    assert payload["blocks"][0]["content"] == "4"


def test_clarification_round_trip_over_http(client: TestClient) -> None:
    first = client.post("/api/v1/conversations/api-c2/messages", json={"text": "hash"}).json()
    second = client.post("/api/v1/conversations/api-c2/messages", json={"text": "hello"}).json()

    assert first["blocks"][0]["kind"] == "clarification"
    assert first["blocks"][0]["options"] == ["text"]
    assert second["blocks"][0]["kind"] == "code"


def test_request_id_is_generated_when_missing(client: TestClient) -> None:
    response = client.post("/api/v1/conversations/api-c3/messages", json={"text": "xyzzy"})

    assert response.headers["X-Request-Id"]
    assert response.json()["blocks"][0]["code"] == "no_match"


def test_text_length_is_limited(client: TestClient) -> None:
    response = client.post("/api/v1/conversations/api-c4/messages", json={"text": "x" * 10_001})

    assert response.status_code == 422


def test_skill_catalog(client: TestClient) -> None:
    listing = client.get("/api/v1/skills").json()
    detail = client.get("/api/v1/skills/unit-convert").json()
    missing = client.get("/api/v1/skills/nope")

    assert "calc" in [item["code"] for item in listing]
    assert [item["name"] for item in detail["parameters"]] == ["amount", "source", "target"]
    assert detail["parameters"][2]["required"] is False
    assert missing.status_code == 404


def test_attachment_is_accepted_and_binary_output_is_encoded(client: TestClient) -> None:
    hashed = client.post(
        "/api/v1/conversations/api-c6/messages",
        json={"text": "md5", "attachments": [{"data": "aGVsbG8=", "media_type": "text/plain", "file_name": "a.txt"}]},
    ).json()
    decoded = client.post("/api/v1/conversations/api-c7/messages", json={"text": "base64 decode /wAQ"}).json()

    assert hashed["blocks"][0]["content"] == "5d41402abc4b2a76b9719d911017c592"
    assert decoded["blocks"][0]["kind"] == "data"
    assert decoded["blocks"][0]["data"] == "/wAQ"
    assert decoded["blocks"][0]["media_type"] == "application/octet-stream"


def test_catalog_marks_attachment_parameters(client: TestClient) -> None:
    detail = client.get("/api/v1/skills/hash").json()

    assert [item["accepts_attachments"] for item in detail["parameters"]] == [False, True]
