"""
Integration tests for the FastAPI AG-UI endpoint.
"""

import importlib
import sys

import pytest
from fastapi.testclient import TestClient

from conftest import FakeModelClient


@pytest.fixture
def app_module(monkeypatch, tmp_path, project_tree, skills_dir):
    """Import main.py against a temporary workspace and database."""
    monkeypatch.setenv("WORKSPACE_ROOT", str(project_tree))
    monkeypatch.setenv("SKILLS_DIR", str(skills_dir))
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'app.db'}")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
    monkeypatch.setenv("LOG_FORMAT", "text")

    from coding_agent import config

    config.get_settings.cache_clear()
    sys.modules.pop("main", None)
    module = importlib.import_module("main")
    yield module
    config.get_settings.cache_clear()
    sys.modules.pop("main", None)


def run_input(content, thread_id="thread-1"):
    return {
        "threadId": thread_id,
        "runId": "run-1",
        "state": {},
        "messages": [{"id": "m1", "role": "user", "content": content}],
        "tools": [],
        "context": [],
        "forwardedProps": {},
    }


class TestHealth:
    def test_health_lists_tools(self, app_module):
        client = TestClient(app_module.app)
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["tools"] == ["DatabaseTool", "FileSystemTool", "SkillTool"]


class TestAgentEndpoint:
    def test_streams_ag_ui_events(self, app_module):
        app_module.agent.model_client = FakeModelClient([
            [("FileSystemTool_read_file", {"path": "README.md"})],
            "It is a demo project.",
        ])
        client = TestClient(app_module.app)
        response = client.post("/", json=run_input("what is this?"))

        assert response.status_code == 200
        text = response.text
        for event_type in (
            "RUN_STARTED",
            "TOOL_CALL_START",
            "TOOL_CALL_RESULT",
            "TEXT_MESSAGE_CONTENT",
            "RUN_FINISHED",
        ):
            assert event_type in text
        assert text.index("RUN_STARTED") < text.index("TOOL_CALL_START") < text.index("RUN_FINISHED")
        assert "It is a demo project." in text

    def test_request_without_user_message_is_run_error(self, app_module):
        app_module.agent.model_client = FakeModelClient([])
        client = TestClient(app_module.app)
        payload = run_input("x")
        payload["messages"] = []
        response = client.post("/", json=payload)
        assert "RUN_ERROR" in response.text
        assert app_module.agent.model_client.calls == []

    def test_last_user_message_used(self, app_module):
        from ag_ui.core.types import RunAgentInput

        payload = run_input("second")
        payload["messages"] = [
            {"id": "m1", "role": "user", "content": "first"},
            {"id": "m2", "role": "assistant", "content": "reply"},
            {"id": "m3", "role": "user", "content": "second"},
        ]
        assert app_module.last_user_message(RunAgentInput.model_validate(payload)) == "second"
