from __future__ import annotations

from typing import Callable, List

import pytest

from editor import EditorSession
from generation import GeneratedCode, GenerationError
from project_store import ProjectFile


class FakeGenerationClient:
    """In-memory stand-in for GenerationClient that records every call."""

    def __init__(self) -> None:
        self.code_result = GeneratedCode(code="extends Node2D\n", explanation="Rewrote the script.")
        self.image_url = "data:image/png;base64,AAAA"
        self.chat_reply = "Use a signal."
        self.analysis = "The node is null because it is freed."
        self.error: Exception | None = None
        self.code_requests: List = []
        self.image_calls: List = []
        self.chat_calls: List = []
        self.analyze_calls: List = []
        self.before_return: Callable[[], None] | None = None

    def _maybe_fail(self) -> None:
        if self.before_return is not None:
            self.before_return()
        if self.error is not None:
            raise self.error

    def generate_code(self, request):
        self.code_requests.append(request)
        self._maybe_fail()
        return self.code_result

    def generate_image(self, prompt, reference_image=None):
        self.image_calls.append((prompt, reference_image))
        self._maybe_fail()
        return self.image_url

    def chat(self, history, message, files):
        self.chat_calls.append((list(history), message, files))
        self._maybe_fail()
        return self.chat_reply

    def analyze_error(self, error_text, code):
        self.analyze_calls.append((error_text, code))
        self._maybe_fail()
        return self.analysis


@pytest.fixture
def two_files():
    return (
        ProjectFile(id="1", name="player.gd", content="A"),
        ProjectFile(id="2", name="enemy.gd", content="extends Node\n"),
    )


@pytest.fixture
def fake_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def session(fake_client, two_files) -> EditorSession:
    return EditorSession(client=fake_client, files=two_files, active_file_id="1")


@pytest.fixture
def failing_client(fake_client) -> FakeGenerationClient:
    fake_client.error = GenerationError("vendor exploded")
    return fake_client
