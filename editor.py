import logging
import threading
from contextlib import contextmanager

import prompts
from generation import ChatMessage, CodeRequest, GenerationClient, GenerationConfig, GenerationError
from history import HistoryController
from project_store import INITIAL_FILES, ProjectState, ValidationError, find_file

logger = logging.getLogger(__name__)

TOOL_SITES = ("code", "image", "chat", "analyze")

GREETING = "Hello. I am your Godot Architect. I can see all your project files. How can I assist you?"
CHAT_ERROR_REPLY = "Error communicating with Gemini."


class GenerationBusy(Exception):
    """A request from the same tool is still in flight."""


class EditorSession:
    """All per-session editor state, mutated only through these methods.

    Project edits go through the HistoryController so each one is a single
    undoable entry. Gemini calls run outside the state lock; their results are
    applied under it.
    """

    def __init__(self, client=None, files=INITIAL_FILES, active_file_id=None):
        self.state = ProjectState(files, active_file_id)
        self.history = HistoryController(self.state)
        self.client = client if client is not None else GenerationClient()
        self.chat_transcript = [ChatMessage("model", GREETING)]
        self.explanation = ""
        self.generated_image = None
        self._loading = set()
        self._lock = threading.RLock()

    @contextmanager
    def loading(self, site):
        with self._lock:
            if site in self._loading:
                raise GenerationBusy(f"A {site} request is already running")
            self._loading.add(site)
        try:
            yield
        finally:
            with self._lock:
                self._loading.discard(site)

    def is_loading(self, site):
        with self._lock:
            return site in self._loading

    # Project

    def create_file(self, name):
        with self._lock:
            self.generated_image = None
            return self.history.create_file(name)

    def select_file(self, file_id):
        with self._lock:
            self.history.select_file(file_id)
            self.generated_image = None

    def update_file(self, file_id, content):
        with self._lock:
            self.history.update_file(file_id, content)

    def delete_file(self, file_id):
        with self._lock:
            self.history.delete_file(file_id)

    def undo(self):
        with self._lock:
            return self.history.undo()

    def redo(self):
        with self._lock:
            return self.history.redo()

    def active_file(self):
        with self._lock:
            return self.state.active_file()

    # Generation

    def generate_code(self, prompt, mode="general", godot_context="2D", reference="",
                      reference_image=None, config=None):
        with self._lock:
            text = prompts.effective_prompt(prompt, reference, has_image=bool(reference_image))
            if not text:
                raise ValidationError("Describe what to generate, or attach a reference")
            request = CodeRequest(
                prompt=text,
                files=self.state.files,
                target_file_id=self.state.active_file().id,
                mode=mode,
                godot_context=godot_context,
                reference=(reference or "").strip(),
                reference_image=reference_image,
                config=config if config is not None else GenerationConfig(),
            )
        with self.loading("code"):
            result = self.client.generate_code(request)
        return self.apply_code(request, result)

    def apply_code(self, request, result):
        """Apply a code response to the file it was requested for.

        Returns False when that file was deleted while the request was out.
        """
        with self._lock:
            if find_file(self.state.files, request.target_file_id) is None:
                logger.warning(
                    "Dropping response %s: file %s no longer exists",
                    request.request_id, request.target_file_id,
                )
                return False
            self.history.update_file(request.target_file_id, result.code)
            self.explanation = result.explanation
            self.generated_image = None
            return True

    def generate_image(self, prompt, reference_image=None):
        effective = (prompt or "").strip() or prompts.IMAGE_ASSET_FALLBACK_PROMPT
        with self.loading("image"):
            url = self.client.generate_image(effective, reference_image)
        with self._lock:
            self.generated_image = url
            self.explanation = f"Generated visual asset based on: {effective}"
        return url

    def send_chat(self, message):
        if message is not None and not isinstance(message, str):
            raise ValidationError("Message must be a string")
        message = (message or "").strip()
        if not message:
            raise ValidationError("Message cannot be empty")
        with self.loading("chat"):
            with self._lock:
                history = list(self.chat_transcript)
                files = self.state.files
                self.chat_transcript.append(ChatMessage("user", message))
            try:
                reply = self.client.chat(history, message, files)
            except GenerationError:
                with self._lock:
                    self.chat_transcript.append(ChatMessage("model", CHAT_ERROR_REPLY))
                raise
            with self._lock:
                self.chat_transcript.append(ChatMessage("model", reply))
        return reply

    def analyze_error(self, error_text, prompt=""):
        # The debugger falls back to the prompt box when no log was pasted.
        error_text = (error_text or "").strip() or (prompt or "").strip()
        if not error_text:
            raise ValidationError("Paste an error log or describe the issue")
        code = self.active_file().content
        with self.loading("analyze"):
            analysis = self.client.analyze_error(error_text, code)
        with self._lock:
            self.explanation = analysis
        return analysis

    def to_dict(self):
        with self._lock:
            data = self.state.to_dict()
            data.update({
                "historyIndex": self.history.index,
                "historyLength": len(self.history),
                "canUndo": self.history.can_undo,
                "canRedo": self.history.can_redo,
                "explanation": self.explanation,
                "generatedImage": self.generated_image,
                "loading": sorted(self._loading),
            })
            return data

    def transcript(self):
        with self._lock:
            return [m.to_dict() for m in self.chat_transcript]
