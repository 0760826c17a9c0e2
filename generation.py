import base64
import json
import logging
import os
import time
import uuid
from dataclasses import dataclass, field

from google import genai
from google.genai import types
from google.genai.types import Modality

import prompts
from project_store import ValidationError

logger = logging.getLogger(__name__)

CODE_MODEL = "gemini-3-pro-preview"
VISION_MODEL = "gemini-3-pro-image-preview"
IMAGE_MODEL = "gemini-3-pro-image-preview"
CHAT_MODEL = "gemini-3-pro-preview"

CODE_THINKING_BUDGET = 4096
ANALYZE_THINKING_BUDGET = 2048
HTTP_TIMEOUT_MS = 300_000

VERBOSITY_LEVELS = ("minimal", "standard", "educational")
TYPING_MODES = ("strict", "dynamic")
ARCHITECTURES = ("default", "composition", "inheritance")
GENERATION_MODES = ("general", "physics", "logic", "asset")
GODOT_CONTEXTS = ("2D", "3D", "UI", "Logic", "Shader")

EMPTY_CHAT_REPLY = "I couldn't generate a response."

CODE_RESPONSE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "code": types.Schema(type=types.Type.STRING, description="The full GDScript code source."),
        "explanation": types.Schema(
            type=types.Type.STRING,
            description="Brief explanation of changes and node requirements.",
        ),
    },
    required=["code", "explanation"],
)


class GenerationError(Exception):
    """The Gemini call failed or returned something unusable."""


def _choice(value, allowed, label):
    if value not in allowed:
        raise ValidationError(f"Invalid {label}: {value!r} (expected one of {', '.join(allowed)})")
    return value


@dataclass(frozen=True)
class GenerationConfig:
    creativity: float = 0.5
    verbosity: str = "standard"
    typing: str = "strict"
    architecture: str = "default"

    def __post_init__(self):
        try:
            creativity = float(self.creativity)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid creativity: {self.creativity!r}") from None
        if not 0.0 <= creativity <= 1.0:
            raise ValidationError("Creativity must be between 0.0 and 1.0")
        object.__setattr__(self, "creativity", creativity)
        _choice(self.verbosity, VERBOSITY_LEVELS, "verbosity")
        _choice(self.typing, TYPING_MODES, "typing")
        _choice(self.architecture, ARCHITECTURES, "architecture")

    @classmethod
    def from_dict(cls, data):
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValidationError("Config must be an object")
        known = {k: data[k] for k in ("creativity", "verbosity", "typing", "architecture") if k in data}
        return cls(**known)

    def to_dict(self):
        return {
            "creativity": self.creativity,
            "verbosity": self.verbosity,
            "typing": self.typing,
            "architecture": self.architecture,
        }


@dataclass
class CodeRequest:
    prompt: str
    files: tuple
    target_file_id: str
    mode: str = "general"
    godot_context: str = "2D"
    reference: str = ""
    reference_image: bytes = None
    config: GenerationConfig = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        _choice(self.mode, GENERATION_MODES, "mode")
        _choice(self.godot_context, GODOT_CONTEXTS, "context")
        self.files = tuple(self.files)


@dataclass(frozen=True)
class GeneratedCode:
    code: str
    explanation: str


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str

    def to_dict(self):
        return {"role": self.role, "content": self.content}


def parse_code_response(text):
    try:
        data = json.loads(text or "{}")
    except json.JSONDecodeError as e:
        raise GenerationError(f"Malformed response from model: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("code"), str):
        raise GenerationError("Model response did not include code")
    explanation = data.get("explanation") or ""
    return GeneratedCode(code=data["code"], explanation=str(explanation))


def extract_image_url(response):
    candidates = response.candidates or []
    content = candidates[0].content if candidates else None
    for part in (content.parts if content and content.parts else []):
        if part.inline_data and part.inline_data.data:
            b64 = base64.b64encode(part.inline_data.data).decode("utf-8")
            mime = part.inline_data.mime_type or "image/png"
            return f"data:{mime};base64,{b64}"
    raise GenerationError("No image data received in response.")


def to_chat_history(messages):
    history = []
    for message in messages:
        # Gemini expects the conversation to open with a user turn.
        if not history and message.role != "user":
            continue
        history.append(types.Content(
            role=message.role,
            parts=[types.Part.from_text(text=message.content)],
        ))
    return history


class GenerationClient:
    """Thin wrapper around ``genai.Client`` for the editor's four tool calls."""

    def __init__(self, client=None, api_key=None):
        self._client = client
        self._api_key = api_key

    @property
    def client(self):
        if self._client is None:
            api_key = self._api_key or os.environ.get("GEMINI_API_KEY")
            if not api_key:
                raise GenerationError("API Key missing")
            self._client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=HTTP_TIMEOUT_MS),
            )
        return self._client

    def _generate(self, model, contents, config):
        client = self.client
        try:
            start = time.time()
            response = client.models.generate_content(
                model=model, contents=contents, config=config,
            )
            logger.info("%s answered in %.1fs", model, time.time() - start)
            return response
        except Exception as e:
            raise GenerationError(str(e)) from e

    def generate_code(self, request):
        contents = []
        if request.reference_image:
            contents.append(types.Part.from_bytes(data=request.reference_image, mime_type="image/jpeg"))
        contents.append(types.Part.from_text(text=prompts.build_code_prompt(request)))

        config = types.GenerateContentConfig(
            system_instruction=prompts.SYSTEM_INSTRUCTION,
            response_mime_type="application/json",
            response_schema=CODE_RESPONSE_SCHEMA,
            thinking_config=types.ThinkingConfig(thinking_budget=CODE_THINKING_BUDGET),
        )
        model = VISION_MODEL if request.reference_image else CODE_MODEL
        logger.info("Code request %s for file %s (%s mode)", request.request_id, request.target_file_id, request.mode)
        response = self._generate(model, contents, config)
        return parse_code_response(response.text)

    def generate_image(self, prompt, reference_image=None):
        contents = []
        if reference_image:
            contents.append(types.Part.from_bytes(data=reference_image, mime_type="image/jpeg"))
        contents.append(types.Part.from_text(
            text=prompts.build_image_prompt(prompt, has_reference=bool(reference_image)),
        ))
        config = types.GenerateContentConfig(
            response_modalities=[Modality.TEXT, Modality.IMAGE],
            image_config=types.ImageConfig(aspect_ratio="1:1", image_size="2K"),
        )
        response = self._generate(IMAGE_MODEL, contents, config)
        return extract_image_url(response)

    def chat(self, history, message, files):
        client = self.client
        try:
            chat = client.chats.create(
                model=CHAT_MODEL,
                config=types.GenerateContentConfig(
                    system_instruction=prompts.build_chat_instruction(files),
                ),
                history=to_chat_history(history),
            )
            response = chat.send_message(message)
        except Exception as e:
            raise GenerationError(str(e)) from e
        return response.text or EMPTY_CHAT_REPLY

    def analyze_error(self, error_text, code):
        config = types.GenerateContentConfig(
            system_instruction=prompts.SYSTEM_INSTRUCTION,
            thinking_config=types.ThinkingConfig(thinking_budget=ANALYZE_THINKING_BUDGET),
        )
        response = self._generate(CODE_MODEL, prompts.build_error_prompt(error_text, code), config)
        return response.text or "No analysis returned."
