import logging
import uuid
from dataclasses import dataclass, replace

logger = logging.getLogger(__name__)

DEFAULT_CONTENT = {
    "json": "{}",
    "shader": "shader_type canvas_item;\n",
    "gdscript": "extends Node\n",
}

SHADER_SUFFIXES = (".gdshader", ".shader")


class ValidationError(ValueError):
    """Malformed local input. Raised before any state changes."""


def infer_language(name):
    lowered = name.lower()
    if lowered.endswith(".json"):
        return "json"
    if lowered.endswith(SHADER_SUFFIXES):
        return "shader"
    return "gdscript"


@dataclass(frozen=True)
class ProjectFile:
    id: str
    name: str
    content: str

    @property
    def language(self):
        return infer_language(self.name)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "language": self.language,
            "content": self.content,
        }


def new_file_id(snapshot):
    taken = {f.id for f in snapshot}
    while True:
        candidate = uuid.uuid4().hex[:9]
        if candidate not in taken:
            return candidate


def find_file(snapshot, file_id):
    for f in snapshot:
        if f.id == file_id:
            return f
    return None


def create_file(snapshot, name):
    if name is not None and not isinstance(name, str):
        raise ValidationError("File name must be a string")
    name = (name or "").strip()
    if not name:
        raise ValidationError("File name cannot be empty")
    new_file = ProjectFile(
        id=new_file_id(snapshot),
        name=name,
        content=DEFAULT_CONTENT[infer_language(name)],
    )
    return tuple(snapshot) + (new_file,)


def update_file_content(snapshot, file_id, content):
    # Unknown ids leave the snapshot as it was.
    return tuple(
        replace(f, content=content) if f.id == file_id else f
        for f in snapshot
    )


def delete_file(snapshot, file_id):
    if len(snapshot) <= 1:
        return tuple(snapshot)
    return tuple(f for f in snapshot if f.id != file_id)


def resolve_active_file(snapshot, active_id):
    found = find_file(snapshot, active_id)
    if found is not None:
        return found
    return snapshot[0]


class ProjectState:
    """The visible project: the current snapshot plus the active file pointer."""

    def __init__(self, files, active_file_id=None):
        files = tuple(files)
        if not files:
            raise ValidationError("A project needs at least one file")
        self.files = files
        self.active_file_id = active_file_id if active_file_id is not None else files[0].id
        self.active_file()

    def active_file(self):
        active = resolve_active_file(self.files, self.active_file_id)
        if active.id != self.active_file_id:
            logger.debug(
                "Active file %s not in snapshot, repointing to %s",
                self.active_file_id, active.id,
            )
            self.active_file_id = active.id
        return active

    def to_dict(self):
        return {
            "files": [f.to_dict() for f in self.files],
            "activeFileId": self.active_file().id,
        }


INITIAL_PLAYER_SCRIPT = """\
extends CharacterBody2D

const SPEED = 300.0
const JUMP_VELOCITY = -400.0

var gravity = ProjectSettings.get_setting("physics/2d/default_gravity")

func _physics_process(delta):
\tif not is_on_floor():
\t\tvelocity.y += gravity * delta

\tif Input.is_action_just_pressed("ui_accept") and is_on_floor():
\t\tvelocity.y = JUMP_VELOCITY

\tvar direction = Input.get_axis("ui_left", "ui_right")
\tif direction:
\t\tvelocity.x = direction * SPEED
\telse:
\t\tvelocity.x = move_toward(velocity.x, 0, SPEED)

\tmove_and_slide()
"""

INITIAL_FILES = (
    ProjectFile(id="1", name="player.gd", content=INITIAL_PLAYER_SCRIPT),
    ProjectFile(id="2", name="game_manager.gd", content="extends Node\n\nvar score: int = 0\n"),
)
