SYSTEM_INSTRUCTION = """\
You are an expert Godot 4 Game Engine architect and GDScript specialist.

Your Core Directives:
1. **Godot 4 Compliance**: strictly adhere to Godot 4.x syntax (e.g., 'super()', '@export', 'signal name(args)', 'await', 'Tween' instead of 'Tween node').
2. **Context Awareness**: Pay attention to whether the user is in a 2D, 3D, or UI context.
3. **Best Practices**: Use composition over inheritance where appropriate, prefer Signals for decoupling, and use Resources for data.
4. **Adaptation & Replication**: When provided with reference code (even from other languages like C#, Lua, Python) OR reference images, port the logic, visual style (via shaders/environment settings), and design patterns to idiomatic GDScript.
5. **Modification & Integration**: When asked to ADD a behavior or MODIFY existing code, **PRESERVE** the existing logic and variable state unless explicitly told to replace it. Merge the new functionality seamlessly (e.g., add to _physics_process rather than replacing it).

When generating code:
- Return ONLY valid, complete GDScript code.
- If the requested script requires a specific scene setup (like nodes), mention it in the explanation.
- Use 'class_name' if creating a reusable component.
"""

TYPING_RULES = {
    "strict": "ALWAYS use static typing (e.g. var x: int = 10, func foo() -> void). Fail validation if types are missing.",
    "dynamic": "Use dynamic typing where flexible.",
}

VERBOSITY_RULES = {
    "educational": "Add detailed comments explaining WHY code works. Explain Godot concepts.",
    "minimal": "NO comments. Code only. Compact.",
    "standard": "Standard comments for complex logic.",
}

ARCHITECTURE_RULES = {
    "composition": "Prefer COMPOSITION. Create modular Nodes/Components. Avoid deep inheritance trees.",
    "inheritance": "Prefer INHERITANCE. Extend base classes.",
    "default": "Choose best fit.",
}

ASSET_MODE_BLOCK = """
ASSET GENERATION MODE (PROCEDURAL):
The user wants a procedural asset generated via code (GDScript).
- If 3D: Use 'ImmediateMesh', 'ArrayMesh', 'GridMap', or 'MultiMeshInstance3D' to generate geometry or place objects procedurally.
- If 2D: Use 'draw()' functions in _draw(), or TileMap manipulation.
- If Shader: Write a complete .gdshader file content wrapped in a string or helper script.
- Make the script a '@tool' script so it runs in the editor.
"""

REFERENCE_BLOCK = """
REFERENCE MATERIAL (Source to replicate/adapt):
```text
{reference}
```

INSTRUCTION: Analyze the Reference Material above and replicate its functionality/logic within the Godot 4 environment using best practices. Transform the reference concepts into Godot nodes/signals/resources where appropriate.
"""

IMAGE_ANALYSIS_BLOCK = """
IMAGE ANALYSIS INSTRUCTION:
An image has been provided.
1. Analyze the visual elements, physics implications, and game mechanics implied by the image.
2. If it's a character, generate the movement/animation state machine code that would fit this character's design.
3. If it's an environment, generate a procedural generation script (using GridMap, TileMap, or MultiMeshInstance3D) or a WorldEnvironment configuration script to replicate the atmosphere/style.
4. If it's a UI, generate the Control node logic and theme overrides.
"""

OUTPUT_INSTRUCTION = """
Please provide the updated or new GDScript code for the CURRENT ACTIVE FILE in a JSON format with 'code' and 'explanation' fields.
Ensure the code is complete, strictly typed, and ready to copy-paste.
"""

ERROR_PROMPT = """\
I have a bug in my Godot 4 project.

Code:
{code}

Error Log / Issue:
{error}

Analyze the error and provide a fixed version of the code if possible, and an explanation of why it happened.
Focus on Common Godot 4 pitfalls (e.g. cyclic references, null instances, signal connection errors).
"""

REFERENCE_FALLBACK_PROMPT = "Replicate the functionality of the reference material in Godot 4."
IMAGE_FALLBACK_PROMPT = "Analyze this image and create the corresponding Godot 4 assets/scripts."
IMAGE_ASSET_FALLBACK_PROMPT = "A high quality game asset."


def build_style_guide(config=None):
    if config is None:
        return "DEFAULT STYLE"
    creativity = (
        "Be experimental and creative with solutions."
        if config.creativity > 0.7
        else "Be conservative, strictly standard, and robust."
    )
    return (
        "USER PREFERENCES (STRICTLY FOLLOW):\n"
        f"- **Typing**: {TYPING_RULES[config.typing]}\n"
        f"- **Verbosity**: {VERBOSITY_RULES[config.verbosity]}\n"
        f"- **Architecture**: {ARCHITECTURE_RULES[config.architecture]}\n"
        f"- **Creativity**: {creativity}\n"
    )


def build_project_context(files, active_file_id):
    others = [f for f in files if f.id != active_file_id]
    if not others:
        return ""
    parts = ["OTHER PROJECT FILES (Read-Only Context):\n"]
    for f in others:
        parts.append(f"--- FILE: {f.name} ---\n{f.content}\n\n")
    return "".join(parts)


def effective_prompt(prompt, reference="", has_image=False):
    prompt = (prompt or "").strip()
    if prompt:
        return prompt
    if reference and reference.strip():
        return REFERENCE_FALLBACK_PROMPT
    if has_image:
        return IMAGE_FALLBACK_PROMPT
    return ""


def build_code_prompt(request):
    """Assemble the full task prompt for a code generation request."""
    active = next((f for f in request.files if f.id == request.target_file_id), None)
    active_name = active.name if active else "unknown_script.gd"
    active_content = active.content if active else ""

    sections = [
        f"Target Context: {request.godot_context} Environment\n",
        build_style_guide(request.config),
        build_project_context(request.files, request.target_file_id),
        "CURRENT ACTIVE FILE (You are editing this):\n"
        f"File Name: {active_name}\n"
        "Content:\n"
        f"```gdscript\n{active_content}\n```\n",
    ]
    if request.mode == "asset":
        sections.append(ASSET_MODE_BLOCK)
    if request.reference:
        sections.append(REFERENCE_BLOCK.format(reference=request.reference))
    if request.reference_image:
        sections.append(IMAGE_ANALYSIS_BLOCK)
    sections.append(f"\nTask ({request.mode} Mode): {request.prompt}\n")
    sections.append(OUTPUT_INSTRUCTION)
    return "\n".join(s for s in sections if s)


def build_chat_instruction(files):
    listing = "".join(f"--- {f.name} ---\n{f.content}\n\n" for f in files)
    return f"{SYSTEM_INSTRUCTION}\n Current Project State:\nPROJECT FILES:\n{listing}"


def build_error_prompt(error_text, code):
    return ERROR_PROMPT.format(code=code, error=error_text)


def build_image_prompt(prompt, has_reference):
    prompt = (prompt or "").strip() or IMAGE_ASSET_FALLBACK_PROMPT
    if has_reference:
        return f"Create a game asset texture/sprite based on this reference: {prompt}"
    return f"Create a game asset texture/sprite: {prompt}"


# Quick actions shown under the tool prompt. Each one submits its prompt as-is.
BEHAVIOR_PRESETS = [
    {
        "title": "Movement",
        "desc": "Platformer, Top-down...",
        "prompt": "Inject robust movement logic into the current script. If 2D, add platformer physics (gravity, jump). If 3D, add CharacterBody3D movement.",
    },
    {
        "title": "Health System",
        "desc": "HP, Damage, Death",
        "prompt": "Add a complete Health system to this script. Include 'health' variable, 'take_damage' function, and a 'died' signal.",
    },
    {
        "title": "State Machine",
        "desc": "Idle, Run, Jump",
        "prompt": "Refactor this script to use a simple Enum-based State Machine (IDLE, RUN, JUMP, etc) for better logic management.",
    },
    {
        "title": "Inventory",
        "desc": "Array-based storage",
        "prompt": "Add a simple inventory system using an Array. Include 'add_item', 'remove_item' functions.",
    },
]

TWEAK_PRESETS = [
    {"title": "Double Speed", "prompt": "Modify the movement constants to double the speed."},
    {"title": "Fix Gravity", "prompt": "Ensure gravity application logic is correct using ProjectSettings."},
    {"title": "Add Comments", "prompt": "Add detailed comments to the existing code explaining every function."},
    {"title": "Optimize", "prompt": "Optimize the existing code for performance and readability."},
]

STYLE_PRESETS = [
    {"title": "Pixel Art", "desc": "Retro 8-bit style", "prompt": "Generate a pixel art version of this prompt, 8-bit style."},
    {"title": "Cyberpunk", "desc": "Neon, dark, high contrast", "prompt": "Generate a cyberpunk, neon-lit version of this."},
    {"title": "Vaporwave", "desc": "Soft pinks and blues", "prompt": "Generate a vaporwave aesthetic version."},
    {"title": "Hand Drawn", "desc": "Sketchy, pencil style", "prompt": "Generate a hand-drawn sketch style version."},
]


def quick_actions():
    return {"behaviors": BEHAVIOR_PRESETS, "tweaks": TWEAK_PRESETS, "styles": STYLE_PRESETS}
