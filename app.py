import base64
import io
import json
import logging
import os
import time

from dotenv import load_dotenv
from PIL import Image
from flask import Flask, request, jsonify

import prompts
from editor import EditorSession, GenerationBusy
from generation import GenerationConfig, GenerationError
from project_store import ValidationError

load_dotenv()

logger = logging.getLogger(__name__)

app = Flask(__name__)

editor = EditorSession()


def decode_reference_image(image_data):
    """Turn a browser data URL into JPEG bytes for Gemini."""
    if not image_data:
        return None
    try:
        b64 = image_data.split(",", 1)[1] if "," in image_data else image_data
        raw_bytes = base64.b64decode(b64)
        img = Image.open(io.BytesIO(raw_bytes))
        img.load()
    except Exception:
        raise ValidationError("Invalid image data") from None

    buf = io.BytesIO()
    img.convert("RGB").save(buf, format="JPEG", quality=90)
    return buf.getvalue()


def request_data():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def text_field(data, key, default=""):
    value = data.get(key, default)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value


@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({"error": str(e), "project": editor.to_dict()}), 400


@app.errorhandler(GenerationBusy)
def handle_busy(e):
    return jsonify({"error": str(e)}), 409


@app.route("/")
def index():
    return HTML_PAGE.replace(
        "/*__QUICK_ACTIONS__*/",
        json.dumps(prompts.quick_actions()),
    )


@app.route("/api/project")
def project():
    return jsonify(editor.to_dict())


@app.route("/api/files", methods=["POST"])
def create_file():
    data = request_data()
    created = editor.create_file(text_field(data, "name"))
    return jsonify({"file": created.to_dict(), "project": editor.to_dict()}), 201


@app.route("/api/files/<file_id>/select", methods=["POST"])
def select_file(file_id):
    editor.select_file(file_id)
    return jsonify(editor.to_dict())


@app.route("/api/files/<file_id>", methods=["PUT"])
def update_file(file_id):
    data = request_data()
    content = data.get("content")
    if not isinstance(content, str):
        raise ValidationError("Content must be a string")
    editor.update_file(file_id, content)
    return jsonify(editor.to_dict())


@app.route("/api/files/<file_id>", methods=["DELETE"])
def delete_file(file_id):
    editor.delete_file(file_id)
    return jsonify(editor.to_dict())


@app.route("/api/history/undo", methods=["POST"])
def undo():
    editor.undo()
    return jsonify(editor.to_dict())


@app.route("/api/history/redo", methods=["POST"])
def redo():
    editor.redo()
    return jsonify(editor.to_dict())


@app.route("/api/generate/code", methods=["POST"])
def generate_code():
    data = request_data()
    config = GenerationConfig.from_dict(data.get("config"))
    image = decode_reference_image(text_field(data, "image"))

    try:
        start = time.time()
        applied = editor.generate_code(
            prompt=text_field(data, "prompt"),
            mode=text_field(data, "mode", "general"),
            godot_context=text_field(data, "context", "2D"),
            reference=text_field(data, "reference"),
            reference_image=image,
            config=config,
        )
        elapsed = round(time.time() - start, 1)
    except GenerationError as e:
        logger.exception("Code generation failed")
        return jsonify({"error": str(e), "project": editor.to_dict()}), 502

    return jsonify({"applied": applied, "elapsed": elapsed, "project": editor.to_dict()})


@app.route("/api/generate/image", methods=["POST"])
def generate_image():
    data = request_data()
    image = decode_reference_image(text_field(data, "image"))

    try:
        start = time.time()
        url = editor.generate_image(text_field(data, "prompt"), image)
        elapsed = round(time.time() - start, 1)
    except GenerationError as e:
        logger.exception("Image generation failed")
        return jsonify({"error": str(e)}), 502

    return jsonify({"image": url, "elapsed": elapsed, "project": editor.to_dict()})


@app.route("/api/chat")
def chat_transcript():
    return jsonify({"transcript": editor.transcript()})


@app.route("/api/chat", methods=["POST"])
def chat():
    data = request_data()

    try:
        start = time.time()
        reply = editor.send_chat(text_field(data, "message"))
        elapsed = round(time.time() - start, 1)
    except GenerationError as e:
        logger.exception("Chat failed")
        return jsonify({"error": str(e), "transcript": editor.transcript()}), 502

    return jsonify({"reply": reply, "elapsed": elapsed, "transcript": editor.transcript()})


@app.route("/api/analyze", methods=["POST"])
def analyze():
    data = request_data()

    try:
        start = time.time()
        analysis = editor.analyze_error(text_field(data, "error"), text_field(data, "prompt"))
        elapsed = round(time.time() - start, 1)
    except GenerationError as e:
        logger.exception("Error analysis failed")
        return jsonify({"error": str(e)}), 502

    return jsonify({"analysis": analysis, "elapsed": elapsed, "project": editor.to_dict()})


HTML_PAGE = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Godot Architect</title>
<style>
  *, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }

  body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
    background: #0f0f0f;
    color: #e0e0e0;
    height: 100vh;
    overflow: hidden;
  }

  .layout {
    display: flex;
    height: 100vh;
  }

  /* ── Navigation rail ── */

  .rail {
    width: 180px;
    flex-shrink: 0;
    border-right: 1px solid #1e1e1e;
    display: flex;
    flex-direction: column;
    padding: 16px 10px;
    gap: 4px;
  }

  .rail .brand {
    font-size: 0.95rem;
    font-weight: 600;
    color: #fff;
    padding: 4px 10px 16px;
  }
  .rail .brand small {
    display: block;
    font-size: 0.62rem;
    color: #555;
    text-transform: uppercase;
    letter-spacing: 1px;
    font-weight: 500;
  }

  .rail-btn {
    background: transparent;
    color: #888;
    text-align: left;
    box-shadow: none;
    padding: 9px 12px;
  }
  .rail-btn:hover { background: #1a1a1a; color: #e0e0e0; }
  .rail-btn.active { background: #1a2633; color: #478cbf; }

  /* ── Panels ── */

  .panel {
    display: flex;
    flex-direction: column;
    height: 100vh;
    overflow: hidden;
  }

  .tools-panel { width: 440px; flex-shrink: 0; border-right: 1px solid #1e1e1e; }
  .files-panel { width: 220px; flex-shrink: 0; border-right: 1px solid #1e1e1e; }
  .editor-panel { flex: 1; }

  .panel-header {
    padding: 16px 24px;
    border-bottom: 1px solid #1e1e1e;
    display: flex;
    align-items: center;
    gap: 10px;
    flex-shrink: 0;
  }

  .panel-header h2 {
    font-size: 0.95rem;
    font-weight: 600;
    color: #fff;
  }

  .panel-header .badge {
    font-size: 0.65rem;
    padding: 2px 8px;
    border-radius: 4px;
    font-weight: 500;
    text-transform: uppercase;
    letter-spacing: 0.5px;
    background: #1a2633;
    color: #478cbf;
  }

  .panel-body {
    flex: 1;
    overflow-y: auto;
    padding: 20px 24px;
    display: flex;
    flex-direction: column;
    gap: 14px;
  }

  .controls {
    display: flex;
    gap: 8px;
    align-items: center;
    flex-wrap: wrap;
  }

  label.field {
    font-size: 0.72rem;
    color: #888;
    display: flex;
    flex-direction: column;
    gap: 6px;
  }

  select, input[type=text] {
    background: #1a1a1a;
    color: #e0e0e0;
    border: 1px solid #2a2a2a;
    border-radius: 8px;
    padding: 8px 12px;
    font-size: 0.82rem;
    outline: none;
    transition: border-color 0.2s;
  }
  select { cursor: pointer; }
  select:hover, select:focus, input[type=text]:focus { border-color: #478cbf; }

  textarea {
    width: 100%;
    min-height: 110px;
    background: #1a1a1a;
    color: #e0e0e0;
    border: 1px solid #2a2a2a;
    border-radius: 10px;
    padding: 14px;
    font-size: 0.9rem;
    font-family: inherit;
    resize: vertical;
    outline: none;
    transition: border-color 0.2s;
    line-height: 1.5;
  }
  textarea:focus { border-color: #478cbf; }
  textarea::placeholder { color: #555; }

  #codeEditor {
    flex: 1;
    min-height: 0;
    border: none;
    border-radius: 0;
    resize: none;
    background: #0d0e12;
    font-family: 'SF Mono', 'Fira Code', 'Cascadia Code', monospace;
    font-size: 0.82rem;
    tab-size: 4;
    white-space: pre;
  }

  button {
    background: #478cbf;
    color: #fff;
    border: none;
    border-radius: 8px;
    padding: 8px 20px;
    font-size: 0.82rem;
    font-weight: 500;
    cursor: pointer;
    transition: background 0.2s, opacity 0.2s;
  }
  button:hover { background: #3a76a3; }
  button:disabled { opacity: 0.4; cursor: not-allowed; }

  .ghost-btn {
    background: #232323;
    color: #aaa;
    font-size: 0.72rem;
    padding: 4px 12px;
    border-radius: 6px;
    border: 1px solid #333;
  }
  .ghost-btn:hover { background: #2e2e2e; color: #e0e0e0; }

  .hidden { display: none !important; }

  /* ── File explorer ── */

  .file-list { list-style: none; padding: 8px; overflow-y: auto; flex: 1; }

  .file-item {
    display: flex;
    align-items: center;
    gap: 8px;
    padding: 7px 10px;
    border-radius: 6px;
    font-size: 0.8rem;
    color: #aaa;
    cursor: pointer;
  }
  .file-item:hover { background: #1a1a1a; }
  .file-item.active { background: #1a2633; color: #fff; }
  .file-item .lang { font-size: 0.6rem; color: #555; text-transform: uppercase; }
  .file-item .name { flex: 1; overflow: hidden; text-overflow: ellipsis; white-space: nowrap; }
  .file-item .del {
    background: transparent;
    color: #555;
    padding: 0 4px;
    font-size: 0.8rem;
    visibility: hidden;
  }
  .file-item:hover .del { visibility: visible; }
  .file-item .del:hover { color: #ef4444; }

  .new-file-form { padding: 8px; border-bottom: 1px solid #1e1e1e; }
  .new-file-form input { width: 100%; }

  /* ── Settings ── */

  .settings {
    background: #141414;
    border: 1px solid #2a2a2a;
    border-radius: 10px;
    padding: 14px;
    display: grid;
    grid-template-columns: 1fr 1fr;
    gap: 12px;
  }

  .settings input[type=range] { accent-color: #478cbf; }

  /* ── Output ── */

  /* ── Quick actions ── */

  .quick-actions h3 {
    font-size: 0.62rem;
    color: #555;
    text-transform: uppercase;
    letter-spacing: 1px;
    margin-bottom: 8px;
  }

  .quick-cards {
    display: grid;
    grid-template-columns: 1fr 1fr;
    gap: 8px;
  }

  .quick-card {
    background: #141414;
    border: 1px solid #2a2a2a;
    color: #e0e0e0;
    text-align: left;
    padding: 10px 12px;
  }
  .quick-card:hover { background: #1a2633; border-color: #2a4a66; }
  .quick-card small { display: block; color: #666; font-size: 0.68rem; margin-top: 2px; }

  .quick-chips { display: flex; gap: 6px; flex-wrap: wrap; margin-top: 8px; }

  .output-card {
    background: #1a1a1a;
    border: 1px solid #2a2a2a;
    border-radius: 10px;
    padding: 16px;
    white-space: pre-wrap;
    word-break: break-word;
    line-height: 1.6;
    font-size: 0.85rem;
  }
  .output-card.error {
    border-color: #ef4444;
    color: #fca5a5;
    background: #1a1111;
  }

  .status {
    font-size: 0.78rem;
    color: #888;
    min-height: 1.2em;
  }
  .status .timer { color: #478cbf; font-variant-numeric: tabular-nums; }

  .loading {
    display: flex;
    align-items: center;
    gap: 10px;
    color: #888;
  }
  .spinner {
    width: 16px; height: 16px;
    border: 2px solid #333;
    border-top-color: #478cbf;
    border-radius: 50%;
    animation: spin 0.8s linear infinite;
  }
  @keyframes spin { to { transform: rotate(360deg); } }

  .attach-preview { max-width: 120px; border-radius: 8px; border: 1px solid #2a2a2a; }

  .image-output {
    position: absolute;
    inset: 60px 24px 24px 24px;
    background: #0d0e12;
    display: flex;
    flex-direction: column;
    align-items: center;
    justify-content: center;
    gap: 12px;
  }
  .image-output img { max-width: 100%; max-height: 90%; border-radius: 10px; }

  /* ── Chat ── */

  .chat-log { display: flex; flex-direction: column; gap: 12px; }
  .chat-msg {
    max-width: 85%;
    border-radius: 12px;
    padding: 10px 14px;
    font-size: 0.85rem;
    line-height: 1.5;
    white-space: pre-wrap;
    word-break: break-word;
  }
  .chat-msg.user { align-self: flex-end; background: #1a2633; border: 1px solid #2a4a66; }
  .chat-msg.model { align-self: flex-start; background: #1a1a1a; border: 1px solid #2a2a2a; }
  .chat-msg .who {
    font-size: 0.6rem;
    text-transform: uppercase;
    letter-spacing: 1px;
    color: #666;
    margin-bottom: 4px;
  }
</style>
</head>
<body>

<div class="layout">

  <!-- ── Navigation rail ── -->
  <nav class="rail">
    <div class="brand">Architect<small>Godot 4 AI</small></div>
    <button class="rail-btn active" data-mode="CODE_GEN">Generator</button>
    <button class="rail-btn" data-mode="ASSET_GEN">Assets</button>
    <button class="rail-btn" data-mode="PHYSICS">Physics</button>
    <button class="rail-btn" data-mode="LOGIC">Logic</button>
    <button class="rail-btn" data-mode="DEBUGGER">Debug</button>
    <button class="rail-btn" data-mode="CHAT">Chat</button>
  </nav>

  <!-- ── Tools / Chat ── -->
  <div class="panel tools-panel">
    <div class="panel-header">
      <h2 id="toolTitle">Script</h2>
      <span class="badge" id="editingBadge"></span>
    </div>

    <div id="toolsBody" class="panel-body">
      <div class="controls" id="contextControls">
        <select id="godotContext">
          <option value="2D" selected>2D</option>
          <option value="3D">3D</option>
          <option value="UI">UI</option>
          <option value="Logic">Code</option>
          <option value="Shader">Shader</option>
        </select>
        <select id="assetOutput" class="hidden">
          <option value="script" selected>Procedural script</option>
          <option value="image">Image asset</option>
        </select>
        <button class="ghost-btn" id="settingsToggle">Settings</button>
      </div>

      <div id="settings" class="settings hidden">
        <label class="field">Creativity <span id="creativityValue">0.5</span>
          <input id="creativity" type="range" min="0" max="1" step="0.1" value="0.5">
        </label>
        <label class="field">Verbosity
          <select id="verbosity">
            <option value="minimal">Minimal</option>
            <option value="standard" selected>Standard</option>
            <option value="educational">Educational</option>
          </select>
        </label>
        <label class="field">Typing
          <select id="typing">
            <option value="strict" selected>Strict</option>
            <option value="dynamic">Dynamic</option>
          </select>
        </label>
        <label class="field">Architecture
          <select id="architecture">
            <option value="default" selected>Default</option>
            <option value="composition">Composition</option>
            <option value="inheritance">Inheritance</option>
          </select>
        </label>
      </div>

      <textarea id="toolPrompt" placeholder="Describe the script you want to create..."></textarea>
      <textarea id="errorInput" class="hidden" placeholder="Paste your stack trace..."></textarea>
      <textarea id="referenceInput" placeholder="Optional reference code or notes to replicate..."></textarea>

      <div class="controls" id="attachControls">
        <input id="imageInput" type="file" accept="image/*" class="hidden">
        <button class="ghost-btn" id="attachBtn">Attach image</button>
        <img id="attachPreview" class="attach-preview hidden" alt="">
        <button class="ghost-btn hidden" id="clearAttach">Remove</button>
      </div>

      <div class="controls">
        <button id="toolSend">Generate</button>
      </div>
      <div id="toolStatus" class="status"></div>

      <div id="quickActions" class="quick-actions">
        <h3 id="quickTitle">Behavior Library</h3>
        <div id="quickCards" class="quick-cards"></div>
        <div id="quickChips" class="quick-chips"></div>
      </div>
      <div id="explanation" class="output-card hidden"></div>
    </div>

    <div id="chatBody" class="panel-body hidden">
      <div id="chatLog" class="chat-log"></div>
      <textarea id="chatInput" placeholder="Ask about your project..."></textarea>
      <div class="controls"><button id="chatSend">Send</button></div>
      <div id="chatStatus" class="status"></div>
    </div>
  </div>

  <!-- ── Project files ── -->
  <div class="panel files-panel">
    <div class="panel-header">
      <h2>Project</h2>
      <button class="ghost-btn" id="newFileBtn" style="margin-left:auto">+</button>
    </div>
    <form id="newFileForm" class="new-file-form hidden">
      <input id="newFileName" type="text" placeholder="script_name.gd">
    </form>
    <ul id="fileList" class="file-list"></ul>
  </div>

  <!-- ── Editor ── -->
  <div class="panel editor-panel" style="position:relative">
    <div class="panel-header">
      <h2 id="editorTitle"></h2>
      <div style="margin-left:auto;display:flex;gap:6px">
        <button class="ghost-btn" id="undoBtn" title="Undo (Ctrl+Z)">Undo</button>
        <button class="ghost-btn" id="redoBtn" title="Redo (Ctrl+Shift+Z)">Redo</button>
      </div>
    </div>
    <textarea id="codeEditor" spellcheck="false"></textarea>
    <div id="imageOutput" class="image-output hidden">
      <img id="generatedImage" alt="Generated asset">
      <button class="ghost-btn" id="closeImage">Back to code</button>
    </div>
  </div>

</div>

<script>
  const MODES = {
    CODE_GEN:  { title: 'Script',   gen: 'general', placeholder: 'Describe the script you want to create...' },
    ASSET_GEN: { title: 'Assets',   gen: 'asset',   placeholder: 'Describe procedural mesh/object logic...' },
    PHYSICS:   { title: 'Physics',  gen: 'physics', placeholder: 'Describe physics behavior...' },
    LOGIC:     { title: 'Logic',    gen: 'logic',   placeholder: 'Describe game logic...' },
    DEBUGGER:  { title: 'Debugger', gen: null,      placeholder: 'Or describe the issue...' },
    CHAT:      { title: 'Assistant' },
  };

  const QUICK_ACTIONS = /*__QUICK_ACTIONS__*/;

  let mode = 'CODE_GEN';
  let project = null;
  let attachedImage = null;
  let committedContent = '';

  const $ = id => document.getElementById(id);
  const codeEditorEl = $('codeEditor');
  const fileListEl = $('fileList');
  const explanationEl = $('explanation');
  const toolSendBtn = $('toolSend');
  const toolStatusEl = $('toolStatus');

  // ── Timer helper ──
  function createTimer(statusEl) {
    let interval = null;
    return {
      start() {
        const t0 = Date.now();
        clearInterval(interval);
        interval = setInterval(() => {
          const s = ((Date.now() - t0) / 1000).toFixed(1);
          statusEl.innerHTML = '<span class="timer">' + s + 's</span> waiting for response...';
        }, 100);
      },
      stop() { clearInterval(interval); interval = null; }
    };
  }
  const toolTimer = createTimer(toolStatusEl);
  const chatTimer = createTimer($('chatStatus'));

  // ── API call helper ──
  async function callApi(method, url, body) {
    const res = await fetch(url, {
      method,
      headers: { 'Content-Type': 'application/json' },
      body: body === undefined ? undefined : JSON.stringify(body),
    });
    const data = await res.json();
    if (!res.ok || data.error) {
      const err = new Error(data.error || 'HTTP ' + res.status);
      err.data = data;
      throw err;
    }
    return data;
  }

  function showError(message) {
    explanationEl.className = 'output-card error';
    explanationEl.textContent = message;
  }

  // ═══════════════════════════════════
  // PROJECT + HISTORY
  // ═══════════════════════════════════
  function render(next) {
    project = next;
    const active = project.files.find(f => f.id === project.activeFileId);

    fileListEl.innerHTML = '';
    project.files.forEach(f => {
      const li = document.createElement('li');
      li.className = 'file-item' + (f.id === project.activeFileId ? ' active' : '');
      li.innerHTML = '<span class="lang"></span><span class="name"></span><button class="del" title="Delete">&times;</button>';
      li.querySelector('.lang').textContent = f.language;
      li.querySelector('.name').textContent = f.name;
      li.addEventListener('click', () => selectFile(f.id));
      li.querySelector('.del').addEventListener('click', e => { e.stopPropagation(); deleteFile(f.id); });
      fileListEl.appendChild(li);
    });

    $('editorTitle').textContent = active.name;
    $('editingBadge').textContent = 'Editing: ' + active.name;
    if (codeEditorEl.value !== active.content) codeEditorEl.value = active.content;
    committedContent = active.content;

    $('undoBtn').disabled = !project.canUndo;
    $('redoBtn').disabled = !project.canRedo;

    if (project.generatedImage) {
      $('generatedImage').src = project.generatedImage;
      $('imageOutput').classList.remove('hidden');
    } else {
      $('imageOutput').classList.add('hidden');
    }

    if (project.explanation && !explanationEl.classList.contains('error')) {
      explanationEl.className = 'output-card';
      explanationEl.textContent = project.explanation;
    }
  }

  async function refresh() {
    render(await callApi('GET', '/api/project'));
  }

  async function mutate(method, url, body) {
    try {
      const data = await callApi(method, url, body);
      render(data.project || data);
    } catch (e) {
      if (e.data && e.data.project) render(e.data.project);
      showError(e.message);
    }
  }

  async function commitEdit() {
    if (!project || codeEditorEl.value === committedContent) return;
    await mutate('PUT', '/api/files/' + project.activeFileId, { content: codeEditorEl.value });
  }

  async function selectFile(id) {
    await commitEdit();
    await mutate('POST', '/api/files/' + id + '/select');
  }

  async function deleteFile(id) {
    await commitEdit();
    await mutate('DELETE', '/api/files/' + id);
  }

  async function undo() { await commitEdit(); await mutate('POST', '/api/history/undo'); }
  async function redo() { await commitEdit(); await mutate('POST', '/api/history/redo'); }

  // Content is committed on blur or Ctrl+S, one history entry per commit.
  codeEditorEl.addEventListener('change', commitEdit);
  codeEditorEl.addEventListener('keydown', e => {
    if (e.key === 'Tab') {
      e.preventDefault();
      const { selectionStart: s, selectionEnd: end } = codeEditorEl;
      codeEditorEl.setRangeText('\t', s, end, 'end');
    }
  });

  $('undoBtn').addEventListener('click', undo);
  $('redoBtn').addEventListener('click', redo);

  window.addEventListener('keydown', e => {
    if (!(e.metaKey || e.ctrlKey)) return;
    const key = e.key.toLowerCase();
    if (key === 's') { e.preventDefault(); commitEdit(); return; }
    // Uncommitted text in the editor keeps the browser's own undo.
    const dirty = document.activeElement === codeEditorEl && codeEditorEl.value !== committedContent;
    if (key === 'z' && !dirty) {
      e.preventDefault();
      if (e.shiftKey) redo(); else undo();
    } else if (key === 'y' && !dirty) {
      e.preventDefault();
      redo();
    }
  });

  $('newFileBtn').addEventListener('click', () => {
    $('newFileForm').classList.toggle('hidden');
    $('newFileName').focus();
  });

  $('newFileForm').addEventListener('submit', async e => {
    e.preventDefault();
    const name = $('newFileName').value.trim();
    if (!name) return;
    await commitEdit();
    await mutate('POST', '/api/files', { name });
    $('newFileName').value = '';
    $('newFileForm').classList.add('hidden');
  });

  $('closeImage').addEventListener('click', () => $('imageOutput').classList.add('hidden'));

  // ═══════════════════════════════════
  // TOOLS
  // ═══════════════════════════════════
  function setMode(next) {
    mode = next;
    document.querySelectorAll('.rail-btn').forEach(b => b.classList.toggle('active', b.dataset.mode === mode));
    const chat = mode === 'CHAT';
    $('toolsBody').classList.toggle('hidden', chat);
    $('chatBody').classList.toggle('hidden', !chat);
    $('toolTitle').textContent = MODES[mode].title;

    const debug = mode === 'DEBUGGER';
    $('quickActions').classList.toggle('hidden', debug);
    $('errorInput').classList.toggle('hidden', !debug);
    $('referenceInput').classList.toggle('hidden', debug);
    $('attachControls').classList.toggle('hidden', debug);
    $('contextControls').classList.toggle('hidden', debug);
    $('assetOutput').classList.toggle('hidden', mode !== 'ASSET_GEN');
    updatePlaceholder();
    if (chat) loadChat();
  }

  function updatePlaceholder() {
    let placeholder = MODES[mode].placeholder || '';
    if (mode === 'ASSET_GEN' && $('assetOutput').value === 'image') {
      placeholder = 'Describe the texture, sprite, or model look...';
    }
    $('toolPrompt').placeholder = placeholder;
    renderQuickActions();
  }

  function quickButton(preset, className) {
    const btn = document.createElement('button');
    btn.className = className;
    btn.textContent = preset.title;
    if (preset.desc) {
      const desc = document.createElement('small');
      desc.textContent = preset.desc;
      btn.appendChild(desc);
    }
    btn.addEventListener('click', () => runTool(preset.prompt));
    return btn;
  }

  function renderQuickActions() {
    const styles = mode === 'ASSET_GEN' && $('assetOutput').value === 'image';
    $('quickTitle').textContent = styles ? 'Smart Styles' : 'Behavior Library';
    const cards = $('quickCards');
    const chips = $('quickChips');
    cards.innerHTML = '';
    chips.innerHTML = '';
    (styles ? QUICK_ACTIONS.styles : QUICK_ACTIONS.behaviors).forEach(p => cards.appendChild(quickButton(p, 'quick-card')));
    if (!styles) QUICK_ACTIONS.tweaks.forEach(p => chips.appendChild(quickButton(p, 'ghost-btn')));
  }

  document.querySelectorAll('.rail-btn').forEach(b => b.addEventListener('click', () => setMode(b.dataset.mode)));
  $('assetOutput').addEventListener('change', updatePlaceholder);
  $('settingsToggle').addEventListener('click', () => $('settings').classList.toggle('hidden'));
  $('creativity').addEventListener('input', () => $('creativityValue').textContent = $('creativity').value);

  $('attachBtn').addEventListener('click', () => $('imageInput').click());
  $('imageInput').addEventListener('change', () => {
    const file = $('imageInput').files[0];
    if (!file) return;
    const reader = new FileReader();
    reader.onloadend = () => {
      attachedImage = reader.result;
      $('attachPreview').src = attachedImage;
      $('attachPreview').classList.remove('hidden');
      $('clearAttach').classList.remove('hidden');
    };
    reader.readAsDataURL(file);
  });
  $('clearAttach').addEventListener('click', () => {
    attachedImage = null;
    $('imageInput').value = '';
    $('attachPreview').classList.add('hidden');
    $('clearAttach').classList.add('hidden');
  });

  function currentConfig() {
    return {
      creativity: parseFloat($('creativity').value),
      verbosity: $('verbosity').value,
      typing: $('typing').value,
      architecture: $('architecture').value,
    };
  }

  async function runTool(presetPrompt) {
    const prompt = (typeof presetPrompt === 'string' ? presetPrompt : $('toolPrompt').value).trim();
    const reference = $('referenceInput').value.trim();
    const errorText = $('errorInput').value.trim();
    if (mode === 'DEBUGGER' ? (!errorText && !prompt) : (!prompt && !reference && !attachedImage && mode !== 'ASSET_GEN')) return;

    await commitEdit();
    toolSendBtn.disabled = true;
    toolSendBtn.textContent = 'Generating...';
    document.querySelectorAll('#quickActions button').forEach(b => b.disabled = true);
    explanationEl.className = 'output-card';
    explanationEl.innerHTML = '<div class="loading"><div class="spinner"></div>Thinking...</div>';
    toolTimer.start();

    try {
      let data;
      if (mode === 'DEBUGGER') {
        data = await callApi('POST', '/api/analyze', { error: errorText, prompt });
      } else if (mode === 'ASSET_GEN' && $('assetOutput').value === 'image') {
        data = await callApi('POST', '/api/generate/image', { prompt, image: attachedImage });
      } else {
        data = await callApi('POST', '/api/generate/code', {
          prompt,
          mode: MODES[mode].gen,
          context: $('godotContext').value,
          reference,
          image: attachedImage,
          config: currentConfig(),
        });
      }
      toolTimer.stop();
      explanationEl.className = 'output-card';
      render(data.project);
      if (data.applied === false) {
        toolStatusEl.textContent = 'The target file was deleted before the response arrived; nothing applied.';
      } else {
        toolStatusEl.innerHTML = 'Completed in <span class="timer">' + data.elapsed + 's</span>';
      }
    } catch (e) {
      toolTimer.stop();
      showError(e.message);
      toolStatusEl.textContent = '';
    } finally {
      toolSendBtn.disabled = false;
      toolSendBtn.textContent = 'Generate';
      document.querySelectorAll('#quickActions button').forEach(b => b.disabled = false);
    }
  }

  toolSendBtn.addEventListener('click', () => runTool());
  $('toolPrompt').addEventListener('keydown', e => {
    if (e.key === 'Enter' && (e.metaKey || e.ctrlKey)) { e.preventDefault(); runTool(); }
  });

  // ═══════════════════════════════════
  // CHAT
  // ═══════════════════════════════════
  const chatLogEl = $('chatLog');
  const chatSendBtn = $('chatSend');

  function renderChat(transcript) {
    chatLogEl.innerHTML = '';
    transcript.forEach(m => {
      const div = document.createElement('div');
      div.className = 'chat-msg ' + m.role;
      const who = document.createElement('div');
      who.className = 'who';
      who.textContent = m.role === 'user' ? 'You' : 'Architect';
      div.appendChild(who);
      div.appendChild(document.createTextNode(m.content));
      chatLogEl.appendChild(div);
    });
    chatLogEl.scrollIntoView({ block: 'end' });
  }

  async function loadChat() {
    const data = await callApi('GET', '/api/chat');
    renderChat(data.transcript);
  }

  async function sendChat() {
    const message = $('chatInput').value.trim();
    if (!message || chatSendBtn.disabled) return;
    $('chatInput').value = '';
    chatSendBtn.disabled = true;
    chatTimer.start();
    try {
      const data = await callApi('POST', '/api/chat', { message });
      renderChat(data.transcript);
      $('chatStatus').innerHTML = 'Completed in <span class="timer">' + data.elapsed + 's</span>';
    } catch (e) {
      if (e.data && e.data.transcript) renderChat(e.data.transcript);
      $('chatStatus').textContent = e.message;
    } finally {
      chatTimer.stop();
      chatSendBtn.disabled = false;
    }
  }

  chatSendBtn.addEventListener('click', sendChat);
  $('chatInput').addEventListener('keydown', e => {
    if (e.key === 'Enter' && !e.shiftKey) { e.preventDefault(); sendChat(); }
  });

  renderQuickActions();
  refresh();
</script>
</body>
</html>
"""

if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    app.run(
        debug=os.environ.get("FLASK_DEBUG", "1") == "1",
        port=int(os.environ.get("PORT", 5001)),
        threaded=True,
    )
