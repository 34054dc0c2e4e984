"""
Local chat-completion shim.

Serves POST /v1/chat/completions in the chat-completion response shape and
forwards each request to an Ollama /api/chat endpoint, so the analysis
client can run against a local model:

    OLLAMA_MODEL=gpt-oss:20b python -m llm.app
    ANALYSIS_API_URL=http://localhost:5000/v1/chat/completions DEEPSEEK_API_KEY=local uvicorn main:app
"""

import os
import time
import uuid

import flask
import requests
from flask import request, jsonify

from utils.config_loader import get_secret, get_section

app = flask.Flask(__name__)

_ollama_config = get_section("ollama")
OLLAMA_HOST = get_secret("OLLAMA_HOST") or _ollama_config.get("host", "http://localhost:11434")
OLLAMA_MODEL = get_secret("OLLAMA_MODEL") or _ollama_config.get("model", "gpt-oss:20b")
OLLAMA_TIMEOUT_S = _ollama_config.get("timeout_s", 120)


@app.route("/v1/chat/completions", methods=["POST"])
def chat_completions():
    data = request.get_json(silent=True) or {}
    msg = data.get("messages")
    if not msg:
        return jsonify({"error": "Missing 'messages' field"}), 400

    options = {}
    if data.get("temperature") is not None:
        options["temperature"] = data["temperature"]
    if data.get("max_tokens") is not None:
        options["num_predict"] = data["max_tokens"]

    try:
        payload = {
            "model": OLLAMA_MODEL,
            "messages": msg,
            "stream": False,
            "options": options,
        }
        r = requests.post(f"{OLLAMA_HOST}/api/chat", json=payload, timeout=OLLAMA_TIMEOUT_S)
        r.raise_for_status()
        j = r.json()
    except requests.RequestException as e:
        app.logger.error(f"Ollama request failed: {e}")
        return jsonify({"error": str(e)}), 502
    except ValueError as e:
        return jsonify({"error": f"Invalid response from Ollama: {e}"}), 502

    # Ollama non-stream chat returns { message: {...}, done: true, ... }
    answer = (j.get("message") or {}).get("content", "")
    return jsonify({
        "id": f"chatcmpl-{uuid.uuid4().hex[:12]}",
        "object": "chat.completion",
        "created": int(time.time()),
        "model": j.get("model", OLLAMA_MODEL),
        "choices": [{
            "index": 0,
            "message": {"role": "assistant", "content": answer},
            "finish_reason": "stop" if j.get("done", True) else "length",
        }],
    })


if __name__ == "__main__":
    port = int(os.getenv("PORT", "5000"))
    app.run(host="0.0.0.0", port=port)
