"""
Gemini API Emulator
===================
A FastAPI app that mimics the subset of Google's Gemini REST API the
backend uses, with deterministic replies and no network access.

Point the backend at it with LLM_BASE_URL / EMULATOR_URL
(e.g. http://emulator:8000/v1beta) or PUT /settings/llm-provider.

Endpoints:
  GET  /v1beta/models  List available models
  POST /v1beta/models/{model}:streamGenerateContent     Streaming reply (alt=sse)
  POST /v1beta/models/{model}:generateContent           Non-streaming reply (titles)

Failure injection (env vars, comma separated model ids, or the module sets):
  EMULATOR_FAILING_MODELS   respond 503 before streaming
  EMULATOR_BROKEN_MODELS    stream one chunk, then an error frame
"""

import os
import json
from fastapi import FastAPI, Request
from fastapi.responses import StreamingResponse, JSONResponse

# ── Configuration ────────────────────────────────────────────────────────────
EMULATOR_PORT = int(os.environ.get("EMULATOR_PORT", "8000"))
CHUNK_SIZE = int(os.environ.get("EMULATOR_CHUNK_SIZE", "8"))
MODELS = [m for m in os.environ.get("EMULATOR_MODELS", "gemini-2.5-flash,gemini-2.0-flash").split(",") if m]

FAILING_MODELS = {m for m in os.environ.get("EMULATOR_FAILING_MODELS", "").split(",") if m}
BROKEN_MODELS = {m for m in os.environ.get("EMULATOR_BROKEN_MODELS", "").split(",") if m}

# Most recent request bodies, newest last
REQUEST_LOG: list[dict] = []

app = FastAPI(title="Gemini API Emulator", version="1.0.0")


def reset():
    FAILING_MODELS.clear()
    BROKEN_MODELS.clear()
    REQUEST_LOG.clear()


def _last_user_text(body: dict) -> str:
    for content in reversed(body.get("contents", [])):
        if content.get("role", "user") != "user":
            continue
        texts = [p["text"] for p in content.get("parts", []) if "text" in p]
        if texts:
            return " ".join(texts)
    return ""


def _has_inline_data(body: dict) -> str | None:
    contents = body.get("contents", [])
    if not contents:
        return None
    for part in contents[-1].get("parts", []):
        if "inline_data" in part:
            return part["inline_data"].get("mime_type")
    return None


def compose_reply(body: dict) -> str:
    reply = f"Echo: {_last_user_text(body)}"
    mime = _has_inline_data(body)
    if mime:
        reply += f" [attachment: {mime}]"
    return reply


def compose_title(body: dict) -> str:
    text = _last_user_text(body)
    # The title prompt quotes the conversation after this marker; use its first words
    if 'Conversation: "' in text:
        text = text.split('Conversation: "', 1)[1]
    words = text.replace("\n", " ").split()[:4]
    return '"' + " ".join(words) + '"' if words else '"Untitled"'


def _candidate(text: str, finished: bool = False) -> dict:
    candidate = {"content": {"role": "model", "parts": [{"text": text}]}, "index": 0}
    if finished:
        candidate["finishReason"] = "STOP"
    return {"candidates": [candidate]}


def _error(model: str, status: int = 503) -> dict:
    return {"error": {"code": status, "message": f"The model {model} is overloaded.", "status": "UNAVAILABLE"}}


# ── Health ───────────────────────────────────────────────────────────────────
@app.get("/")
async def root():
    return {"status": "Gemini Emulator is running", "models": MODELS}


# ── Models ───────────────────────────────────────────────────────────────────
@app.get("/v1beta/models")
async def list_models():
    return JSONResponse(content={
        "models": [
            {
                "name": f"models/{model_id}",
                "displayName": model_id,
                "supportedGenerationMethods": ["generateContent", "streamGenerateContent"],
            }
            for model_id in MODELS
        ]
    })


# ── Generation ───────────────────────────────────────────────────────────────
@app.post("/v1beta/models/{target}")
async def generate(target: str, request: Request):
    """Dispatches `<model>:streamGenerateContent` and `<model>:generateContent`."""
    model, _, method = target.rpartition(":")
    body = await request.json()
    REQUEST_LOG.append({"model": model, "method": method, "body": body})

    if model in FAILING_MODELS or model not in MODELS:
        status = 503 if model in FAILING_MODELS else 404
        return JSONResponse(content=_error(model, status), status_code=status)

    if method == "generateContent":
        return JSONResponse(content=_candidate(compose_title(body), finished=True))

    if method != "streamGenerateContent":
        return JSONResponse(content=_error(model, 400), status_code=400)

    reply = compose_reply(body)
    pieces = [reply[i:i + CHUNK_SIZE] for i in range(0, len(reply), CHUNK_SIZE)]

    async def event_stream():
        for index, piece in enumerate(pieces):
            if model in BROKEN_MODELS and index == 1:
                yield f"data: {json.dumps(_error(model, 500))}\n\n"
                return
            yield f"data: {json.dumps(_candidate(piece, finished=index == len(pieces) - 1))}\n\n"

    return StreamingResponse(event_stream(), media_type="text/event-stream")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=EMULATOR_PORT)
