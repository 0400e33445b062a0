from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
import threading
import uuid

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from cordex.bootstrap import build_app
from cordex.core.chat_session import ChatSession
from cordex.core.errors import ChatError, TransportError
from cordex.providers.ollama_adapter import OllamaClient
from cordex.storage.config_store import Plugin
from cordex.storage.transcript import Transcript

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    session_id: Optional[str] = None
    message: str
    images: List[str] = []


class ConfigValue(BaseModel):
    value: Any = None


class PluginIn(BaseModel):
    id: str
    name: str
    version: str
    enabled: bool = True
    author: Optional[str] = None
    description: Optional[str] = None


def create_app(config_path: Path, *, console_logging: bool = True) -> FastAPI:
    config_path = Path(config_path)
    ctx = build_app(config_path, console_logging=console_logging, with_transcript=False)
    cfg = ctx["cfg"]
    storage = cfg.get("storage") or {}

    app = FastAPI(title="Cordex")
    app.state.cfg = cfg
    app.state.store = ctx["store"]
    app.state.adapter = ctx["adapter"]
    app.state.system_prompt = storage.get("system_prompt")
    app.state.transcripts_dir = ctx["paths"]["transcripts_dir"]
    app.state.sessions: Dict[str, ChatSession] = {}
    app.state.lock = threading.Lock()

    def _create_session() -> str:
        transcript = Transcript(
            system_prompt=app.state.system_prompt,
            # Timestamp ids collide when clients open sessions in the same second
            session_id=uuid.uuid4().hex,
            root_dir=app.state.transcripts_dir,
            header_meta={"config_path": str(config_path)},
        )
        chat_session = ChatSession(adapter=app.state.adapter, transcript=transcript)
        with app.state.lock:
            app.state.sessions[transcript.session_id] = chat_session
        return transcript.session_id

    def _get_session(session_id: Optional[str]) -> tuple[str, ChatSession]:
        if session_id:
            with app.state.lock:
                session = app.state.sessions.get(session_id)
            if session is not None:
                return session_id, session
        # Missing or unknown id: start a fresh session
        new_id = _create_session()
        return new_id, app.state.sessions[new_id]

    def _check_message(req: ChatRequest) -> None:
        if not req.message.strip() and not req.images:
            raise HTTPException(status_code=400, detail="Empty message")

    @app.post("/api/session")
    def api_session():
        return JSONResponse({"session_id": _create_session()})

    @app.post("/api/chat")
    def api_chat(req: ChatRequest):
        _check_message(req)
        session_id, session = _get_session(req.session_id)
        try:
            reply = session.run_turn(req.message, images=req.images)
        except ChatError as e:
            return JSONResponse({"success": False, "session_id": session_id, "error": str(e)})
        return JSONResponse({"success": True, "session_id": session_id, "reply": reply})

    @app.post("/api/stream")
    def api_stream(req: ChatRequest):
        _check_message(req)
        session_id, session = _get_session(req.session_id)

        def gen():
            try:
                for chunk in session.run_turn_stream(req.message, images=req.images):
                    yield chunk
            except ChatError as e:
                yield f"\n[error] {e}"

        return StreamingResponse(gen(), media_type="text/plain", headers={"X-Session-Id": session_id})

    # ----- configuration -----

    @app.get("/api/config")
    def api_config_all():
        return JSONResponse(app.state.store.all(masked=True))

    @app.get("/api/config/{key}")
    def api_config_get(key: str):
        return JSONResponse({"key": key, "value": app.state.store.all(masked=True).get(key)})

    @app.put("/api/config/{key}")
    def api_config_set(key: str, body: ConfigValue):
        app.state.store.set(key, body.value)
        return JSONResponse({"success": True})

    # ----- plugins -----

    @app.get("/api/plugins")
    def api_plugins():
        return JSONResponse({"success": True, "plugins": [p.to_dict() for p in app.state.store.plugins()]})

    @app.post("/api/plugins")
    def api_plugin_add(body: PluginIn):
        app.state.store.add_plugin(Plugin(**body.model_dump()))
        return JSONResponse({"success": True})

    @app.delete("/api/plugins/{plugin_id}")
    def api_plugin_remove(plugin_id: str):
        app.state.store.remove_plugin(plugin_id)
        return JSONResponse({"success": True})

    @app.post("/api/plugins/{plugin_id}/toggle")
    def api_plugin_toggle(plugin_id: str):
        plugin = app.state.store.toggle_plugin(plugin_id)
        if plugin is None:
            raise HTTPException(status_code=404, detail=f"No plugin with id '{plugin_id}'")
        return JSONResponse({"success": True, "enabled": plugin.enabled})

    # ----- ollama -----

    @app.get("/api/ollama/models")
    def api_ollama_models(base_url: Optional[str] = None):
        url = base_url or app.state.store.get("ollamaBaseUrl")
        if not url:
            return JSONResponse({"success": False, "error": "Ollama server URL not configured."})
        client = OllamaClient(base_url=url, timeout=10.0)
        try:
            return JSONResponse({"success": True, "models": client.list_models()})
        except TransportError as e:
            logger.error("Failed to list Ollama models: %s", e)
            return JSONResponse({"success": False, "error": str(e)})
        finally:
            client.close()

    return app


def run(
    *,
    config: Path,
    host: str = "127.0.0.1",
    port: int = 8000,
    reload: bool = False,
) -> None:
    import uvicorn

    app = create_app(config)
    uvicorn.run(app, host=host, port=port, reload=reload)
