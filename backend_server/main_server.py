from __future__ import annotations

import threading
from typing import List, Literal

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config import load_config
from entry_store import entry_store_from_config
from exception_logger import exception_logger
from knowledge import AssistError, InvalidArgument
from llm import LLMManager
from response_manager import RankingCache, ResponseManager


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str = Field(min_length=1, max_length=4000)


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(min_length=1)


app = FastAPI(title="SheetAssist Backend", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Lazily built router
_backend_lock = threading.Lock()
_response_manager: ResponseManager | None = None


def get_response_manager() -> ResponseManager:
    """Build the router on first use from environment settings. Thread-safe."""
    global _response_manager
    if _response_manager is not None:
        return _response_manager

    with _backend_lock:
        if _response_manager is None:
            _response_manager = ResponseManager(
                entry_store=entry_store_from_config(),
                llm=LLMManager(),
                config=load_config(),
                cache=RankingCache(),
            )
    return _response_manager


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    details = [error.get("msg", "") for error in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "Invalid chat request.", "details": details})


@app.exception_handler(AssistError)
async def backend_error(request: Request, exc: AssistError):
    # Only failures outside the endpoint body land here, e.g. building the router
    exception_logger.log_exception(exc, "server", f"{request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": str(exc) or "Backend is misconfigured."})


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/api/chat")
def chat(body: ChatRequest, manager: ResponseManager = Depends(get_response_manager)):
    messages = [{"role": message.role, "content": message.content} for message in body.messages]
    try:
        answer = manager.respond(messages)
    except InvalidArgument as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)})
    except Exception as exc:
        exception_logger.log_exception(exc, "server", "POST /api/chat")
        message = str(exc) or "Unexpected error while processing the request."
        return JSONResponse(status_code=500, content={"error": message})

    return {"reply": answer.reply, "source": answer.provenance.to_dict()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backend_server.main_server:app", host="0.0.0.0", port=8000, reload=False)
