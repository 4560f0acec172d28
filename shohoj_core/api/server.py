"""HTTP 接入层（FastAPI）。

POST /api/chat 以原始 UTF-8 文本流式返回助手回复。第一个片段之前已知的
失败以 ``{"error", "details"?}`` JSON 和 4xx/5xx 状态返回；之后的失败
只会截断流。
"""

import asyncio
import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterator, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.concurrency import iterate_in_threadpool, run_in_threadpool

from shohoj_core.api.service import ChatTurnService, build_turn_service, reject_turn
from shohoj_core.api.validation import validate_chat_turn
from shohoj_core.config.settings import settings
from shohoj_core.domain.cancellation import CancelToken
from shohoj_core.domain.exceptions import BusinessError, ConfigurationError, ValidationError
from shohoj_core.domain.persona import PersonaStore
from shohoj_core.infrastructure.logging.logger import logger
from shohoj_core.infrastructure.storage.persona_store import YamlPersonaStore


MALFORMED_BODY = "Invalid request: body must be valid JSON"
TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"
DISCONNECT_POLL_SECONDS = 0.25

router = APIRouter()
_init_lock = threading.Lock()


def _get_service(app: FastAPI) -> ChatTurnService:
    """返回轮次服务，最多初始化一次。

    初始化时的 ConfigurationError 会被记住，之后每个请求直接重新抛出，不重试。
    """

    state = app.state
    if state.service is not None:
        return state.service
    with _init_lock:
        if state.service is None and state.config_error is None:
            try:
                state.service = build_turn_service(state.settings)
            except ConfigurationError as e:
                logger.error(
                    "Chat service not configured",
                    extra={"extra": {"code": e.code, "error": e.message}},
                )
                state.config_error = e
    if state.config_error is not None:
        raise state.config_error
    return state.service


async def cancel_on_disconnect(request: Request, cancel: CancelToken, interval: float = DISCONNECT_POLL_SECONDS) -> None:
    """客户端断开时触发 cancel；在等待第一个片段期间运行。"""

    while not cancel.cancelled:
        if await request.is_disconnected():
            logger.info("Client disconnected before first byte")
            cancel.cancel()
            return
        await asyncio.sleep(interval)


async def _stream_body(stream: Iterator[str], cancel: CancelToken) -> AsyncIterator[bytes]:
    try:
        async for fragment in iterate_in_threadpool(stream):
            yield fragment.encode("utf-8")
    finally:
        # 响应结束或客户端已断开
        cancel.cancel()


@router.post("/api/chat")
async def chat(request: Request):
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": MALFORMED_BODY}, status_code=400)

    # 请求错误优先于配置错误
    try:
        turn = validate_chat_turn(body)
    except ValidationError as e:
        outcome = reject_turn(e)
        return JSONResponse(outcome.envelope, status_code=outcome.status_code)

    service = _get_service(request.app)
    cancel = CancelToken()
    watcher = asyncio.ensure_future(cancel_on_disconnect(request, cancel))
    try:
        outcome = await run_in_threadpool(service.run_turn, turn, cancel)
    finally:
        watcher.cancel()
    if not outcome.ok:
        cancel.cancel()
        return JSONResponse(outcome.envelope, status_code=outcome.status_code)
    return StreamingResponse(
        _stream_body(outcome.stream, cancel),
        status_code=outcome.status_code,
        media_type=TEXT_MEDIA_TYPE,
    )


@router.get("/api/personas")
def list_personas(request: Request):
    store: PersonaStore = request.app.state.persona_store
    return {"doctors": [rec.to_dict() for rec in store.list_personas()]}


@router.get("/api/personas/{persona_id}")
def get_persona(persona_id: str, request: Request):
    store: PersonaStore = request.app.state.persona_store
    return store.get_persona(persona_id).to_dict()


@router.get("/health")
def health():
    return {"status": "ok"}


async def business_error_handler(request: Request, exc: BusinessError) -> JSONResponse:
    return JSONResponse(exc.to_envelope(), status_code=exc.http_status)


def create_app(
    cfg=None,
    service: Optional[ChatTurnService] = None,
    persona_store: Optional[PersonaStore] = None,
) -> FastAPI:
    """构建应用。

    ``service`` 与 ``persona_store`` 可注入；否则由 ``cfg`` 构建（service 在启动时构建）。
    """

    cfg = cfg or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting ShohojCare chat relay", extra={"extra": {"model": getattr(cfg, "default_model", None)}})
        try:
            _get_service(app)
        except ConfigurationError:
            # 已记录日志；由 chat 请求返回该错误
            pass
        yield
        logger.info("Shutting down ShohojCare chat relay")

    app = FastAPI(title="ShohojCare Chat Relay", version="0.1.0", lifespan=lifespan)
    app.state.settings = cfg
    app.state.service = service
    app.state.config_error = None
    app.state.persona_store = persona_store or YamlPersonaStore(getattr(cfg, "persona_file", None))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(getattr(cfg, "cors_origins", [])),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(BusinessError, business_error_handler)
    app.include_router(router)
    return app
