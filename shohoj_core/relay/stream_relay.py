"""流转发：输入片段迭代器，输出 HTTP 形式的结果。

在提交任何内容之前先拉取第一个片段。在此之前的失败仍可归类，会转换为
错误 envelope 和失败状态码；第一个片段发出后状态固定为 200，之后的失败
只能提前结束流。
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from shohoj_core.domain.cancellation import CancelToken
from shohoj_core.domain.exceptions import BusinessError
from shohoj_core.infrastructure.logging.logger import logger


INTERNAL_ERROR = {"error": "Internal server error"}


@dataclass
class RelayOutcome:
    """要么是错误 envelope，要么是已提交的文本流。"""

    status_code: int
    envelope: Optional[Dict[str, Any]] = None
    stream: Optional[Iterator[str]] = None

    @property
    def ok(self) -> bool:
        return self.stream is not None


def open_relay(
    fragments: Iterator[str],
    cancel: Optional[CancelToken] = None,
    log_ctx: Optional[Dict[str, Any]] = None,
) -> RelayOutcome:
    """预取 ``fragments`` 的第一个片段并决定响应状态。"""

    ctx = dict(log_ctx or {})
    fragments = iter(fragments)
    try:
        first = next(fragments)
    except StopIteration:
        _log(logging.INFO, "Model returned an empty reply", ctx)
        return RelayOutcome(status_code=200, stream=iter(()))
    except BusinessError as e:
        _log(
            logging.ERROR,
            "Model call failed before streaming",
            ctx,
            code=e.code,
            error=e.message,
            **{k: v for k, v in e.extra.items() if k != "details"},
        )
        return RelayOutcome(status_code=e.http_status, envelope=e.to_envelope())
    except Exception as e:
        logger.exception("Unexpected error before streaming", extra={"extra": dict(ctx, error=str(e))})
        return RelayOutcome(status_code=500, envelope=dict(INTERNAL_ERROR))

    return RelayOutcome(status_code=200, stream=_relay(first, fragments, cancel, ctx))


def _relay(
    first: str,
    rest: Iterator[str],
    cancel: Optional[CancelToken],
    ctx: Dict[str, Any],
) -> Iterator[str]:
    sent = 1
    chars = len(first)
    try:
        yield first
        for fragment in rest:
            if cancel and cancel.cancelled:
                _log(logging.INFO, "Relay cancelled", ctx, fragments=sent)
                return
            sent += 1
            chars += len(fragment)
            yield fragment
    except BusinessError as e:
        # 状态已提交：只能截断
        _log(logging.WARNING, "Stream truncated by upstream error", ctx, fragments=sent, code=e.code, error=e.message)
        return
    except Exception as e:
        logger.exception("Stream truncated by unexpected error", extra={"extra": dict(ctx, fragments=sent, error=str(e))})
        return
    finally:
        close = getattr(rest, "close", None)
        if close:
            close()
    _log(logging.INFO, "Relay completed", ctx, fragments=sent, chars=chars)


def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
    payload = dict(log_ctx)
    payload.update(fields)
    logger.log(level, message, extra={"extra": payload})
