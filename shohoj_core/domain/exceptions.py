"""统一业务异常定义。

跨模块传递的错误都继承自 BusinessError，HTTP 层与客户端据此映射，无需猜测。
"""

from typing import Any, Dict


class BusinessError(Exception):
    """基础业务异常。

    Attributes:
        code: 机器可读的错误码（例如 "STORE_READ_ERROR"）。
        message: 面向用户的错误信息。
        http_status: 映射为 HTTP 时使用的状态码，默认 400。
        extra: 附加字段（details、provider、上游状态码等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)

    def to_envelope(self) -> Dict[str, Any]:
        """结构化错误体：``{"error": ..., "details"?: ...}``。"""

        envelope: Dict[str, Any] = {"error": self.message}
        details = self.extra.get("details")
        if details:
            envelope["details"] = str(details)
        return envelope


class ValidationError(BusinessError):
    """请求格式校验失败。"""


class ConfigurationError(BusinessError):
    """凭据或模型配置缺失/无效，在启动时检测。"""

    def __init__(self, code: str, message: str, http_status: int = 500, **extra):
        super().__init__(code, message, http_status, **extra)


class UpstreamError(BusinessError):
    """远程模型调用未能完成。"""

    def __init__(self, code: str, message: str, http_status: int = 500, **extra):
        super().__init__(code, message, http_status, **extra)


class NetworkError(UpstreamError):
    """连接失败、超时或流中断。"""


class ApiError(UpstreamError):
    """模型服务返回了非 2xx 状态（429 除外）。"""


class RateLimitError(UpstreamError):
    """模型服务限流，此处不做重试。"""


class ClientTransportError(BusinessError):
    """客户端：请求失败或初始响应不是 OK。"""
