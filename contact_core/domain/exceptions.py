"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在服务层或 UI 层做统一捕获与用户提示。

- ParseError: 导入文档在结构上无法切分为卡片/行。
- ValidationError: 单个候选或参数校验失败（导入时在本地静默过滤）。
- StoreUnavailable: 共享存储连接/传输失败，必须与“记录不存在”区分。
- Timeout: 外部调用超出时间预算，与一般连接失败区分开。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 key、contact_id 等）。
    """

    http_status_default = 400

    def __init__(self, code: str, message: str, http_status: int | None = None, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status or self.http_status_default
        self.extra = extra
        super().__init__(message)


class ParseError(BusinessError):
    """导入文档结构非法（无法切分为 vCard 卡片或表格行）。"""


class ValidationError(BusinessError):
    """参数、候选联系人或外部返回值校验失败。"""


class StoreUnavailable(BusinessError):
    """共享键值存储不可达或读写失败。"""

    http_status_default = 503


class Timeout(BusinessError):
    """外部调用（健康检查、文本理解服务）超时。"""

    http_status_default = 504


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、DNS 失败等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误，由调用方的重试策略负责退避。"""
