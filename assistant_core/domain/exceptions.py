"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在工具调度边界或控制台层做统一捕获与用户提示。

工具相关错误分为四类：
- ValidationError: 参数/流水线步骤校验失败，保证没有任何副作用。
- NotFoundError: 工具名（或会话）不存在，调度层将其转成失败结果。
- ExecutionError: 工具已运行但底层操作失败（非零退出码、I/O 错误等）。
- RegistrationError: 启动期注册冲突，属于致命配置错误。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 step_index、tool_name 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误，由上层决定是否重试。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class NotFoundError(BusinessError):
    """请求的工具或资源不存在。"""

    def __init__(self, code: str, message: str, http_status: int = 404, **extra):
        super().__init__(code, message, http_status, **extra)


class ExecutionError(BusinessError):
    """工具执行失败。"""

    def __init__(self, code: str, message: str, http_status: int = 500, **extra):
        super().__init__(code, message, http_status, **extra)


class RegistrationError(BusinessError):
    """工具注册冲突，只会在启动阶段出现。"""

    def __init__(self, code: str, message: str, http_status: int = 500, **extra):
        super().__init__(code, message, http_status, **extra)
