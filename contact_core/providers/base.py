"""Provider 抽象接口。

文本理解流程（联系人查找、回复建议）不直接依赖具体厂商的 HTTP 接口，而是依赖此协议：

- 每个厂商对应一个 ProviderConfig，由 ChatCompletionsClient 统一适配。
- 负责：将 ChatRequest 转成具体 API 请求，并把响应 JSON 解析为 ChatResult。
"""

from typing import Protocol

from contact_core.domain.models import ChatRequest, ChatResult


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/统计。
    - chat(req): 执行一次非流式对话调用，返回统一的 ChatResult。
    """

    name: str

    def chat(self, req: ChatRequest) -> ChatResult:
        ...
