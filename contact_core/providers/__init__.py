"""文本理解服务的 LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供 OpenAI 兼容的 chat/completions 客户端 (chat_client)。
"""

from typing import Literal, Optional

from contact_core.config.settings import settings
from contact_core.providers.base import ProviderClient
from contact_core.providers.chat_client import ChatCompletionsClient
from contact_core.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None, cfg=None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider；未知名称回退到 glm。"""

    cfg = cfg or settings
    provider_name = (name or getattr(cfg, "default_provider", "glm")).lower()
    try:
        provider = get_provider_config(provider_name)
    except KeyError:
        provider = get_provider_config("glm")
    return ChatCompletionsClient(provider, cfg)


DefaultProviderName = Literal["glm", "kimi"]
