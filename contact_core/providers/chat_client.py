"""OpenAI 兼容的 chat/completions 适配器（GLM、Kimi 共用）。

本模块负责：

1. 接收统一的 ChatRequest。
2. 将其转换为厂商 HTTP API 请求格式（{base_url}/chat/completions，Bearer 认证）。
3. 调用 HTTP 接口并处理超时/网络/API 异常。
4. 将响应 JSON 解析为统一的 ChatResult。

超时单独映射为 Timeout，便于上层把“服务太慢”和“连不上”区分开。
"""

from typing import Any, Dict

import httpx

from contact_core.domain.exceptions import ApiError, NetworkError, RateLimitError, Timeout, ValidationError
from contact_core.domain.models import ChatRequest, ChatResult, ChatUsage
from contact_core.providers.registry import ModelConfig, ProviderConfig


class ChatCompletionsClient:
    """单个 Provider 的客户端实现。

    - name: Provider 名称（供日志/调试使用）。
    - chat: 对外统一调用入口，返回 ChatResult。
    """

    def __init__(self, provider: ProviderConfig, settings):
        # Settings 里包含 base_url、api_key、超时等配置
        self._provider = provider
        self._settings = settings
        self.name = provider.name

    def chat(self, req: ChatRequest) -> ChatResult:
        api_key = getattr(self._settings, self._provider.api_key_field, None)
        if not api_key:
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(
                code="MISSING_API_KEY",
                message=f"{self._provider.api_key_field.upper()} not set",
            )
        model_cfg = self._provider.models.get(req.model)
        if model_cfg is None:
            raise ValidationError(code="UNKNOWN_MODEL", message=f"{self.name} has no model {req.model!r}")
        payload = self._build_payload(req, model_cfg)
        base = getattr(self._settings, self._provider.base_url_field, None) or self._provider.base_url
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.TimeoutException as e:
            raise Timeout(code="ASSIST_TIMEOUT", message=f"{self.name} did not answer in time: {e}", provider=self.name)
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接被拒等
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)
        if resp.status_code == 429:
            # 限流错误交给调用方的重试策略
            raise RateLimitError(code="RATE_LIMIT", message=f"{self.name} rate limit", provider=self.name)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code, provider=self.name)
        return self._parse_response(resp.json(), req)

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> Dict[str, Any]:
        return {
            "model": model_cfg.provider_model,
            "messages": [{"role": m.role, "content": m.content} for m in req.messages],
            "temperature": req.temperature if req.temperature is not None else model_cfg.default_temperature,
            "max_tokens": req.max_tokens or model_cfg.max_tokens,
            "top_p": req.top_p,
        }

    def _parse_response(self, data: Dict[str, Any], req: ChatRequest) -> ChatResult:
        choices = data.get("choices") or []
        first = choices[0] if choices else {}
        message = first.get("message") or {}
        usage_raw = data.get("usage") or {}
        usage = ChatUsage(
            prompt_tokens=usage_raw.get("prompt_tokens", 0),
            completion_tokens=usage_raw.get("completion_tokens", 0),
            total_tokens=usage_raw.get("total_tokens", 0),
        )
        return ChatResult(
            provider=self.name,
            model=req.model,
            content=message.get("content") or "",
            finish_reason=first.get("finish_reason"),
            usage=usage,
            raw=data,
        )
