"""文本理解协作方（外部 LLM）的窄接口封装。

- contact_finder: 自由文本搜索词 -> 经过聊天 ID 语法校验的联系人列表。
- reply_suggester: 用户消息 -> 情绪判断与回复建议。
- retry: 由调用方配置的有界重试与退避策略。
"""

from .contact_finder import ContactFinder
from .reply_suggester import ReplySuggester, ReplySuggestions
from .retry import RetryPolicy

__all__ = ["ContactFinder", "ReplySuggester", "ReplySuggestions", "RetryPolicy"]
