"""按姓名/自由文本在目录中查找联系人。

把目录整理成 "姓名 (ID)" 的文本交给外部模型做模糊匹配，返回值必须先通过
pydantic 结构校验，再逐个检查聊天 ID 语法；不合法的 ID 直接丢弃，绝不透传。
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from contact_core.config.settings import settings
from contact_core.contacts.dedup import dedupe
from contact_core.contacts.phone import is_valid_chat_id
from contact_core.domain.models import ChatMessage, ChatRequest, Contact, Directory
from contact_core.infrastructure.logging.logger import logger
from contact_core.prompts import load_prompt
from contact_core.providers.base import ProviderClient
from .parsing import parse_model_output
from .retry import RetryPolicy


class ContactMatch(BaseModel):
    name: str
    id: str


class FindContactsOutput(BaseModel):
    contacts: List[ContactMatch] = Field(default_factory=list)


def format_directory(directory: Directory) -> str:
    return "\n".join(f"{c.name} ({c.id})" for c in directory)


class ContactFinder:
    def __init__(self, client: ProviderClient, model: Optional[str] = None, retry: Optional[RetryPolicy] = None):
        self._client = client
        self._model = model or settings.default_model
        self._retry = retry

    def find(self, directory: Directory, search_term: str) -> List[Contact]:
        """返回匹配的联系人；目录为空或搜索词为空时不调用外部服务。

        Raises:
            ValidationError: 模型回复不是约定的 JSON 结构。
            Timeout / NetworkError / RateLimitError / ApiError: 外部服务调用失败。
        """

        term = (search_term or "").strip()
        if not term or not len(directory):
            return []
        prompt = load_prompt("find_contacts").substitute(
            contact_list=format_directory(directory),
            search_term=term,
        )
        req = ChatRequest(
            provider=self._client.name,
            model=self._model,
            messages=[ChatMessage(role="user", content=prompt)],
            temperature=0.0,
        )
        if self._retry is not None:
            result = self._retry.run(lambda: self._client.chat(req), label="find_contacts")
        else:
            result = self._client.chat(req)
        output = parse_model_output(result.content, FindContactsOutput)

        matches: List[Contact] = []
        for item in output.contacts:
            chat_id = item.id.strip()
            if not is_valid_chat_id(chat_id) or not item.name.strip():
                logger.warning("assist.drop_invalid_match", extra={"extra": {"id": item.id, "name": item.name}})
                continue
            matches.append(Contact(id=chat_id, name=item.name.strip()))
        return dedupe(matches)
