"""统一的联系人、消息与 Provider 数据模型。

本模块定义了各组件之间共享的标准数据结构：

- Contact / Directory: 规范化后的联系人及整个目录（按 id 唯一）。
- Message: 单条会话消息，按到达顺序组成每个联系人的 ConversationLog。
- RawCandidate / CandidateResult / ExtractionResult: 导入文档解析出的原始候选
  及其逐条校验结果（成功或失败的标记结果）。
- ContactSummary / HealthStatus: 目录摘要视图与存储健康检查结果。
- ChatMessage / ChatRequest / ChatResult: 发给文本理解 Provider 的请求与统一响应。

持久化时使用 camelCase 字段名（contactId、operatorName），
与外部入站消息生产者共享同一份存储格式。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Literal, Optional

from .exceptions import ValidationError


# 消息发送方：联系人本人、机器人、人工坐席
Sender = Literal["user", "bot", "operator"]
SENDERS = ("user", "bot", "operator")

MediaType = Literal["image", "video", "audio", "document"]


@dataclass(frozen=True)
class Contact:
    """目录中的一个联系人，id 必须符合规范聊天标识 `<digits>@c.us`。"""

    id: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Contact":
        return cls(id=str(data["id"]).strip(), name=str(data["name"]).strip())


@dataclass
class Directory:
    """部署内全部已知联系人，整体读写，不支持局部修改。"""

    contacts: List[Contact] = field(default_factory=list)

    def __iter__(self) -> Iterator[Contact]:
        return iter(self.contacts)

    def __len__(self) -> int:
        return len(self.contacts)

    def __contains__(self, contact_id: object) -> bool:
        return any(c.id == contact_id for c in self.contacts)

    def get(self, contact_id: str) -> Optional[Contact]:
        for c in self.contacts:
            if c.id == contact_id:
                return c
        return None

    def ids(self) -> List[str]:
        return [c.id for c in self.contacts]

    def to_payload(self) -> List[Dict[str, str]]:
        return [c.to_dict() for c in self.contacts]


@dataclass(frozen=True)
class QuotedMessage:
    """被回复的原消息摘要。"""

    id: str
    text: str
    sender: Sender


@dataclass
class Message:
    """一条会话消息。

    - sender 为 "operator" 时 operator_name 必填，其余情况不应携带。
    - timestamp 为 Unix 秒的字符串形式，与入站消息生产者保持一致。
    - instance / contact_name / needs_attention 等字段由入站生产者写入，
      本子系统只读不改。
    """

    id: str
    contact_id: str
    text: str
    sender: Sender
    timestamp: str
    operator_name: Optional[str] = None
    instance: Optional[str] = None
    contact_name: Optional[str] = None
    media_type: Optional[MediaType] = None
    caption: Optional[str] = None
    quoted_message: Optional[QuotedMessage] = None
    needs_attention: bool = False
    status: Optional[str] = None

    def validate(self) -> None:
        if self.sender not in SENDERS:
            raise ValidationError(code="INVALID_MESSAGE", message=f"unknown sender {self.sender!r}")
        if self.sender == "operator" and not (self.operator_name or "").strip():
            raise ValidationError(code="INVALID_MESSAGE", message="operator messages require operator_name")
        if self.sender != "operator" and self.operator_name:
            raise ValidationError(code="INVALID_MESSAGE", message="operator_name is only allowed for operator messages")


@dataclass(frozen=True)
class RawCandidate:
    """导入文档中抽取出的原始 {name, phone}，尚未规范化与校验。"""

    raw_name: str
    raw_phone: str
    position: int = 0


@dataclass
class CandidateResult:
    """单个候选的校验结果：要么得到 Contact，要么带一个 ValidationError。"""

    candidate: RawCandidate
    contact: Optional[Contact] = None
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.contact is not None


@dataclass
class ExtractionResult:
    """一次文档解析的结果。没有有效联系人时 contacts 为空，而不是失败。"""

    format: Literal["vcard", "rows"]
    contacts: List[Contact] = field(default_factory=list)
    rejected: List[CandidateResult] = field(default_factory=list)

    @property
    def total_candidates(self) -> int:
        return len(self.contacts) + len(self.rejected)


@dataclass
class ContactSummary:
    """聊天列表中的一行：联系人、最后一条消息及是否需要人工关注。"""

    id: str
    name: str
    last_message: str
    last_timestamp: int
    needs_attention: bool = False


@dataclass
class HealthStatus:
    """存储健康检查结果，error 为 None 当且仅当 connected 为 True。"""

    connected: bool
    error: Optional[str] = None
    sample_keys: List[str] = field(default_factory=list)
    first_key_content: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connected": self.connected,
            "error": self.error,
            "sampleKeys": list(self.sample_keys),
            "firstKeyContent": self.first_key_content,
        }


# ---- 文本理解 Provider 的请求/响应模型 ----

Role = Literal["system", "user", "assistant"]


@dataclass
class ChatMessage:
    role: Role
    content: str


@dataclass
class ChatRequest:
    """一次完整的聊天请求，由 Provider 适配层转换成各家 API 的 JSON 请求体。"""

    provider: str  # 逻辑 Provider 名，如 "glm"
    model: str  # 逻辑模型名，如 "assist-chat"
    messages: List[ChatMessage]
    temperature: float = 0.2
    top_p: float = 0.95
    max_tokens: Optional[int] = None


@dataclass
class ChatUsage:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatResult:
    """一次对话调用的最终结果，content 为首个候选回答的文本。"""

    provider: str
    model: str
    content: str
    finish_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None
