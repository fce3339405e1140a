"""导入文档解析（DirectoryExtractor）。

支持两种导出格式：

1. vCard：`BEGIN:VCARD` … `END:VCARD` 块，姓名取 FN，电话取 TEL
   （有多个 TEL 时优先 TYPE=cell，否则取第一个）。
2. 行/列文本（CSV）：由表头识别姓名列与电话列，兼容 Google Contacts 导出
   的 `Phone 1 - Value` / `Phone 1 - Type` 列。

每种格式先解析成显式的记录类型（VCardRecord / 表头映射），再逐条产出
RawCandidate，最后由 validate_candidate 给出带标记的校验结果。
校验失败的候选只会被过滤掉；只有文档在结构上无法切分时才抛 ParseError。
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

import vobject

from contact_core.domain.exceptions import ParseError, ValidationError
from contact_core.domain.models import CandidateResult, Contact, ExtractionResult, RawCandidate
from contact_core.infrastructure.logging.logger import logger
from .phone import is_valid_chat_id, to_chat_id

_VCARD_START = re.compile(r"^\s*BEGIN:VCARD\s*$", re.IGNORECASE | re.MULTILINE)


def detect_format(text: str) -> str:
    """有 BEGIN:VCARD 行则视为 vCard，否则按行/列文本处理。"""

    return "vcard" if _VCARD_START.search(text or "") else "rows"


# ---------------------------------------------------------------------------
# vCard
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VCardPhone:
    value: str
    types: FrozenSet[str] = frozenset()


@dataclass
class VCardRecord:
    """一张卡片中与导入相关的字段。"""

    full_name: Optional[str] = None
    phones: List[VCardPhone] = field(default_factory=list)

    def preferred_phone(self) -> str:
        if not self.phones:
            return ""
        for phone in self.phones:
            if "cell" in phone.types:
                return phone.value
        return self.phones[0].value


def _split_cards(text: str) -> List[str]:
    """按 BEGIN:VCARD / END:VCARD 切分卡片。

    缺少 END:VCARD 的卡片在下一个 BEGIN:VCARD 或文档末尾处自动闭合并记录告警，
    不影响其它卡片；一张卡片都找不到时才抛 ParseError。
    """

    cards: List[str] = []
    current: Optional[List[str]] = None
    for lineno, line in enumerate(re.split(r"\r\n|\n|\r", text), start=1):
        # 折行的续行以空白开头，不可能是卡片边界
        marker = "" if line[:1] in (" ", "\t") else line.strip().upper()
        if marker == "BEGIN:VCARD":
            if current is not None:
                logger.warning("extract.vcard_unterminated", extra={"extra": {"line": lineno}})
                cards.append(_close_card(current))
            current = [line]
        elif marker == "END:VCARD":
            if current is None:
                logger.warning("extract.vcard_stray_end", extra={"extra": {"line": lineno}})
                continue
            cards.append(_join_card(current + [line]))
            current = None
        elif current is not None:
            current.append(line)
    if current is not None:
        logger.warning("extract.vcard_unterminated", extra={"extra": {"line": "eof"}})
        cards.append(_close_card(current))
    if not cards:
        raise ParseError(code="NO_VCARD", message="no BEGIN:VCARD block found")
    return cards


def _close_card(lines: List[str]) -> str:
    return _join_card(lines + ["END:VCARD"])


def _join_card(lines: List[str]) -> str:
    return "\r\n".join(line for line in lines if line.strip()) + "\r\n"


def _phone_types(tel) -> FrozenSet[str]:
    # TYPE=CELL,VOICE 与 vCard 2.1 的 TEL;CELL: 两种写法
    raw = list(tel.params.get("TYPE", [])) + list(getattr(tel, "singletonparams", []))
    return frozenset(t.strip().lower() for value in raw for t in str(value).split(",") if t.strip())


def _read_vcard(card) -> VCardRecord:
    record = VCardRecord()
    if hasattr(card, "fn"):
        record.full_name = str(card.fn.value or "").strip()
    for tel in getattr(card, "tel_list", []):
        value = str(tel.value or "").strip()
        if value:
            record.phones.append(VCardPhone(value=value, types=_phone_types(tel)))
    return record


def parse_vcard(text: str) -> List[RawCandidate]:
    """用 vobject 逐张解析卡片；单张卡片无法读取时跳过，全部无法读取才抛 ParseError。"""

    candidates: List[RawCandidate] = []
    chunks = _split_cards(text)
    last_error: Optional[Exception] = None
    for idx, chunk in enumerate(chunks):
        try:
            cards = list(vobject.readComponents(chunk, ignoreUnreadable=True, allowQP=True))
        except (vobject.base.VObjectError, ValueError, LookupError) as e:
            logger.warning("extract.vcard_unreadable", extra={"extra": {"card": idx, "error": str(e)}})
            last_error = e
            continue
        for card in cards:
            record = _read_vcard(card)
            candidates.append(
                RawCandidate(raw_name=record.full_name or "", raw_phone=record.preferred_phone(), position=idx)
            )
    if not candidates and last_error is not None:
        raise ParseError(code="VCARD_UNREADABLE", message=f"no card could be read: {last_error}", cards=len(chunks))
    return candidates


# ---------------------------------------------------------------------------
# Row/column text
# ---------------------------------------------------------------------------

NAME_HEADERS = ("name", "full name", "display name", "contact name", "nome", "nome completo")
GIVEN_NAME_HEADERS = ("given name", "first name", "primeiro nome")
FAMILY_NAME_HEADERS = ("family name", "last name", "sobrenome")
PHONE_HEADERS = (
    "phone",
    "phone number",
    "mobile",
    "mobile phone",
    "cell",
    "cell phone",
    "telefone",
    "celular",
    "whatsapp",
)
_GOOGLE_PHONE_VALUE = re.compile(r"^phone (\d+) - value$")
_GOOGLE_PHONE_TYPE = re.compile(r"^phone (\d+) - (type|label)$")
_MULTI_VALUE_SEPARATOR = ":::"


def _norm_header(header: str) -> str:
    return " ".join(header.replace("\ufeff", "").strip().lower().split())


@dataclass
class RowLayout:
    """表头到列下标的映射。"""

    name: Optional[int] = None
    given_name: Optional[int] = None
    family_name: Optional[int] = None
    # (value column, type column or None)
    phones: List[Tuple[int, Optional[int]]] = field(default_factory=list)

    @property
    def usable(self) -> bool:
        has_name = self.name is not None or self.given_name is not None or self.family_name is not None
        return has_name and bool(self.phones)

    @classmethod
    def from_header(cls, header: Sequence[str]) -> "RowLayout":
        layout = cls()
        normalized = [_norm_header(h) for h in header]
        type_columns: Dict[str, int] = {}
        for idx, col in enumerate(normalized):
            m = _GOOGLE_PHONE_TYPE.match(col)
            if m:
                type_columns[m.group(1)] = idx
        plain_phones: List[Tuple[int, Optional[int]]] = []
        google_phones: List[Tuple[int, Optional[int]]] = []
        for idx, col in enumerate(normalized):
            if col in NAME_HEADERS and layout.name is None:
                layout.name = idx
            elif col in GIVEN_NAME_HEADERS and layout.given_name is None:
                layout.given_name = idx
            elif col in FAMILY_NAME_HEADERS and layout.family_name is None:
                layout.family_name = idx
            elif col in PHONE_HEADERS:
                plain_phones.append((idx, None))
            else:
                m = _GOOGLE_PHONE_VALUE.match(col)
                if m:
                    google_phones.append((idx, type_columns.get(m.group(1))))
        layout.phones = plain_phones + google_phones
        return layout

    def read(self, row: Sequence[str], position: int) -> RawCandidate:
        return RawCandidate(raw_name=self._name(row), raw_phone=self._phone(row), position=position)

    @staticmethod
    def _cell(row: Sequence[str], idx: Optional[int]) -> str:
        if idx is None or idx >= len(row):
            return ""
        return (row[idx] or "").strip()

    def _name(self, row: Sequence[str]) -> str:
        name = self._cell(row, self.name)
        if name:
            return name
        parts = [self._cell(row, self.given_name), self._cell(row, self.family_name)]
        return " ".join(p for p in parts if p)

    def _phone(self, row: Sequence[str]) -> str:
        first = ""
        for value_idx, type_idx in self.phones:
            value = self._cell(row, value_idx)
            # Google 导出会把同类型的多个号码用 " ::: " 拼在同一格
            value = next((v.strip() for v in value.split(_MULTI_VALUE_SEPARATOR) if v.strip()), "")
            if not value:
                continue
            kind = self._cell(row, type_idx).lower()
            if "mobile" in kind or "cell" in kind:
                return value
            if not first:
                first = value
        return first


def _sniff_dialect(text: str) -> type[csv.Dialect] | csv.Dialect:
    sample = "\n".join(text.splitlines()[:5])
    try:
        return csv.Sniffer().sniff(sample, delimiters=",;\t")
    except csv.Error:
        return csv.excel


def parse_rows(text: str) -> List[RawCandidate]:
    if not text.strip():
        raise ParseError(code="CSV_EMPTY", message="document has no header row")
    try:
        reader = csv.reader(io.StringIO(text), dialect=_sniff_dialect(text))
        rows = [row for row in reader if any(cell.strip() for cell in row)]
    except csv.Error as e:
        raise ParseError(code="CSV_MALFORMED", message=str(e))
    if not rows:
        raise ParseError(code="CSV_EMPTY", message="document has no header row")
    layout = RowLayout.from_header(rows[0])
    if not layout.usable:
        raise ParseError(
            code="CSV_NO_COLUMNS",
            message="header must contain a name column and a phone column",
            header=rows[0],
        )
    return [layout.read(row, position) for position, row in enumerate(rows[1:])]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def parse_candidates(text: str, fmt: Optional[str] = None) -> Tuple[str, List[RawCandidate]]:
    """把文档切分为原始候选，fmt 为 None 时自动识别格式。"""

    text = (text or "").lstrip("\ufeff")
    fmt = fmt or detect_format(text)
    if fmt == "vcard":
        return fmt, parse_vcard(text)
    if fmt == "rows":
        return fmt, parse_rows(text)
    raise ValueError(f"Unknown import format: {fmt!r}")


def validate_candidate(candidate: RawCandidate, country_code: Optional[str] = None) -> CandidateResult:
    name = " ".join((candidate.raw_name or "").split())
    if not name:
        return CandidateResult(
            candidate=candidate,
            error=ValidationError(code="EMPTY_NAME", message="candidate has no name", position=candidate.position),
        )
    chat_id = to_chat_id(candidate.raw_phone, country_code)
    if not is_valid_chat_id(chat_id):
        return CandidateResult(
            candidate=candidate,
            error=ValidationError(
                code="INVALID_CHAT_ID",
                message=f"phone {candidate.raw_phone!r} does not form a valid chat id",
                position=candidate.position,
            ),
        )
    return CandidateResult(candidate=candidate, contact=Contact(id=chat_id, name=name))


def extract_contacts(text: str, fmt: Optional[str] = None, country_code: Optional[str] = None) -> ExtractionResult:
    """解析导出文档并返回通过校验的联系人（保持文档顺序，未去重）。

    Raises:
        ParseError: 文档结构非法，无法切分为卡片/行。
    """

    fmt, candidates = parse_candidates(text, fmt)
    result = ExtractionResult(format=fmt)  # type: ignore[arg-type]
    for candidate in candidates:
        checked = validate_candidate(candidate, country_code)
        if checked.ok:
            result.contacts.append(checked.contact)
        else:
            result.rejected.append(checked)
    if result.rejected:
        logger.info(
            "extract.rejected",
            extra={"extra": {
                "format": fmt,
                "rejected": len(result.rejected),
                "codes": sorted({r.error.code for r in result.rejected if r.error}),
            }},
        )
    return result
