"""联系人去重与目录合并（ContactDeduplicator）。

合并策略为 first-seen-wins：同一 id 只保留最早出现的姓名，结果只取决于输入顺序，
重复执行结果不变。导入批次与已有目录合并时，已存在的 id 一律丢弃新候选，
不会覆盖坐席手工编辑过的姓名。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List

from contact_core.domain.models import Contact, Directory


def dedupe(contacts: Iterable[Contact]) -> List[Contact]:
    seen: set[str] = set()
    unique: List[Contact] = []
    for contact in contacts:
        if contact.id in seen:
            continue
        seen.add(contact.id)
        unique.append(contact)
    return unique


@dataclass
class MergeResult:
    directory: Directory
    added: List[Contact] = field(default_factory=list)
    skipped_existing: List[Contact] = field(default_factory=list)


def merge_into_directory(existing: Directory, imported: Iterable[Contact]) -> MergeResult:
    """把导入批次追加到已有目录之后；已有条目保持原样、原顺序。"""

    base = dedupe(existing)
    known = {c.id for c in base}
    result = MergeResult(directory=Directory(contacts=list(base)))
    for contact in dedupe(imported):
        if contact.id in known:
            result.skipped_existing.append(contact)
            continue
        known.add(contact.id)
        result.directory.contacts.append(contact)
        result.added.append(contact)
    return result
