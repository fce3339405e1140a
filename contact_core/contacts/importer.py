"""导入流水线：extract -> dedupe -> merge -> save。

没有部分提交与回滚。save 失败时，合并好的目录会保留在 importer 上，
调用方可以用 retry_save() 重新保存同一份结果，而不必重新解析文档。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from contact_core.domain.models import CandidateResult, Contact, Directory
from contact_core.domain.stores import DirectoryStore
from contact_core.infrastructure.logging.logger import logger
from .dedup import dedupe, merge_into_directory
from .extractor import extract_contacts


@dataclass
class ImportResult:
    format: str
    added: List[Contact] = field(default_factory=list)
    skipped_existing: List[Contact] = field(default_factory=list)
    rejected: List[CandidateResult] = field(default_factory=list)
    duplicates_in_batch: int = 0
    total_candidates: int = 0
    saved: bool = False


class DirectoryImporter:
    def __init__(self, store: DirectoryStore, country_code: Optional[str] = None):
        self._store = store
        self._country_code = country_code
        self._pending: Optional[Directory] = None
        self._pending_results: List[ImportResult] = []

    @property
    def has_pending_save(self) -> bool:
        return self._pending is not None

    def import_document(self, text: str, fmt: Optional[str] = None) -> ImportResult:
        """解析并合并一份导出文档。

        Raises:
            ParseError: 文档结构非法。
            StoreUnavailable: 读取或保存目录失败；保存失败时可调用 retry_save()。
        """

        extraction = extract_contacts(text, fmt=fmt, country_code=self._country_code)
        unique = dedupe(extraction.contacts)
        if self._pending is not None:
            # 上一次保存失败的目录尚未落盘，在它之上继续合并
            logger.info("import.merge_into_pending", extra={"extra": {"pending": len(self._pending)}})
            base = self._pending
        else:
            base = self._store.load()
        merge = merge_into_directory(base, unique)
        result = ImportResult(
            format=extraction.format,
            added=merge.added,
            skipped_existing=merge.skipped_existing,
            rejected=extraction.rejected,
            duplicates_in_batch=len(extraction.contacts) - len(unique),
            total_candidates=extraction.total_candidates,
        )
        if merge.added:
            self._pending = merge.directory
            self._pending_results.append(result)
            self._commit()
        logger.info(
            "import.completed",
            extra={"extra": {
                "format": result.format,
                "candidates": result.total_candidates,
                "added": len(result.added),
                "skipped_existing": len(result.skipped_existing),
                "rejected": len(result.rejected),
            }},
        )
        return result

    def retry_save(self) -> Optional[ImportResult]:
        """重新保存上一次失败的合并结果；没有待保存内容时返回 None。"""

        if self._pending is None:
            return None
        result = self._pending_results[-1]
        self._commit()
        return result

    def _commit(self) -> None:
        assert self._pending is not None
        self._store.save(self._pending)
        for result in self._pending_results:
            result.saved = True
        self._pending = None
        self._pending_results = []
