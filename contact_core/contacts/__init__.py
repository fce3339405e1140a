"""Contact import: phone normalization, export parsing, dedup and directory merge."""

from .phone import CHAT_ID_SUFFIX, is_valid_chat_id, normalize_phone, to_chat_id
from .extractor import extract_contacts, parse_candidates, validate_candidate
from .dedup import MergeResult, dedupe, merge_into_directory

__all__ = [
    "CHAT_ID_SUFFIX",
    "is_valid_chat_id",
    "normalize_phone",
    "to_chat_id",
    "extract_contacts",
    "parse_candidates",
    "validate_candidate",
    "MergeResult",
    "dedupe",
    "merge_into_directory",
]
