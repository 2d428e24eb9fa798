# recruitflow/services/matching/file_matching.py
"""
File Matching - infers what an uploaded file is and whom it belongs to from its name.

Nothing here raises: "no match" is an expected outcome that asks the caller for
manual assignment.
"""
from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from recruitflow.core.config import settings
from recruitflow.schemas.batch import FileMatch
from recruitflow.schemas.phases import DocType

logger = logging.getLogger("pipeline.matching")


@dataclass(frozen=True)
class MatchingConfig:
    """Keyword sets per document slot, checked in order; first hit wins."""

    doc_keywords: Tuple[Tuple[DocType, Tuple[str, ...]], ...] = (
        (DocType.LENS_MINI, ("lens", "personalidade", "personality")),
        (DocType.COMPETENCY, ("competenc", "skills")),
        (DocType.LEADERSHIP, ("lider", "leader", "gestao")),
    )
    # Name parts this short are connectives ("da", "de", "do") and never count
    min_name_part_len: int = 3
    # Provisional names this short are not trusted as grouping keys
    min_group_key_len: int = 3


CFG = MatchingConfig()

_WS = re.compile(r"\s+")
_SEPARATORS = re.compile(r"[-_.]+")

F = TypeVar("F")


def normalize(text: str) -> str:
    """Lowercase, strip diacritics, collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WS.sub(" ", stripped.lower()).strip()


def classify(filename: str) -> Optional[DocType]:
    name = normalize(filename)
    for doc_type, keywords in CFG.doc_keywords:
        if any(k in name for k in keywords):
            return doc_type
    return None


def _name_parts(candidate_name: str) -> List[str]:
    return [p for p in normalize(candidate_name).split(" ") if len(p) >= CFG.min_name_part_len]


def match(filename: str, candidate_names: Sequence[str]) -> Optional[FileMatch]:
    """
    Pair a file with (candidate, doc type). The candidate whose name parts appear
    most often in the filename wins; a tie keeps the earlier candidate.
    """
    doc_type = classify(filename)
    if doc_type is None:
        return None

    name = normalize(filename)
    best: Optional[str] = None
    best_score = 0
    for candidate in candidate_names:
        score = sum(1 for part in _name_parts(candidate) if part in name)
        if score > best_score:
            best, best_score = candidate, score

    if best is None:
        logger.debug("No candidate matched file %s", filename)
        return None
    return FileMatch(candidate_name=best, doc_type=doc_type)


def extract_provisional_name(filename: str, stopwords: Optional[Iterable[str]] = None) -> str:
    """'maria_silva_transcricao.pdf' -> 'Maria Silva'."""
    words = set(normalize(w) for w in (settings.BATCH_NAME_STOPWORDS if stopwords is None else stopwords))
    stem = Path(filename).stem
    tokens = normalize(_SEPARATORS.sub(" ", stem)).split(" ")
    kept = [t for t in tokens if t and t not in words]
    return " ".join(t[:1].upper() + t[1:] for t in kept)


def group_files_by_candidate(
    files: Sequence[F],
    filename_of=lambda f: f.filename,
    stopwords: Optional[Iterable[str]] = None,
) -> List[Tuple[str, List[F]]]:
    """Group files sharing a provisional name, in first-seen order."""
    groups: Dict[str, List[F]] = {}
    for f in files:
        filename = filename_of(f)
        key = extract_provisional_name(filename, stopwords)
        if len(key) < CFG.min_group_key_len:
            key = filename
        groups.setdefault(key, []).append(f)
    return list(groups.items())
