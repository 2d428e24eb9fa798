# recruitflow/services/batch/smart_upload.py
"""Decision-phase smart upload: spread assessment files over (candidate, doc type) slots."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Sequence

from recruitflow.core.errors import ExtractionError
from recruitflow.schemas.batch import SmartUploadReport, UploadedFile
from recruitflow.schemas.phases import DocType
from recruitflow.services.documents.parsing import extract_text
from recruitflow.services.matching.file_matching import match

logger = logging.getLogger("pipeline.batch")


async def distribute_documents(
    files: Sequence[UploadedFile],
    candidate_names: Sequence[str],
    documents: Dict[str, Dict[DocType, str]],
    extractor: Callable[[UploadedFile], str] = extract_text,
) -> SmartUploadReport:
    """
    Match each file to a known candidate and document slot, extract it and store the
    text in `documents[candidate][doc_type]`. Files that match nothing or cannot be
    read are reported for manual handling; they never stop the rest.
    """
    report = SmartUploadReport(total=len(files))
    for f in files:
        found = match(f.filename, candidate_names)
        if found is None:
            report.unmatched.append(f.filename)
            continue
        try:
            text = await asyncio.to_thread(extractor, f)
        except ExtractionError as e:
            report.unreadable[f.filename] = str(e)
            logger.warning("Smart upload: %s", e)
            continue
        documents.setdefault(found.candidate_name, {})[found.doc_type] = text
        report.assignments[f.filename] = found
        report.matched += 1

    logger.info("Smart upload: %d/%d file(s) assigned", report.matched, report.total)
    return report
