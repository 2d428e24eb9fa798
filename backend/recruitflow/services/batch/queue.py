# recruitflow/services/batch/queue.py
"""
Batch Queue Engine - turns a pile of unlabelled files into per-candidate evaluations.

enqueue() groups files by the provisional name in their filenames; drain() feeds the
pending/failed items through the interview phase one at a time. A failing item is
marked `error` and the drain moves on; successful items are never reprocessed.
Queue items live only as long as the session.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Callable, Iterable, List, Optional, Sequence

from recruitflow.core.errors import ExtractionError, GenerationError
from recruitflow.schemas.batch import DrainReport, QueueItem, QueueStatus, UploadedFile
from recruitflow.schemas.phases import InterviewResult, Phase
from recruitflow.services.documents.parsing import extract_text
from recruitflow.services.matching.file_matching import group_files_by_candidate
from recruitflow.services.phases import definitions as defs
from recruitflow.services.phases.service import PipelineSession

logger = logging.getLogger("pipeline.batch")

ANALYSIS_FAILED = "Analysis failed."

Extractor = Callable[[UploadedFile], str]


class BatchQueue:
    def __init__(
        self,
        session: PipelineSession,
        extractor: Extractor = extract_text,
        stopwords: Optional[Iterable[str]] = None,
    ):
        self.session = session
        self.extractor = extractor
        self.stopwords = stopwords
        self.items: List[QueueItem] = []
        self._draining = False
        self._cancel_requested = False

    # ------------------------------------------------------------------
    # queue management
    # ------------------------------------------------------------------

    def enqueue(self, files: Sequence[UploadedFile]) -> List[QueueItem]:
        new_items = [
            QueueItem(id=uuid.uuid4().hex[:8], candidate_name=name, files=group)
            for name, group in group_files_by_candidate(files, stopwords=self.stopwords)
        ]
        self.items.extend(new_items)
        logger.info("Enqueued %d file(s) as %d item(s)", len(files), len(new_items))
        return new_items

    def get(self, item_id: str) -> Optional[QueueItem]:
        return next((i for i in self.items if i.id == item_id), None)

    def remove(self, item_id: str) -> bool:
        item = self.get(item_id)
        if item is None:
            return False
        if item.status is QueueStatus.PROCESSING:
            raise ValueError(f"Queue item {item_id} is being processed")
        self.items.remove(item)
        return True

    def clear(self) -> None:
        if self._draining:
            # Stop after the current item; it finishes against its own reference
            self._cancel_requested = True
        self.items = []

    def cancel(self) -> None:
        """Stop the running drain before its next item."""
        if self._draining:
            self._cancel_requested = True

    @property
    def is_draining(self) -> bool:
        return self._draining

    @property
    def progress(self) -> tuple[int, int]:
        done = sum(1 for i in self.items if i.status is QueueStatus.SUCCESS)
        return done, len(self.items)

    # ------------------------------------------------------------------
    # processing
    # ------------------------------------------------------------------

    async def drain(self, items: Optional[Sequence[QueueItem]] = None) -> DrainReport:
        report = DrainReport()
        if self._draining:
            logger.info("Drain already running; ignoring")
            return report

        self._draining = True
        self._cancel_requested = False
        try:
            todo = [
                i for i in (items if items is not None else list(self.items))
                if i.status in (QueueStatus.PENDING, QueueStatus.ERROR)
            ]
            logger.info("Draining %d item(s)", len(todo))
            for item in todo:
                if self._cancel_requested:
                    report.cancelled = True
                    logger.info("Drain cancelled before item %s", item.id)
                    break
                report.processed.append(item.id)
                if await self._process(item):
                    report.succeeded.append(item.id)
                else:
                    report.failed[item.id] = item.error_message or ANALYSIS_FAILED
        finally:
            self._draining = False
            self._cancel_requested = False

        logger.info(
            "Drain finished: %d ok, %d failed%s",
            len(report.succeeded), len(report.failed), " (cancelled)" if report.cancelled else "",
        )
        return report

    async def _process(self, item: QueueItem) -> bool:
        item.status = QueueStatus.PROCESSING
        item.error_message = None
        try:
            texts = []
            for f in item.files:
                text = await asyncio.to_thread(self.extractor, f)
                texts.append((f.filename, text))
            combined = defs.combine_file_texts(texts)

            result = await self._evaluate(item, combined)

            item.result = result
            item.status = QueueStatus.SUCCESS
            self.session.add_candidate(
                result,
                cv_text=combined,
                interview_report=f"Batch import ({len(item.files)} files): {result.interviewer_conclusion}",
            )
            logger.info("Item %s (%s) evaluated", item.id, item.candidate_name)
            return True
        except ExtractionError as e:
            item.status = QueueStatus.ERROR
            item.error_message = str(e)
            logger.warning("Item %s: %s", item.id, e)
        except GenerationError as e:
            item.status = QueueStatus.ERROR
            item.error_message = f"{ANALYSIS_FAILED} {e}"
            logger.warning("Item %s generation failed: %s", item.id, e)
        except Exception as e:
            item.status = QueueStatus.ERROR
            item.error_message = ANALYSIS_FAILED
            logger.exception("Item %s failed unexpectedly: %s", item.id, e)
        return False

    async def _evaluate(self, item: QueueItem, combined: str) -> InterviewResult:
        definition = defs.DEFINITIONS[Phase.INTERVIEW]
        session = self.session
        result = await session.client.generate(
            definition.system_prompt,
            defs.interview_user_prompt(item.candidate_name, combined, defs.BATCH_TRANSCRIPT_NOTICE, defs.BATCH_NOTES),
            InterviewResult,
            session.context.usage_tags(phase=definition.usage_label, candidate_name=item.candidate_name),
        )
        return result.data.model_copy(update={"candidate_name": item.candidate_name})
