# recruitflow/services/phases/service.py
"""
PipelineSession - one open project: phase state machine + generation client +
persistence + caller context.

Generation methods check the phase's dependency gate, run the phase definition
through the GenerationClient and install the result as a draft. They return the
draft, or None when the result arrived stale and was discarded. Approvals (and
batch imports) schedule a save of the canonical state.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Mapping, Optional, Sequence, TypeVar

from pydantic import BaseModel

from recruitflow.core.context import SessionContext
from recruitflow.schemas.phases import (
    AlignmentResult,
    DecisionResult,
    DocType,
    InterviewResult,
    Phase,
    ReferencesResult,
    ShortlistResult,
)
from recruitflow.schemas.project import Candidate, ProjectState
from recruitflow.services.generation.client import GenerationClient
from recruitflow.services.persistence.adapter import LegacyUserScope, PersistenceAdapter, ProjectScope, Scope
from recruitflow.services.phases import definitions as defs
from recruitflow.services.phases.state_machine import PhaseStateMachine

logger = logging.getLogger("pipeline.phases")

T = TypeVar("T", bound=BaseModel)


class PipelineSession:
    def __init__(
        self,
        context: SessionContext,
        client: GenerationClient,
        persistence: Optional[PersistenceAdapter] = None,
        machine: Optional[PhaseStateMachine] = None,
    ):
        self.context = context
        self.client = client
        self.persistence = persistence
        self.machine = machine or PhaseStateMachine()
        # Assessment texts for the decision phase: candidate -> doc type -> text
        self.documents: Dict[str, Dict[DocType, str]] = {}
        self.machine.on_commit(self._on_commit)

    @property
    def scope(self) -> Scope:
        if self.context.project_id:
            return ProjectScope(self.context.project_id)
        return LegacyUserScope(self.context.user_id)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    async def load(self) -> Optional[ProjectState]:
        if self.persistence is None:
            return None
        state = await self.persistence.load(self.scope)
        if state is not None:
            self.machine.restore(state)
        return state

    async def close(self) -> None:
        if self.persistence is not None:
            await self.persistence.flush()
        self.context.close()

    def save(self) -> Optional[asyncio.Task]:
        """Schedule a save of the canonical state (fire-and-forget)."""
        if self.persistence is None:
            return None
        return self.persistence.save(self.scope, self.machine.snapshot())

    def _on_commit(self, phase: Phase, result: BaseModel) -> None:
        self.save()

    # ------------------------------------------------------------------
    # generation
    # ------------------------------------------------------------------

    async def _generate(
        self,
        phase: Phase,
        user_prompt: str,
        *,
        candidate_name: Optional[str] = None,
        finalize: Optional[Callable[[T], T]] = None,
        **meta,
    ) -> Optional[T]:
        definition = defs.DEFINITIONS[phase]
        token = self.machine.begin_generation(phase)
        try:
            result = await self.client.generate(
                definition.system_prompt,
                user_prompt,
                definition.output_model,
                self.context.usage_tags(phase=definition.usage_label, candidate_name=candidate_name),
            )
        except Exception:
            self.machine.release(phase, token)
            raise
        draft = finalize(result.data) if finalize else result.data
        if not self.machine.accept_draft(phase, token, draft, **meta):
            return None
        return self.machine.draft(phase)

    async def generate_alignment(self, transcript: str, company_name: Optional[str] = None) -> Optional[AlignmentResult]:
        self.machine.check_gate(Phase.ALIGNMENT, transcript=transcript)
        company = company_name or self.context.company_name or ""
        return await self._generate(Phase.ALIGNMENT, defs.alignment_user_prompt(transcript, company))

    async def generate_interview(
        self,
        candidate_name: str,
        cv_text: str,
        transcript: str = "",
        notes: str = "",
        *,
        interview_report: str = "",
    ) -> Optional[InterviewResult]:
        self.machine.check_gate(Phase.INTERVIEW, candidate_name=candidate_name, cv_text=cv_text)
        name = candidate_name.strip()
        return await self._generate(
            Phase.INTERVIEW,
            defs.interview_user_prompt(name, cv_text, transcript, notes),
            candidate_name=name,
            # The requested name is the candidate's key, whatever the model wrote
            finalize=lambda r: r.model_copy(update={"candidate_name": name}),
            cv_text=cv_text,
            interview_report=interview_report,
        )

    async def generate_shortlist(self, selected_names: Optional[Sequence[str]] = None) -> Optional[ShortlistResult]:
        self.machine.check_gate(Phase.SHORTLIST, selected_names=selected_names)
        if selected_names is None:
            chosen = list(self.machine.candidates)
        else:
            chosen = [c for c in self.machine.candidates if c.name in selected_names]
        return await self._generate(
            Phase.SHORTLIST,
            defs.shortlist_user_prompt(chosen),
            candidate_name=", ".join(c.name for c in chosen),
        )

    async def generate_decision(
        self, candidate_documents: Optional[Mapping[str, Mapping[DocType, str]]] = None
    ) -> Optional[DecisionResult]:
        self.machine.check_gate(Phase.DECISION)
        if candidate_documents:
            for name, docs in candidate_documents.items():
                for doc_type, text in docs.items():
                    self.set_document(name, DocType(doc_type), text)
        evaluations = {c.name: c.phase2_data for c in self.machine.candidates}
        prompt = defs.decision_user_prompt(self.machine.phase1, self.machine.shortlist, evaluations, self.documents)
        return await self._generate(Phase.DECISION, prompt)

    async def generate_references(self, candidate_name: str, raw_notes: str) -> Optional[ReferencesResult]:
        self.machine.check_gate(Phase.REFERENCES, candidate_name=candidate_name, raw_notes=raw_notes)
        name = candidate_name.strip()

        def accumulate(result: ReferencesResult) -> ReferencesResult:
            new_refs = [ref.model_copy(update={"original_text": raw_notes}) for ref in result.references]
            pending = self.machine.draft(Phase.REFERENCES)
            if isinstance(pending, ReferencesResult) and pending.candidate_name == name:
                new_refs = list(pending.references) + new_refs
            return ReferencesResult(candidate_name=name, references=new_refs)

        return await self._generate(
            Phase.REFERENCES,
            defs.references_user_prompt(name, raw_notes),
            candidate_name=name,
            finalize=accumulate,
        )

    # ------------------------------------------------------------------
    # human actions (synchronous, in-memory)
    # ------------------------------------------------------------------

    def start_edit(self, phase: Phase) -> dict:
        return self.machine.start_edit(phase)

    def update_working(self, phase: Phase, patch: dict) -> dict:
        return self.machine.update_working(phase, patch)

    def cancel_edit(self, phase: Phase) -> None:
        self.machine.cancel_edit(phase)

    def discard_draft(self, phase: Phase) -> None:
        self.machine.discard_draft(phase)

    def approve(self, phase: Phase) -> BaseModel:
        return self.machine.approve(phase)

    def abandon(self, phase: Phase) -> None:
        self.machine.abandon(phase)

    def add_candidate(self, evaluation: InterviewResult, cv_text: str = "", interview_report: str = "") -> Candidate:
        return self.machine.add_candidate(evaluation, cv_text, interview_report)

    def set_document(self, candidate_name: str, doc_type: DocType, text: str) -> None:
        self.documents.setdefault(candidate_name, {})[doc_type] = text
