# recruitflow/services/phases/state_machine.py
"""
Phase State Machine - the five ordered phases of a project and their approval cycle.

Per phase:  empty -> drafted -> editing -> approved
  - a generated result is only a draft until a human approves it
  - editing works on a deep copy; cancelling drops it, the draft stays untouched
  - approving is the only transition that changes canonical state
  - regenerating after approval yields a new draft; the old canonical value stays
    current until the new draft is approved

Every generation is tagged with a monotonic token. A result is discarded on arrival
when a newer generation was started, when an approval landed after the token was
issued, or when the caller abandoned it.

All methods are synchronous and operate on in-memory state only.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from pydantic import BaseModel, ValidationError

from recruitflow.core.errors import (
    DependencyGateError,
    PhaseTransitionError,
    UnknownCandidateError,
    ValidationFailedError,
)
from recruitflow.schemas.phases import (
    RESULT_MODELS,
    AlignmentResult,
    DecisionResult,
    InterviewResult,
    Phase,
    PhaseState,
    ReferencesResult,
    ShortlistResult,
)
from recruitflow.schemas.project import Candidate, ChatMessage, FunnelData, ProjectInfo, ProjectState

logger = logging.getLogger("pipeline.phases")

CommitListener = Callable[[Phase, BaseModel], Any]


@dataclass
class PhaseSlot:
    phase: Phase
    state: PhaseState = PhaseState.EMPTY
    canonical: Optional[BaseModel] = None
    draft: Optional[BaseModel] = None
    working: Optional[Dict[str, Any]] = None
    # Extra inputs travelling with an interview draft (cv text, report)
    draft_meta: Dict[str, Any] = field(default_factory=dict)
    edit_from_canonical: bool = False
    latest_token: int = 0
    approved_at: int = 0
    abandoned: Set[int] = field(default_factory=set)


def _field_name(model: type[BaseModel], key: str) -> Optional[str]:
    """Resolve a snake_case name or camelCase alias to the model's field name."""
    if key in model.model_fields:
        return key
    for name, info in model.model_fields.items():
        if info.alias == key:
            return name
    return None


class PhaseStateMachine:
    def __init__(self):
        self.slots: Dict[Phase, PhaseSlot] = {p: PhaseSlot(p) for p in Phase}
        self.candidates: List[Candidate] = []
        self.chat_history: List[ChatMessage] = []
        self.project_info: Optional[ProjectInfo] = None
        self.funnel_data: Optional[FunnelData] = None
        self._counter = 0
        self._listeners: List[CommitListener] = []

    # ------------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------------

    def state(self, phase: Phase) -> PhaseState:
        return self.slots[phase].state

    def canonical(self, phase: Phase) -> Optional[BaseModel]:
        return self.slots[phase].canonical

    def draft(self, phase: Phase) -> Optional[BaseModel]:
        return self.slots[phase].draft

    def working(self, phase: Phase) -> Optional[Dict[str, Any]]:
        return self.slots[phase].working

    @property
    def phase1(self) -> Optional[AlignmentResult]:
        return self.slots[Phase.ALIGNMENT].canonical

    @property
    def shortlist(self) -> list:
        result = self.slots[Phase.SHORTLIST].canonical
        return list(result.shortlist) if result else []

    def candidate_names(self) -> List[str]:
        return [c.name for c in self.candidates]

    def reference_names(self) -> List[str]:
        """Names a reference may be collected for: evaluated candidates plus shortlisted ones."""
        names = self.candidate_names()
        for entry in self.shortlist:
            if entry.candidate_name not in names:
                names.append(entry.candidate_name)
        return names

    def get_candidate(self, name: str) -> Optional[Candidate]:
        for c in self.candidates:
            if c.name == name:
                return c
        return None

    def on_commit(self, listener: CommitListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # dependency gates
    # ------------------------------------------------------------------

    def check_gate(self, phase: Phase, **inputs: Any) -> None:
        """Raise DependencyGateError when `phase` may not generate with the given inputs."""
        if phase is Phase.ALIGNMENT:
            if not (inputs.get("transcript") or "").strip():
                raise DependencyGateError(phase.label, "an alignment transcript is required")

        elif phase is Phase.INTERVIEW:
            # Phase 1 is optional context here
            if not (inputs.get("candidate_name") or "").strip():
                raise DependencyGateError(phase.label, "a candidate name is required")
            if not (inputs.get("cv_text") or "").strip():
                raise DependencyGateError(phase.label, "candidate document text is required")

        elif phase is Phase.SHORTLIST:
            if not self.candidates:
                raise DependencyGateError(phase.label, "at least one approved candidate evaluation is required")
            selected = inputs.get("selected_names")
            if selected is not None:
                if not selected:
                    raise DependencyGateError(phase.label, "select at least one candidate")
                unknown = [n for n in selected if n not in self.candidate_names()]
                if unknown:
                    raise UnknownCandidateError(phase.label, unknown)

        elif phase is Phase.DECISION:
            if not self.shortlist:
                raise DependencyGateError(phase.label, "at least one shortlist entry is required")

        elif phase is Phase.REFERENCES:
            name = (inputs.get("candidate_name") or "").strip()
            if not name:
                raise DependencyGateError(phase.label, "select a candidate")
            if name not in self.reference_names():
                raise DependencyGateError(phase.label, f"'{name}' is not an evaluated or shortlisted candidate")
            if not (inputs.get("raw_notes") or "").strip():
                raise DependencyGateError(phase.label, "reference notes are required")

    # ------------------------------------------------------------------
    # generation
    # ------------------------------------------------------------------

    def begin_generation(self, phase: Phase) -> int:
        slot = self.slots[phase]
        if slot.state is PhaseState.EDITING:
            raise PhaseTransitionError(phase.label, slot.state.value, "generate")
        self._counter += 1
        slot.latest_token = self._counter
        return self._counter

    def is_stale(self, phase: Phase, token: int) -> bool:
        slot = self.slots[phase]
        return token < slot.latest_token or token <= slot.approved_at or token in slot.abandoned

    def accept_draft(self, phase: Phase, token: int, draft: BaseModel, **meta: Any) -> bool:
        """Install a generated result as the phase draft. Returns False if it was discarded."""
        slot = self.slots[phase]
        if self.is_stale(phase, token):
            logger.info("%s: discarding stale generation result (token %d)", phase.label, token)
            slot.abandoned.discard(token)
            return False
        if slot.state is PhaseState.EDITING:
            logger.info("%s: discarding generation result that arrived while editing", phase.label)
            return False

        slot.draft = self._drop_unknown_candidates(phase, draft)
        slot.draft_meta = dict(meta)
        slot.working = None
        slot.edit_from_canonical = False
        slot.state = PhaseState.DRAFTED
        logger.info("%s: draft ready", phase.label)
        return True

    def abandon(self, phase: Phase, token: Optional[int] = None) -> None:
        """Forget an in-flight generation; its result is dropped when it arrives."""
        slot = self.slots[phase]
        slot.abandoned.add(token if token is not None else slot.latest_token)

    def release(self, phase: Phase, token: int) -> None:
        """A generation ended without a result; nothing will arrive for its token."""
        self.slots[phase].abandoned.discard(token)

    def discard_draft(self, phase: Phase) -> None:
        slot = self.slots[phase]
        if slot.state is not PhaseState.DRAFTED:
            raise PhaseTransitionError(phase.label, slot.state.value, "discard draft")
        slot.draft = None
        slot.draft_meta = {}
        slot.state = PhaseState.APPROVED if slot.canonical is not None else PhaseState.EMPTY

    # ------------------------------------------------------------------
    # editing
    # ------------------------------------------------------------------

    def start_edit(self, phase: Phase) -> Dict[str, Any]:
        slot = self.slots[phase]
        if slot.state is PhaseState.DRAFTED:
            source, from_canonical = slot.draft, False
        elif slot.state is PhaseState.APPROVED and slot.canonical is not None:
            source, from_canonical = slot.canonical, True
        else:
            raise PhaseTransitionError(phase.label, slot.state.value, "edit")

        slot.working = copy.deepcopy(source.model_dump())
        slot.edit_from_canonical = from_canonical
        slot.state = PhaseState.EDITING
        return slot.working

    def update_working(self, phase: Phase, patch: Dict[str, Any]) -> Dict[str, Any]:
        slot = self.slots[phase]
        if slot.state is not PhaseState.EDITING or slot.working is None:
            raise PhaseTransitionError(phase.label, slot.state.value, "update")

        model = RESULT_MODELS[phase]
        resolved: Dict[str, Any] = {}
        unknown: List[str] = []
        for key, value in patch.items():
            name = _field_name(model, key)
            if name is None:
                unknown.append(key)
            else:
                resolved[name] = copy.deepcopy(value)
        if unknown:
            raise ValidationFailedError(phase.label, [f"unknown field '{k}'" for k in unknown])

        slot.working.update(resolved)
        return slot.working

    def cancel_edit(self, phase: Phase) -> None:
        slot = self.slots[phase]
        if slot.state is not PhaseState.EDITING:
            raise PhaseTransitionError(phase.label, slot.state.value, "cancel edit")
        slot.working = None
        slot.state = PhaseState.APPROVED if slot.edit_from_canonical else PhaseState.DRAFTED
        slot.edit_from_canonical = False

    # ------------------------------------------------------------------
    # approval
    # ------------------------------------------------------------------

    def approve(self, phase: Phase) -> BaseModel:
        slot = self.slots[phase]
        if slot.state is PhaseState.EDITING:
            result = self._validate(phase, slot.working or {})
        elif slot.state is PhaseState.DRAFTED:
            result = self._validate(phase, slot.draft.model_dump())
        else:
            raise PhaseTransitionError(phase.label, slot.state.value, "approve")

        unknown = self._unknown_names(phase, result)
        if unknown:
            raise UnknownCandidateError(phase.label, unknown)

        meta = slot.draft_meta
        from_canonical = slot.edit_from_canonical
        slot.canonical = result
        slot.draft = None
        slot.working = None
        slot.draft_meta = {}
        slot.edit_from_canonical = False
        slot.state = PhaseState.APPROVED
        slot.approved_at = self._counter

        if phase is Phase.INTERVIEW:
            report = meta.get("interview_report")
            if not report and from_canonical:
                # Re-approving a stored evaluation keeps the report it was imported with
                existing = self.get_candidate(result.candidate_name.strip())
                report = existing.interview_report if existing is not None else None
            self._upsert_candidate(
                result,
                meta.get("cv_text", ""),
                report or f"Conclusion: {result.interviewer_conclusion}.",
            )

        logger.info("%s approved", phase.label)
        self._fire_commit(phase, result)
        return result

    def add_candidate(self, evaluation: InterviewResult, cv_text: str = "", interview_report: str = "") -> Candidate:
        """Upsert an evaluation produced outside the draft cycle (batch import). Counts as an approval."""
        report = interview_report or f"Conclusion: {evaluation.interviewer_conclusion}."
        candidate = self._upsert_candidate(evaluation, cv_text, report)
        self._fire_commit(Phase.INTERVIEW, evaluation)
        return candidate

    def _upsert_candidate(self, evaluation: InterviewResult, cv_text: str, report: str) -> Candidate:
        name = evaluation.candidate_name.strip()
        existing = self.get_candidate(name)
        if existing is not None:
            updated = existing.model_copy(
                update={
                    "interview_report": report,
                    "phase2_data": evaluation,
                    "cv_text": cv_text or existing.cv_text,
                }
            )
            self.candidates[self.candidates.index(existing)] = updated
            logger.info("Candidate '%s' updated", name)
            return updated

        candidate = Candidate(name=name, cv_text=cv_text, interview_report=report, phase2_data=evaluation)
        self.candidates.append(candidate)
        logger.info("Candidate '%s' added (%d total)", name, len(self.candidates))
        return candidate

    def _fire_commit(self, phase: Phase, result: BaseModel) -> None:
        for listener in list(self._listeners):
            try:
                listener(phase, result)
            except Exception:
                logger.exception("Commit listener failed for %s", phase.label)

    def _validate(self, phase: Phase, data: Dict[str, Any]) -> BaseModel:
        model = RESULT_MODELS[phase]
        try:
            return model.model_validate(copy.deepcopy(data))
        except ValidationError as e:
            errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            raise ValidationFailedError(phase.label, errors) from e

    # ------------------------------------------------------------------
    # candidate-name invariant
    # ------------------------------------------------------------------

    def _allowed_names(self, phase: Phase) -> Optional[List[str]]:
        if phase is Phase.SHORTLIST:
            return self.candidate_names()
        if phase in (Phase.DECISION, Phase.REFERENCES):
            return self.reference_names()
        return None

    @staticmethod
    def _result_names(result: BaseModel) -> Iterable[str]:
        if isinstance(result, ShortlistResult):
            return [e.candidate_name for e in result.shortlist]
        if isinstance(result, DecisionResult):
            return [c.candidate_name for c in result.candidates]
        if isinstance(result, ReferencesResult):
            return [result.candidate_name]
        return []

    def _unknown_names(self, phase: Phase, result: BaseModel) -> List[str]:
        allowed = self._allowed_names(phase)
        if allowed is None:
            return []
        return [n for n in self._result_names(result) if n not in allowed]

    def _drop_unknown_candidates(self, phase: Phase, draft: BaseModel) -> BaseModel:
        allowed = self._allowed_names(phase)
        if allowed is None:
            return draft
        if isinstance(draft, ShortlistResult):
            kept = [e for e in draft.shortlist if e.candidate_name in allowed]
            dropped = len(draft.shortlist) - len(kept)
            draft = draft.model_copy(update={"shortlist": kept})
        elif isinstance(draft, DecisionResult):
            kept = [c for c in draft.candidates if c.candidate_name in allowed]
            dropped = len(draft.candidates) - len(kept)
            draft = draft.model_copy(update={"candidates": kept})
        else:
            return draft
        if dropped:
            logger.warning("%s: dropped %d entr(ies) naming unknown candidates", phase.label, dropped)
        return draft

    # ------------------------------------------------------------------
    # persistence bridge
    # ------------------------------------------------------------------

    def snapshot(self) -> ProjectState:
        """Canonical state only; drafts and working copies are never persisted."""
        return ProjectState(
            phase1_data=self.slots[Phase.ALIGNMENT].canonical,
            candidates=list(self.candidates),
            shortlist=self.shortlist,
            phase4_result=self.slots[Phase.DECISION].canonical,
            phase5_result=self.slots[Phase.REFERENCES].canonical,
            chat_history=list(self.chat_history),
            project_info=self.project_info,
            funnel_data=self.funnel_data,
        )

    def restore(self, state: ProjectState) -> None:
        self.slots = {p: PhaseSlot(p) for p in Phase}
        self.candidates = list(state.candidates)
        self.chat_history = list(state.chat_history)
        self.project_info = state.project_info
        self.funnel_data = state.funnel_data

        canonical = {
            Phase.ALIGNMENT: state.phase1_data,
            Phase.INTERVIEW: self.candidates[-1].phase2_data if self.candidates else None,
            Phase.SHORTLIST: ShortlistResult(shortlist=list(state.shortlist)) if state.shortlist else None,
            Phase.DECISION: state.phase4_result,
            Phase.REFERENCES: state.phase5_result,
        }
        for phase, value in canonical.items():
            slot = self.slots[phase]
            # In-flight generations from before the restore must not land
            slot.approved_at = self._counter
            if value is not None:
                slot.canonical = value
                slot.state = PhaseState.APPROVED
        logger.info(
            "State restored: %d candidate(s), approved phases: %s",
            len(self.candidates),
            ", ".join(p.value for p, s in self.slots.items() if s.state is PhaseState.APPROVED) or "none",
        )
