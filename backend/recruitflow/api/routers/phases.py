# Purpose: Phase routes - generate drafts, edit/cancel/approve/abandon, and read a phase's slot.
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from recruitflow.api.deps import get_workspace
from recruitflow.schemas.api import (
    AlignmentRequest,
    DecisionRequest,
    GenerateOut,
    InterviewRequest,
    PhaseView,
    ReferencesRequest,
    ShortlistRequest,
)
from recruitflow.schemas.phases import DocType, Phase
from recruitflow.services.sessions import ProjectWorkspace

router = APIRouter(prefix="/projects/{project_id}/phases", tags=["phases"])


def _dump(model) -> Optional[Dict[str, Any]]:
    return model.model_dump(by_alias=True) if model is not None else None


def phase_view(ws: ProjectWorkspace, phase: Phase) -> PhaseView:
    machine = ws.session.machine
    working = machine.working(phase)
    return PhaseView(
        phase=phase.value,
        label=phase.label,
        state=machine.state(phase),
        canonical=_dump(machine.canonical(phase)),
        draft=_dump(machine.draft(phase)),
        working=dict(working) if working is not None else None,
    )


@router.get("/{phase}", response_model=PhaseView)
async def get_phase(phase: Phase, ws: ProjectWorkspace = Depends(get_workspace)):
    return phase_view(ws, phase)


@router.post("/alignment/generate", response_model=GenerateOut)
async def generate_alignment(payload: AlignmentRequest, ws: ProjectWorkspace = Depends(get_workspace)):
    draft = await ws.session.generate_alignment(payload.transcript, payload.company_name)
    return GenerateOut(accepted=draft is not None, view=phase_view(ws, Phase.ALIGNMENT))


@router.post("/interview/generate", response_model=GenerateOut)
async def generate_interview(payload: InterviewRequest, ws: ProjectWorkspace = Depends(get_workspace)):
    draft = await ws.session.generate_interview(
        payload.candidate_name, payload.cv_text, payload.transcript, payload.notes
    )
    return GenerateOut(accepted=draft is not None, view=phase_view(ws, Phase.INTERVIEW))


@router.post("/shortlist/generate", response_model=GenerateOut)
async def generate_shortlist(payload: ShortlistRequest, ws: ProjectWorkspace = Depends(get_workspace)):
    draft = await ws.session.generate_shortlist(payload.selected_names)
    return GenerateOut(accepted=draft is not None, view=phase_view(ws, Phase.SHORTLIST))


@router.post("/decision/generate", response_model=GenerateOut)
async def generate_decision(payload: DecisionRequest, ws: ProjectWorkspace = Depends(get_workspace)):
    docs = None
    if payload.candidate_documents:
        docs = {name: {DocType(k): v for k, v in slots.items()} for name, slots in payload.candidate_documents.items()}
    draft = await ws.session.generate_decision(docs)
    return GenerateOut(accepted=draft is not None, view=phase_view(ws, Phase.DECISION))


@router.post("/references/generate", response_model=GenerateOut)
async def generate_references(payload: ReferencesRequest, ws: ProjectWorkspace = Depends(get_workspace)):
    draft = await ws.session.generate_references(payload.candidate_name, payload.raw_notes)
    return GenerateOut(accepted=draft is not None, view=phase_view(ws, Phase.REFERENCES))


@router.post("/{phase}/edit", response_model=PhaseView)
async def start_edit(phase: Phase, ws: ProjectWorkspace = Depends(get_workspace)):
    ws.session.start_edit(phase)
    return phase_view(ws, phase)


@router.patch("/{phase}/working", response_model=PhaseView)
async def update_working(phase: Phase, patch: Dict[str, Any], ws: ProjectWorkspace = Depends(get_workspace)):
    ws.session.update_working(phase, patch)
    return phase_view(ws, phase)


@router.post("/{phase}/cancel", response_model=PhaseView)
async def cancel_edit(phase: Phase, ws: ProjectWorkspace = Depends(get_workspace)):
    ws.session.cancel_edit(phase)
    return phase_view(ws, phase)


@router.post("/{phase}/discard", response_model=PhaseView)
async def discard_draft(phase: Phase, ws: ProjectWorkspace = Depends(get_workspace)):
    ws.session.discard_draft(phase)
    return phase_view(ws, phase)


@router.post("/{phase}/approve", response_model=PhaseView)
async def approve(phase: Phase, ws: ProjectWorkspace = Depends(get_workspace)):
    ws.session.approve(phase)
    return phase_view(ws, phase)


@router.post("/{phase}/abandon", response_model=PhaseView)
async def abandon(phase: Phase, ws: ProjectWorkspace = Depends(get_workspace)):
    ws.session.abandon(phase)
    return phase_view(ws, phase)
