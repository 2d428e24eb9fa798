# recruitflow/services/phases/definitions.py
"""
Per-phase generation inputs: system prompt, user prompt builder and output model.

Phases differ only in what they send; retry, parsing and usage tracking live in
the GenerationClient and are shared by all of them.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Type

from pydantic import BaseModel

from recruitflow.schemas.phases import (
    AlignmentResult,
    DecisionResult,
    DocType,
    InterviewResult,
    Phase,
    ReferencesResult,
    ShortlistEntry,
    ShortlistResult,
)
from recruitflow.schemas.project import Candidate
from recruitflow.services.common.llm_client import load_prompt

NO_TRANSCRIPT_NOTICE = "No transcript provided. Base the analysis only on the CV and the notes."
BATCH_TRANSCRIPT_NOTICE = "Analyse the combined text above, which may contain both the CV and the interview transcript."
BATCH_NOTES = "Batch processing - multiple files"
FILE_HEADER = "=== FILE CONTENT: {name} ==="


@dataclass(frozen=True)
class PhaseDefinition:
    phase: Phase
    system_prompt: str
    output_model: Type[BaseModel]

    @property
    def usage_label(self) -> str:
        return self.phase.label


DEFINITIONS: Dict[Phase, PhaseDefinition] = {
    Phase.ALIGNMENT: PhaseDefinition(Phase.ALIGNMENT, load_prompt("phases/alignment.prompt.txt"), AlignmentResult),
    Phase.INTERVIEW: PhaseDefinition(Phase.INTERVIEW, load_prompt("phases/interview.prompt.txt"), InterviewResult),
    Phase.SHORTLIST: PhaseDefinition(Phase.SHORTLIST, load_prompt("phases/shortlist.prompt.txt"), ShortlistResult),
    Phase.DECISION: PhaseDefinition(Phase.DECISION, load_prompt("phases/decision.prompt.txt"), DecisionResult),
    Phase.REFERENCES: PhaseDefinition(Phase.REFERENCES, load_prompt("phases/references.prompt.txt"), ReferencesResult),
}


def alignment_user_prompt(transcript: str, company_name: str) -> str:
    return (
        f"COMPANY: {company_name}\n"
        f"CONTEXT:\n{transcript}\n\n"
        "Produce the complete JSON filling the keys for all 17 items."
    )


def interview_user_prompt(candidate_name: str, cv_text: str, transcript: str, notes: str) -> str:
    return (
        f"CANDIDATE: {candidate_name}\n\n"
        f"CV (TEXT):\n{cv_text}\n\n"
        f"CONSULTANT NOTES (soft skills / impressions):\n{notes}\n\n"
        f"INTERVIEW TRANSCRIPT:\n{transcript or NO_TRANSCRIPT_NOTICE}\n\n"
        "Produce a strict JSON for the candidate report."
    )


def combine_file_texts(texts: Iterable[tuple[str, str]]) -> str:
    """Concatenate (filename, text) pairs into one document with per-file headers."""
    return "".join(f"\n\n{FILE_HEADER.format(name=name)}\n{text}" for name, text in texts)


def shortlist_user_prompt(candidates: Sequence[Candidate]) -> str:
    payload = [
        {
            "name": c.name,
            "interviewReport": c.interview_report,
            "cvText": c.cv_text,
            "phase2Data": c.phase2_data.model_dump(by_alias=True),
        }
        for c in candidates
    ]
    return (
        "CANDIDATE DATA:\n"
        f"{json.dumps(payload, ensure_ascii=False)}\n\n"
        'Produce the "shortlist" JSON with one row per candidate: shortlistId (e.g. "01"), candidateName, '
        "age (number only), location, currentPosition (title @ company), academicHistory, "
        "professionalExperience, mainProjects, remunerationPackage, coreSkills (top 3), motivations."
    )


def decision_user_prompt(
    phase1: Optional[AlignmentResult],
    shortlist: Sequence[ShortlistEntry],
    evaluations: Mapping[str, InterviewResult],
    documents: Mapping[str, Mapping[DocType, str]],
) -> str:
    blocks: List[str] = []
    for entry in shortlist:
        p2 = evaluations.get(entry.candidate_name)
        docs = documents.get(entry.candidate_name, {})
        blocks.append(
            "---\n"
            f"CANDIDATE: {entry.candidate_name}\n"
            f"ID: {entry.shortlist_id}\n\n"
            "[INTERVIEW CONTEXT]\n"
            f"Conclusion: {p2.interviewer_conclusion if p2 else 'N/A'}\n"
            f"Recommendation: {p2.recommendation if p2 else 'N/A'}\n\n"
            "[TECHNICAL SUMMARY]\n"
            f"Projects: {entry.main_projects}\n"
            f"Skills: {entry.core_skills}\n\n"
            "[ASSESSMENTS]\n"
            f"Lens: {docs.get(DocType.LENS_MINI) or 'N/A'}\n"
            f"Competency: {docs.get(DocType.COMPETENCY) or 'N/A'}\n"
            f"Leadership: {docs.get(DocType.LEADERSHIP) or 'N/A'}\n"
            "---"
        )
    company = phase1.company_name if phase1 else "N/A"
    challenges = phase1.job_details if phase1 else "N/A"
    return (
        f"COMPANY CONTEXT:\n{company}\nChallenges: {challenges}\n\n"
        "FINALISTS:\n" + "\n".join(blocks) + "\n\n"
        "Produce the JSON with, for each candidate: executiveSummary, decisionScenario, whyDecision."
    )


def references_user_prompt(candidate_name: str, raw_notes: str) -> str:
    return (
        f"CANDIDATE: {candidate_name}\n\n"
        f"RAW REFERENCE NOTES:\n{raw_notes}\n\n"
        'Task: produce a JSON with the polished, anonymous version of this text. Decide whether the feedback '
        "is positive or constructive/negative from its content."
    )
