# recruitflow/schemas/phases.py
"""Structured outputs of the five pipeline phases.

Every model doubles as the output schema sent to the generation service, so field
descriptions are written for the model as much as for humans. All fields without a
default are required: a phase result is all-or-nothing.
"""
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import Field

from recruitflow.schemas.common import CamelModel


class Phase(str, Enum):
    ALIGNMENT = "alignment"
    INTERVIEW = "interview"
    SHORTLIST = "shortlist"
    DECISION = "decision"
    REFERENCES = "references"

    @property
    def number(self) -> int:
        return _PHASE_NUMBERS[self]

    @property
    def label(self) -> str:
        return f"Phase {self.number} - {self.value.capitalize()}"


_PHASE_NUMBERS = {
    Phase.ALIGNMENT: 1,
    Phase.INTERVIEW: 2,
    Phase.SHORTLIST: 3,
    Phase.DECISION: 4,
    Phase.REFERENCES: 5,
}


class PhaseState(str, Enum):
    EMPTY = "empty"
    DRAFTED = "drafted"
    EDITING = "editing"
    APPROVED = "approved"


class DocType(str, Enum):
    """Assessment document slots used by the decision phase."""
    LENS_MINI = "lensMini"
    COMPETENCY = "competency"
    LEADERSHIP = "leadership"


# ---------------------------------------------------------------------
# Phase 1 - Alignment
# ---------------------------------------------------------------------

class AlignmentResult(CamelModel):
    company_name: str
    structure: str = Field(description="Company structure: headcount, revenue, funding, ownership, culture pillars")
    sector_and_competitors: str = Field(description="Sector analysis, direct/indirect competitors and competitive moat")
    moment_context: str = Field(description="Current moment of the company: expansion, turnaround, M&A, ...")
    main_challenges: str = Field(description="Main challenges the role is expected to solve")
    job_objectives: str = Field(description="What will be expected of the executive in the first 12 months")
    job_details: str = Field(description="Same content as jobObjectives, kept for older consumers")
    direct_report: str
    team_structure: str
    location: str
    contract_model: str
    salary_details: str
    variable_bonus: str
    ideal_experience: str
    academic_background: str
    ideal_core_skills: List[str] = Field(description="Exactly three core skills with a short justification each")
    specific_requirements: str


# ---------------------------------------------------------------------
# Phase 2 - Interview
# ---------------------------------------------------------------------

class InterviewResult(CamelModel):
    candidate_name: str
    current_position: str
    interviewer_conclusion: str
    experience: str
    main_projects: str = Field(description="Three most relevant projects written as STAR narratives")
    motivation: str
    mobility: str
    english_level: str
    remuneration: str
    communication: str
    core_skills: str
    recommendation: str = Field(description="Two kinds of companies/projects where this professional would thrive")


# ---------------------------------------------------------------------
# Phase 3 - Shortlist
# ---------------------------------------------------------------------

class ShortlistEntry(CamelModel):
    shortlist_id: str = Field(description='Sequential id, e.g. "01"')
    candidate_name: str
    age: str
    current_position: str
    location: str
    academic_history: str
    professional_experience: str
    main_projects: str
    remuneration_package: str
    core_skills: str
    motivations: str


class ShortlistResult(CamelModel):
    shortlist: List[ShortlistEntry]


# ---------------------------------------------------------------------
# Phase 4 - Decision
# ---------------------------------------------------------------------

class DecisionCandidate(CamelModel):
    shortlist_id: str
    candidate_name: str
    executive_summary: str
    decision_scenario: str = Field(description="Short title of the decision scenario")
    why_decision: str = Field(description="Evidence supporting the scenario")


class DecisionResult(CamelModel):
    introduction: str
    candidates: List[DecisionCandidate]


# ---------------------------------------------------------------------
# Phase 5 - References
# ---------------------------------------------------------------------

class ReferenceItem(CamelModel):
    source_name: Optional[str] = Field(
        default=None,
        description="Generalized source title if inferable (e.g. 'Former manager'), otherwise 'Reference'",
    )
    original_text: str = ""
    polished_text: str
    is_positive: bool


class ReferencesResult(CamelModel):
    candidate_name: str
    references: List[ReferenceItem]


RESULT_MODELS = {
    Phase.ALIGNMENT: AlignmentResult,
    Phase.INTERVIEW: InterviewResult,
    Phase.SHORTLIST: ShortlistResult,
    Phase.DECISION: DecisionResult,
    Phase.REFERENCES: ReferencesResult,
}
