"""Shared fixtures: a scripted generation backend, a SQLite-backed document store and
canned structured payloads for every phase."""
import json
import os
import sys
from pathlib import Path

# Configure before the package reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LLM_PROVIDER", "openai")

# Add backend to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "backend"))

import pytest
from sqlalchemy.orm import sessionmaker

from recruitflow.core.context import SessionContext
from recruitflow.db.base import Base, build_engine
from recruitflow.schemas.usage import TokenUsage
from recruitflow.services.common.llm_client import BackendResponse
from recruitflow.services.generation.client import GenerationClient
from recruitflow.services.persistence.adapter import PersistenceAdapter
from recruitflow.services.phases.service import PipelineSession
from recruitflow.services.store.document_store import DocumentStore
from recruitflow.services.usage.accounting import UsageAccounting
from recruitflow.services.usage.dispatcher import UsageDispatcher


# ---------------------------------------------------------------------
# canned payloads (camelCase, as the provider returns them)
# ---------------------------------------------------------------------

def alignment_payload(company="Acme"):
    return {
        "companyName": company,
        "structure": "800 employees, family owned",
        "sectorAndCompetitors": "Retail; competes with Beta and Gamma",
        "momentContext": "Expansion to the north-east",
        "mainChallenges": "Scaling logistics",
        "jobObjectives": "Build the logistics org in 12 months",
        "jobDetails": "Build the logistics org in 12 months",
        "directReport": "CEO",
        "teamStructure": "6 directs",
        "location": "Sao Paulo, hybrid",
        "contractModel": "CLT",
        "salaryDetails": "40k",
        "variableBonus": "6 salaries target",
        "idealExperience": "Retail logistics",
        "academicBackground": "Engineering",
        "idealCoreSkills": ["Execution", "Leadership", "Strategy"],
        "specificRequirements": "English",
    }


def interview_payload(name="Maria Silva", experience="15 years in logistics"):
    return {
        "candidateName": name,
        "currentPosition": "COO @ Delta",
        "interviewerConclusion": "Strong fit",
        "experience": experience,
        "mainProjects": "Project A; Project B; Project C",
        "motivation": "New challenge",
        "mobility": "Yes",
        "englishLevel": "Fluent",
        "remuneration": "35k + bonus",
        "communication": "Clear",
        "coreSkills": "Execution, leadership, negotiation",
        "recommendation": "1. Scale-ups 2. Turnarounds",
    }


def shortlist_entry(name, sid="01"):
    return {
        "shortlistId": sid,
        "candidateName": name,
        "age": "45",
        "currentPosition": "COO @ Delta",
        "location": "Sao Paulo",
        "academicHistory": "Engineering",
        "professionalExperience": "Delta, Epsilon",
        "mainProjects": "A, B, C",
        "remunerationPackage": "35k",
        "coreSkills": "Execution",
        "motivations": "Growth",
    }


def shortlist_payload(*names):
    return {"shortlist": [shortlist_entry(n, f"{i + 1:02d}") for i, n in enumerate(names)]}


def decision_payload(*names):
    return {
        "introduction": "Intro",
        "candidates": [
            {
                "shortlistId": f"{i + 1:02d}",
                "candidateName": n,
                "executiveSummary": "Summary",
                "decisionScenario": "Expansion scenario",
                "whyDecision": "Evidence",
            }
            for i, n in enumerate(names)
        ],
    }


def references_payload(name, *texts):
    return {
        "candidateName": name,
        "references": [{"sourceName": "Former manager", "polishedText": t, "isPositive": True} for t in texts],
    }


# ---------------------------------------------------------------------
# fake generation backend
# ---------------------------------------------------------------------

class FakeBackend:
    """
    Scripted stand-in for a provider backend. Each call pops the next scripted item:
    an exception is raised, a callable is called with (schema_name, user_prompt),
    a dict is returned as JSON, a str is returned as-is.
    """

    def __init__(self, responses=None, model="gpt-4o-mini-2024-07-18"):
        self.responses = list(responses or [])
        self.model = model
        self.calls = []

    def push(self, *items):
        self.responses.extend(items)

    def complete_structured(self, system_prompt, user_prompt, schema, *, schema_name, timeout):
        self.calls.append({"system": system_prompt, "user": user_prompt, "schema_name": schema_name, "schema": schema})
        if not self.responses:
            raise AssertionError(f"unexpected generation call for {schema_name}")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            item = item(schema_name, user_prompt)
            if isinstance(item, BaseException):
                raise item
        text = item if isinstance(item, str) else json.dumps(item)
        usage = TokenUsage(prompt_tokens=1000, output_tokens=500, total_tokens=1500)
        return BackendResponse(text=text, usage=usage, model_id=self.model)


async def no_sleep(seconds):
    return None


# ---------------------------------------------------------------------
# fixtures
# ---------------------------------------------------------------------

@pytest.fixture
def store(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'store.db'}")
    Base.metadata.create_all(bind=engine)
    yield DocumentStore(sessionmaker(bind=engine, autoflush=False, autocommit=False))
    engine.dispose()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(backend, store):
    return GenerationClient(backend, UsageDispatcher(UsageAccounting(store)), max_retries=3, sleep=no_sleep)


@pytest.fixture
def session(client, store):
    context = SessionContext(user_id="u1", project_id="p1", company_name="Acme").open()
    return PipelineSession(context, client, PersistenceAdapter(store, debounce_seconds=0))
