import asyncio

import pytest

from conftest import alignment_payload
from recruitflow.schemas.phases import AlignmentResult
from recruitflow.schemas.project import ProjectState, ProjectStatus
from recruitflow.services.persistence.adapter import PersistenceAdapter, ProjectScope
from recruitflow.services.projects.service import PROJECTS_COLLECTION, ProjectService


def test_create_and_get(store):
    service = ProjectService(store)

    async def scenario():
        created = await service.create_project(
            "u1", "Acme", "COO", phase1_data=AlignmentResult.model_validate(alignment_payload()), mapped=30
        )
        return created, await service.get_project(created.id)

    created, fetched = asyncio.run(scenario())

    assert created.status is ProjectStatus.ACTIVE
    assert fetched.company_name == "Acme"
    assert fetched.role_name == "COO"
    assert fetched.funnel_mapped_count == 30
    assert fetched.funnel_approached_count == 0
    assert fetched.phase1_data.company_name == "Acme"
    assert fetched.created_at == fetched.updated_at


def test_list_projects_per_owner_newest_first(store):
    service = ProjectService(store)

    async def scenario():
        await store.set(PROJECTS_COLLECTION, "old", {"userId": "u1", "companyName": "A", "roleName": "CEO", "updatedAt": 1})
        await store.set(PROJECTS_COLLECTION, "new", {"userId": "u1", "companyName": "B", "roleName": "CFO", "updatedAt": 2})
        await store.set(PROJECTS_COLLECTION, "other", {"userId": "u2", "companyName": "C", "roleName": "CTO", "updatedAt": 3})
        return await service.list_projects("u1")

    projects = asyncio.run(scenario())
    assert [p.id for p in projects] == ["new", "old"]


def test_status_and_funnel_are_user_driven(store):
    service = ProjectService(store)

    async def scenario():
        project = await service.create_project("u1", "Acme", "COO")
        await service.update_status(project.id, ProjectStatus.PAUSED)
        return await service.update_funnel(project.id, mapped=50, approached=20)

    project = asyncio.run(scenario())
    assert project.status is ProjectStatus.PAUSED
    assert project.funnel_mapped_count == 50
    assert project.funnel_approached_count == 20


def test_negative_funnel_counts_are_rejected(store):
    service = ProjectService(store)

    async def scenario():
        project = await service.create_project("u1", "Acme", "COO")
        with pytest.raises(ValueError):
            await service.update_funnel(project.id, mapped=-1)

    asyncio.run(scenario())


def test_updates_leave_pipeline_state_alone(store):
    service = ProjectService(store)
    adapter = PersistenceAdapter(store, debounce_seconds=0)

    async def scenario():
        project = await service.create_project("u1", "Acme", "COO")
        state = ProjectState.model_validate({"phase1Data": alignment_payload()})
        await adapter.save_now(ProjectScope(project.id), state)
        await service.update_status(project.id, "completed")
        await service.update_details(project.id, role_name="CEO")
        return await service.get_project(project.id), await adapter.load(ProjectScope(project.id))

    project, state = asyncio.run(scenario())

    assert project.status is ProjectStatus.COMPLETED
    assert project.role_name == "CEO"
    assert project.company_name == "Acme"
    assert state.phase1_data.company_name == "Acme"


def test_counts_follow_pipeline_state(store):
    service = ProjectService(store)

    async def scenario():
        await store.set(
            PROJECTS_COLLECTION,
            "p1",
            {"userId": "u1", "companyName": "A", "roleName": "CEO", "candidates": [{}, {}], "shortlist": [{}]},
        )
        return await service.get_project("p1")

    project = asyncio.run(scenario())
    assert project.candidates_count == 2
    assert project.shortlist_count == 1


def test_missing_project(store):
    service = ProjectService(store)

    async def scenario():
        return (
            await service.get_project("nope"),
            await service.update_status("nope", ProjectStatus.ARCHIVED),
            await service.delete_project("nope"),
        )

    assert asyncio.run(scenario()) == (None, None, False)


def test_delete_project(store):
    service = ProjectService(store)

    async def scenario():
        project = await service.create_project("u1", "Acme", "COO")
        deleted = await service.delete_project(project.id)
        return deleted, await service.list_projects("u1")

    assert asyncio.run(scenario()) == (True, [])


def test_subscribe_projects_receives_updates(store):
    service = ProjectService(store)
    snapshots = []

    async def wait_for(n):
        for _ in range(100):
            if len(snapshots) >= n:
                return
            await asyncio.sleep(0.01)

    async def scenario():
        unsubscribe = service.subscribe_projects("u1", snapshots.append)
        await wait_for(1)
        await service.create_project("u1", "Acme", "COO")
        await wait_for(2)
        unsubscribe()
        await service.create_project("u1", "Beta", "CFO")
        await asyncio.sleep(0.05)

    asyncio.run(scenario())

    assert snapshots[0] == []
    assert [p.company_name for p in snapshots[1]] == ["Acme"]
    assert len(snapshots) == 2
