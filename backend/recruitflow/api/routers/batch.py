# Purpose: Batch routes - upload unlabelled files into the queue, drain/cancel it, and the
# decision-phase smart upload that spreads assessment files over known candidates.
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from recruitflow.api.deps import get_workspace
from recruitflow.schemas.batch import DrainReport, QueueItemOut, SmartUploadReport, UploadedFile
from recruitflow.services.batch.smart_upload import distribute_documents
from recruitflow.services.sessions import ProjectWorkspace

router = APIRouter(prefix="/projects/{project_id}", tags=["batch"])


async def _read_uploads(files: List[UploadFile]) -> List[UploadedFile]:
    uploads = []
    for f in files:
        uploads.append(UploadedFile(filename=f.filename or "upload", content=await f.read()))
    return uploads


def _queue_out(ws: ProjectWorkspace) -> dict:
    done, total = ws.queue.progress
    return {
        "items": [QueueItemOut.from_item(i) for i in ws.queue.items],
        "done": done,
        "total": total,
        "draining": ws.queue.is_draining,
    }


@router.get("/batch")
async def get_queue(ws: ProjectWorkspace = Depends(get_workspace)):
    return _queue_out(ws)


@router.post("/batch/files", response_model=List[QueueItemOut], status_code=201)
async def upload_batch(files: List[UploadFile] = File(...), ws: ProjectWorkspace = Depends(get_workspace)):
    items = ws.queue.enqueue(await _read_uploads(files))
    return [QueueItemOut.from_item(i) for i in items]


@router.post("/batch/drain", response_model=DrainReport)
async def drain_queue(ws: ProjectWorkspace = Depends(get_workspace)):
    return await ws.queue.drain()


@router.post("/batch/cancel")
async def cancel_drain(ws: ProjectWorkspace = Depends(get_workspace)):
    ws.queue.cancel()
    return _queue_out(ws)


@router.delete("/batch/items/{item_id}", status_code=204)
async def remove_item(item_id: str, ws: ProjectWorkspace = Depends(get_workspace)):
    try:
        removed = ws.queue.remove(item_id)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not removed:
        raise HTTPException(status_code=404, detail="Queue item not found")
    return None


@router.delete("/batch", status_code=204)
async def clear_queue(ws: ProjectWorkspace = Depends(get_workspace)):
    ws.queue.clear()
    return None


@router.post("/phase4/documents", response_model=SmartUploadReport)
async def smart_upload(files: List[UploadFile] = File(...), ws: ProjectWorkspace = Depends(get_workspace)):
    session = ws.session
    names = [e.candidate_name for e in session.machine.shortlist] or session.machine.candidate_names()
    return await distribute_documents(await _read_uploads(files), names, session.documents)
