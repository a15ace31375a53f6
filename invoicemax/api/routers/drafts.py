"""
Autosaved editing state: drafts, business profile, contact book, shared items.

PUT endpoints validate immediately and answer 202; the write happens once the
caller has been quiet for the debounce window (or on /sync/flush, or at
shutdown). GET endpoints include edits that are still buffered.

When an earlier write failed, responses carry ``X-Sync-Failed`` naming what
is unsaved (e.g. ``draft:invoice,profile``) and /sync/flush answers 503.
"""

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status
from loguru import logger
from ..deps import get_current_user, get_store, get_sync
from ...core.errors import SaveFailed
from ...models.document import DocumentKind, LineItem
from ...models.records import Client, Draft, Profile
from ...services.storage import DocumentStoreBase
from ...services.sync import DraftSyncService

router = APIRouter(tags=["drafts"])

SYNC_FAILED_HEADER = "X-Sync-Failed"


def report_save_failures(
    response: Response,
    user_id: str = Depends(get_current_user),
    sync: DraftSyncService = Depends(get_sync),
) -> None:
    failures = sync.save_failures(user_id)
    if failures:
        response.headers[SYNC_FAILED_HEADER] = ",".join(f["target"] for f in failures)


autosave = APIRouter(dependencies=[Depends(report_save_failures)])


@autosave.get("/drafts/{kind}", response_model=Draft)
async def get_draft(kind: DocumentKind, user_id: str = Depends(get_current_user), sync: DraftSyncService = Depends(get_sync)):
    return sync.load_draft(user_id, kind)


@autosave.put("/drafts/{kind}", response_model=Draft, status_code=status.HTTP_202_ACCEPTED)
async def put_draft(
    kind: DocumentKind,
    updates: dict = Body(...),
    user_id: str = Depends(get_current_user),
    sync: DraftSyncService = Depends(get_sync),
):
    return sync.queue_draft(user_id, kind, updates)


@autosave.get("/profile", response_model=Profile)
async def get_profile(user_id: str = Depends(get_current_user), sync: DraftSyncService = Depends(get_sync)):
    profile = sync.load_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@autosave.put("/profile", response_model=Profile, status_code=status.HTTP_202_ACCEPTED)
async def put_profile(
    updates: dict = Body(...),
    user_id: str = Depends(get_current_user),
    sync: DraftSyncService = Depends(get_sync),
):
    return sync.queue_profile(user_id, updates)


@router.get("/clients", response_model=list[Client])
async def list_clients(user_id: str = Depends(get_current_user), store: DocumentStoreBase = Depends(get_store)):
    return store.list_clients(user_id)


@autosave.get("/clients/current", response_model=Client)
async def get_current_client(user_id: str = Depends(get_current_user), sync: DraftSyncService = Depends(get_sync)):
    # An empty contact (no id) until the first one with a name is saved
    return sync.load_client(user_id) or Client(user_id=user_id)


@autosave.put("/clients/current", response_model=Client, status_code=status.HTTP_202_ACCEPTED)
async def put_current_client(
    updates: dict = Body(...),
    user_id: str = Depends(get_current_user),
    sync: DraftSyncService = Depends(get_sync),
):
    return sync.queue_client(user_id, updates)


@autosave.get("/items/shared", response_model=list[LineItem])
async def get_shared_items(user_id: str = Depends(get_current_user), sync: DraftSyncService = Depends(get_sync)):
    return sync.load_shared_items(user_id)


@autosave.put("/items/shared", response_model=list[LineItem], status_code=status.HTTP_202_ACCEPTED)
async def put_shared_items(
    items: list[dict] = Body(...),
    user_id: str = Depends(get_current_user),
    sync: DraftSyncService = Depends(get_sync),
):
    return sync.queue_shared_items(user_id, items)


@router.post("/sync/flush")
async def flush(user_id: str = Depends(get_current_user), sync: DraftSyncService = Depends(get_sync)):
    failures = await sync.flush(user_id)
    if failures:
        logger.warning("Flush left unsaved edits", user_id=user_id, failures=failures)
        raise SaveFailed(failures=failures)
    return {"status": "flushed"}


router.include_router(autosave)
