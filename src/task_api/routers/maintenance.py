from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..auth import require_basic_auth
from ..dependencies import get_task_service
from ..schemas import OrphanReportOut
from ..services import TaskService
from ..settings import get_settings

router = APIRouter(
    prefix="/api/v1/maintenance",
    tags=["maintenance"],
    dependencies=[Depends(require_basic_auth)],
)


# PUBLIC_INTERFACE
@router.post(
    "/reconcile-orphans",
    response_model=OrphanReportOut,
    summary="Reconcile Orphans",
    description=(
        "Find bucket objects no task references and tasks whose image is missing. "
        "With dry_run=false, orphan objects are removed and dangling image URLs cleared."
    ),
)
def reconcile_orphans(
    dry_run: bool = Query(True, description="Only report, change nothing"),
    grace_seconds: Optional[int] = Query(
        None, ge=0, description="Skip objects younger than this; defaults to ORPHAN_GRACE_SECONDS"
    ),
    service: TaskService = Depends(get_task_service),
) -> OrphanReportOut:
    grace = get_settings().orphan_grace_seconds if grace_seconds is None else grace_seconds
    report = service.reconcile_orphans(grace_seconds=grace, dry_run=dry_run)
    return OrphanReportOut(
        dry_run=report.dry_run,
        orphan_objects=report.orphan_objects,
        removed_objects=report.removed_objects,
        dangling_tasks=report.dangling_tasks,
        cleared_tasks=report.cleared_tasks,
    )
