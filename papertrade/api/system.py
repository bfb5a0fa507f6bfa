"""System API: health check, scheduler status, sync logs, manual sync trigger."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from papertrade.database import get_session
from papertrade.engine.trade_sync import TradeSyncService, get_sync_service
from papertrade.models.sync_log import SyncLog
from papertrade.schemas.system import SchedulerUpdate

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.get("/scheduler")
def scheduler_status():
    """Current scheduler state with job details."""
    from papertrade.engine.scheduler import get_scheduler_status
    return get_scheduler_status()


@router.put("/scheduler")
def update_scheduler(data: SchedulerUpdate):
    """Change the sync interval for the running process."""
    from papertrade.engine.scheduler import get_scheduler_status, reschedule_sync_job
    reschedule_sync_job(data.sync_interval)
    return get_scheduler_status()


@router.post("/sync")
async def trigger_sync(service: TradeSyncService = Depends(get_sync_service)):
    """Manually run one sync pass."""
    report = await service.run_pass()
    if report.status == "error":
        raise HTTPException(status_code=503, detail=report.message)
    return report.as_dict()


@router.get("/logs")
def sync_logs(
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
    session: Session = Depends(get_session),
):
    stmt = select(SyncLog).order_by(SyncLog.timestamp.desc())
    if status is not None:
        stmt = stmt.where(SyncLog.status == status)
    stmt = stmt.offset(offset).limit(limit)
    return session.exec(stmt).all()
