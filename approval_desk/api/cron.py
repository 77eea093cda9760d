"""Scheduled trigger: dispatch every proposal that has not been sent yet."""

from fastapi import APIRouter, Depends

from ..core.dependencies import DispatcherDep, SettingsDep, require_cron_secret

router = APIRouter(prefix="/cron", tags=["cron"])


@router.get("/dispatch", dependencies=[Depends(require_cron_secret)])
async def dispatch_pending(settings: SettingsDep, dispatcher: DispatcherDep):
    summary = await dispatcher.dispatch_pending(limit=settings.dispatch_batch_size)
    return {"ok": not summary.errors, **summary.to_dict()}
