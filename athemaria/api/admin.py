"""
Admin dashboard routes: reports, correction review, audit trail, purge.

Every endpoint requires the admin identity (see `require_admin`).
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field
from typing import Optional
import logging

from athemaria.api.dependencies import AppServices, get_services, require_admin
from athemaria.config.limits import ADMIN_MESSAGE_MAX_LENGTH
from athemaria.models import DocumentModel, AdminActionType, StoryStatus
from athemaria.services import AuthenticatedUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class ReportActionRequest(DocumentModel):
    action_type: AdminActionType
    message: str = Field(default="", max_length=ADMIN_MESSAGE_MAX_LENGTH)


class RejectRequest(DocumentModel):
    reason: str = Field(..., max_length=ADMIN_MESSAGE_MAX_LENGTH)


@router.get("/reports")
async def unresolved_reports(
    admin: AuthenticatedUser = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    reports = await services.store.get_unresolved_reports()
    return {"reports": reports, "count": len(reports)}


@router.post("/reports/{report_id}/action")
async def act_on_report(
    report_id: str,
    body: ReportActionRequest,
    admin: AuthenticatedUser = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    """Delete, request a correction for, or block the reported story"""
    report = await services.store.get_report(report_id)
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    if report.resolved:
        raise HTTPException(status_code=400, detail="Report is already resolved")

    try:
        action_id = await services.moderation.act_on_report(report, body.action_type, body.message, admin.uid)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "action_id": action_id, "story_id": report.story_id}


@router.post("/reports/{report_id}/dismiss")
async def dismiss_report(
    report_id: str,
    admin: AuthenticatedUser = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    await services.moderation.dismiss_report(report_id, admin.uid)
    return {"success": True, "report_id": report_id}


@router.get("/stories")
async def stories_by_status(
    status: StoryStatus = Query(StoryStatus.PENDING_CORRECTION),
    admin: AuthenticatedUser = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    """Correction queue by default; any status can be listed"""
    stories = await services.store.get_stories_by_status(status)
    return {"stories": stories, "count": len(stories)}


@router.post("/stories/{story_id}/approve")
async def approve_correction(
    story_id: str,
    admin: AuthenticatedUser = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    story = await services.store.get_story(story_id)
    if not story:
        raise HTTPException(status_code=404, detail="Story not found")

    try:
        action_id = await services.moderation.approve_correction(story, admin.uid)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "action_id": action_id, "status": StoryStatus.PUBLISHED.value}


@router.post("/stories/{story_id}/reject")
async def reject_correction(
    story_id: str,
    body: RejectRequest,
    admin: AuthenticatedUser = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    story = await services.store.get_story(story_id)
    if not story:
        raise HTTPException(status_code=404, detail="Story not found")

    try:
        action_id = await services.moderation.reject_correction(story, body.reason, admin.uid)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "action_id": action_id, "deleted": True}


@router.delete("/stories/{story_id}")
async def hard_delete_story(
    story_id: str,
    admin: AuthenticatedUser = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    """Permanently delete a story, skipping the retention period"""
    await services.store.delete_story(story_id)
    logger.warning(f"🗑️ Story {story_id} permanently deleted by admin {admin.uid}")
    return {"success": True, "story_id": story_id}


@router.get("/actions")
async def admin_actions(
    admin: AuthenticatedUser = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    return {"actions": await services.store.get_admin_actions()}


@router.post("/purge")
async def purge_old_stories(
    days: Optional[int] = Query(None, ge=0),
    admin: AuthenticatedUser = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    """Run the retention purge now (normally run from the maintenance script)"""
    retention_days = days if days is not None else services.settings.purge_retention_days
    purged = await services.store.purge_old_stories(retention_days)
    if services.logger:
        services.logger.job_completed("purge_old_stories", f"{purged} stories purged")
    return {"success": True, "purged": purged, "retention_days": retention_days}
