# app/api/v1/endpoints/jobs.py
from fastapi import APIRouter, Depends

from app.core.deps import get_current_user_id, get_job_admin_service
from app.schemas.common import ApiResponse, MessageOut, ok
from app.schemas.jobs import CleanupResult, FailedJobList
from app.services.jobs import JobAdminService

# dead-letter 後台：需要登入
router = APIRouter(tags=["jobs"], dependencies=[Depends(get_current_user_id)])


@router.get("/failed", response_model=ApiResponse[FailedJobList])
async def list_failed_jobs(service: JobAdminService = Depends(get_job_admin_service)):
    return ok(await service.list_failed())


@router.post("/failed/{job_id}/retry", response_model=ApiResponse[MessageOut])
async def retry_failed_job(job_id: str, service: JobAdminService = Depends(get_job_admin_service)):
    await service.retry(job_id)
    return ok(MessageOut(message="Job re-enqueued"), "Job re-enqueued")


@router.delete("/failed/{job_id}", response_model=ApiResponse[MessageOut])
async def remove_failed_job(job_id: str, service: JobAdminService = Depends(get_job_admin_service)):
    await service.remove(job_id)
    return ok(MessageOut(message="Failed job removed"), "Failed job removed")


@router.delete("/failed", response_model=ApiResponse[CleanupResult])
async def cleanup_failed_jobs(service: JobAdminService = Depends(get_job_admin_service)):
    result = await service.cleanup()
    return ok(result, result.message)
