import uuid

from fastapi import APIRouter, BackgroundTasks, Query

from core.models.audit import RawAccountData
from core.models.orchestration import OrchestrateRequest
from core.models.pipeline import BuildCampaignRequest, PipelineProgress, PipelineStatus
from exceptions.custom_exceptions import NotFoundException, PipelineException
from services.campaign.account_auditor import audit_account
from services.campaign.campaign_builder import build_campaign
from services.campaign.campaign_orchestrator import orchestrate
from services.campaign.progress_store import progress_store
from utils.response_helpers import success_response


router = APIRouter(prefix="/api/ds/ads/meta", tags=["meta-campaign"])


@router.post("/campaign/build")
async def start_campaign_build(
    request: BuildCampaignRequest,
    background_tasks: BackgroundTasks,
    wait: bool = Query(default=False),
):
    job_id = uuid.uuid4().hex
    if wait:
        progress = await build_campaign(request, sink=progress_store, job_id=job_id)
        if progress.status == PipelineStatus.FAILED:
            raise PipelineException(
                progress.errors[-1] if progress.errors else "Campaign build failed",
                partial=progress.model_dump(mode="json"),
            )
        return success_response(data=progress.model_dump(mode="json"))

    await progress_store.publish(PipelineProgress(job_id=job_id))
    background_tasks.add_task(build_campaign, request, progress_store, job_id)
    return success_response(data={"jobId": job_id}, status_code=202)


@router.get("/campaign/jobs/{job_id}")
async def get_campaign_job(job_id: str):
    progress = progress_store.get(job_id)
    if progress is None:
        raise NotFoundException(f"Campaign job {job_id} not found or expired")
    return success_response(data=progress.model_dump(mode="json"))


@router.post("/campaign/audit")
async def audit_ad_account(account_data: RawAccountData):
    result = audit_account(account_data)
    return success_response(data=result.model_dump(mode="json"))


@router.post("/campaign/orchestrate")
async def orchestrate_campaign(orchestrate_request: OrchestrateRequest):
    result = orchestrate(
        orchestrate_request.campaign_structure,
        account_id=orchestrate_request.account_id,
        page_id=orchestrate_request.page_id,
        pixel_id=orchestrate_request.pixel_id,
    )
    return success_response(data=result.model_dump(mode="json"))
