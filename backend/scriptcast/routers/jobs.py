"""
Router para gerenciamento de jobs.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..dependencies import PipelineContext, get_context
from ..models.job import Job, JobStatusEnum

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


class JobListResponse(BaseModel):
    jobs: List[Job]
    total: int


@router.get("", response_model=JobListResponse)
async def list_jobs(
    status: Optional[JobStatusEnum] = None,
    limit: int = 20,
    ctx: PipelineContext = Depends(get_context)
):
    """
    Lista os jobs em memória (mais recentes primeiro).
    """
    jobs = ctx.registry.list_jobs()

    if status:
        jobs = [j for j in jobs if j.status == status]

    jobs.sort(key=lambda j: j.created_at, reverse=True)

    return JobListResponse(jobs=jobs[:limit], total=len(jobs))


@router.delete("/{job_id}")
async def delete_job(job_id: str, ctx: PipelineContext = Depends(get_context)):
    """
    Remove o job e seus arquivos temporários.

    Jobs em processamento não podem ser removidos.
    """
    job = ctx.registry.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    if not job.is_terminal:
        raise HTTPException(status_code=409, detail="Job is still processing")

    ctx.file_manager.cleanup_job(job_id)
    ctx.registry.remove(job_id)

    return {"success": True, "job_id": job_id}


@router.get("/stats/keys")
async def key_pool_stats(ctx: PipelineContext = Depends(get_context)):
    """
    Estatísticas dos pools de chaves (sem expor as chaves).
    """
    def _redact(stats: dict) -> dict:
        usage = stats.pop("usage_counts")
        stats["usage_counts"] = {f"...{k[-4:]}": v for k, v in usage.items()}
        return stats

    return {
        "tts": _redact(ctx.tts_keys.get_stats()),
        "video": _redact(ctx.video_keys.get_stats()),
    }
