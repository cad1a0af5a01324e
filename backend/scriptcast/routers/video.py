"""
Router para geração de vídeos.
"""

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from pydantic import BaseModel

from ..dependencies import PipelineContext, get_context
from ..models.job import JobCreate, JobResponse, JobStatusEnum, JobStatusResponse
from ..models.video import TextStats

router = APIRouter(prefix="/api", tags=["video"])

MIN_SPEAKING_SPEED = 0.5
MAX_SPEAKING_SPEED = 2.0


class TextAnalysisRequest(BaseModel):
    text: str


@router.post("/analyze-text", response_model=TextStats)
async def analyze_text(
    request: TextAnalysisRequest,
    ctx: PipelineContext = Depends(get_context)
):
    """
    Analisa texto e retorna estatísticas e estimativas.
    """
    text = request.text.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Text cannot be empty")

    return ctx.text_processor.get_stats(text)


@router.post("/generate", response_model=JobResponse)
async def generate_video(
    request: JobCreate,
    ctx: PipelineContext = Depends(get_context)
):
    """
    Inicia geração de vídeo a partir do roteiro.
    Retorna imediatamente com um job_id para acompanhamento.
    """
    script = request.script.strip()
    if not script:
        raise HTTPException(status_code=400, detail="Script cannot be empty")

    max_length = ctx.config.processing.max_text_length
    if len(script) > max_length:
        raise HTTPException(
            status_code=400,
            detail=f"Script too long. Maximum {max_length} characters."
        )

    if not MIN_SPEAKING_SPEED <= request.speaking_speed <= MAX_SPEAKING_SPEED:
        raise HTTPException(
            status_code=400,
            detail=f"Speaking speed must be between {MIN_SPEAKING_SPEED} and {MAX_SPEAKING_SPEED}"
        )

    job = ctx.registry.create()
    ctx.registry.spawn(
        job.job_id,
        ctx.orchestrator.run(job.job_id, request.model_copy(update={"script": script}))
    )

    return JobResponse(job_id=job.job_id, status=job.status)


@router.get("/status/{job_id}", response_model=JobStatusResponse)
async def get_status(job_id: str, ctx: PipelineContext = Depends(get_context)):
    """
    Retorna status atual do job.
    """
    job = ctx.registry.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    response = JobStatusResponse(
        status=job.status,
        progress=job.progress,
        current_step=job.current_step,
        error=job.error
    )
    if job.status == JobStatusEnum.COMPLETED:
        response.video_url = f"/api/download/{job_id}"
        if job.subtitle_path:
            response.subtitle_url = f"/api/download-subtitle/{job_id}"
    return response


@router.get("/download/{job_id}")
async def download_video(job_id: str, ctx: PipelineContext = Depends(get_context)):
    """
    Faz download do vídeo gerado e agenda a limpeza do job.
    """
    job = ctx.registry.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    if job.status != JobStatusEnum.COMPLETED or not job.video_path:
        raise HTTPException(status_code=400, detail="Video not ready yet")

    video_path = Path(job.video_path)
    if not video_path.exists():
        raise HTTPException(status_code=404, detail="Video file not found")

    ctx.registry.schedule_cleanup(
        job_id,
        ctx.config.storage.retention_seconds,
        ctx.file_manager.cleanup_job
    )

    return FileResponse(
        path=str(video_path),
        media_type="video/mp4",
        filename=f"video_{job_id}.mp4"
    )


@router.get("/download-subtitle/{job_id}")
async def download_subtitle(job_id: str, ctx: PipelineContext = Depends(get_context)):
    """
    Faz download do arquivo SRT, se o job gerou legendas.
    """
    job = ctx.registry.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    if not job.subtitle_path or not Path(job.subtitle_path).exists():
        raise HTTPException(status_code=404, detail="Subtitle not available")

    return FileResponse(
        path=job.subtitle_path,
        media_type="application/x-subrip",
        filename=f"subtitle_{job_id}.srt"
    )
