"""Health check route, served outside the pipeline."""

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
async def health() -> dict:
    return {"status": "healthy"}
