from fastapi import APIRouter
from ..config import settings

router = APIRouter(tags=["health"])

@router.get("/health")
def health():
    return {
        "status": "ok",
        "storage": settings.storage_backend,
        "vector_index": settings.vector_backend,
    }
