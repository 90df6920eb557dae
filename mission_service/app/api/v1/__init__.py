from fastapi import APIRouter

from .activations import router as activations_router
from .energy import router as energy_router

api_router = APIRouter()
api_router.include_router(energy_router)  # prefix는 router 파일 내부에서 정의 (/energy)
api_router.include_router(activations_router)
