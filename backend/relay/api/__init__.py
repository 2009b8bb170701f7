from fastapi import APIRouter
from relay.api import signaling

router = APIRouter()


@router.get("/health")
async def health():
    return {"status": "ok"}


# Include signaling inspection routes
router.include_router(signaling.router)
