# johari/api/v1/endpoints/health.py
from fastapi import APIRouter, Response

router = APIRouter()

@router.get("/")
async def health():
    return Response("ok", media_type="text/plain", status_code=200)
