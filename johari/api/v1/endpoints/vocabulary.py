# johari/api/v1/endpoints/vocabulary.py
from fastapi import APIRouter

from johari.core.config import settings
from johari.core.vocabulary import VOCABULARY
from johari.schemas.session import VocabularyResponse

router = APIRouter()

@router.get("/", response_model=VocabularyResponse, summary="List selectable descriptors")
async def get_vocabulary():
    """The fixed descriptor list, in the order clients should present it."""
    return VocabularyResponse(descriptors=list(VOCABULARY), max_selections=settings.MAX_SELECTIONS)
