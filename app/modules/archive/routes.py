from fastapi import APIRouter, Depends
from app.database.supabase_client import get_service_supabase
from app.modules.archive.schemas import AssembleChunksRequest, AssembleChunksResponse
from app.modules.archive.service import ArchiveService
from app.core.dependencies import get_current_user
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/archive", tags=["archive"])


def get_archive_service(supabase: Client = Depends(get_service_supabase)) -> ArchiveService:
    return ArchiveService(supabase)


@router.post("/assemble-chunks", response_model=AssembleChunksResponse)
def assemble_chunks(
    request: AssembleChunksRequest,
    user_data: Dict = Depends(get_current_user),
    service: ArchiveService = Depends(get_archive_service)
):
    """Reassemble an uploaded file from its chunk objects"""
    return service.assemble_chunks(request, user_data["id"])
