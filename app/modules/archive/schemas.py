from pydantic import BaseModel, Field
from typing import Optional, List


class AssembleChunksRequest(BaseModel):
    chunk_paths: List[str]
    final_path: str
    total_chunks: int = Field(ge=1)
    expected_sha256: Optional[str] = None
    expected_size: Optional[int] = Field(default=None, ge=0)
    cleanup: bool = True


class AssembleChunksResponse(BaseModel):
    success: bool = True
    final_path: str
    size_bytes: int
    sha256: str
    chunks_assembled: int
    chunks_removed: int = 0
    cleanup_errors: List[str] = []
    upload_id: Optional[str] = None
