import hashlib
import re
from supabase import Client
from app.config.settings import settings
from app.database.storage import BucketStorage, StorageError
from app.modules.archive.schemas import AssembleChunksRequest, AssembleChunksResponse
from typing import List, Optional, Tuple
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

_CHUNK_SUFFIX = re.compile(r"\.chunk(\d+)$")


def order_chunk_paths(chunk_paths: List[str], final_path: str, total_chunks: int) -> List[Tuple[int, str]]:
    """Return (index, path) pairs in assembly order. Indices must be exactly 0..total_chunks-1."""
    if not chunk_paths:
        raise HTTPException(status_code=400, detail="chunk_paths must not be empty")
    if len(chunk_paths) != total_chunks:
        raise HTTPException(
            status_code=400,
            detail=f"Expected {total_chunks} chunk paths, got {len(chunk_paths)}"
        )

    indexed = {}
    for path in chunk_paths:
        match = _CHUNK_SUFFIX.search(path)
        if not match or path[:match.start()] != final_path:
            raise HTTPException(status_code=400, detail=f"Chunk path does not belong to {final_path}: {path}")
        index = int(match.group(1))
        if path != f"{final_path}.chunk{index}":
            raise HTTPException(status_code=400, detail=f"Malformed chunk index in {path}")
        if index in indexed:
            raise HTTPException(status_code=400, detail=f"Duplicate chunk index {index}")
        indexed[index] = path

    missing = [i for i in range(total_chunks) if i not in indexed]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing chunk indices: {missing}")
    return [(i, indexed[i]) for i in range(total_chunks)]


def check_final_path(final_path: str, user_id: str, prefix: str) -> None:
    """Callers may only assemble into their own upload area"""
    if ".." in final_path.split("/") or final_path.startswith("/"):
        raise HTTPException(status_code=400, detail="Invalid final_path")
    owner_prefix = f"{prefix.strip('/')}/{user_id}/"
    if not final_path.startswith(owner_prefix):
        raise HTTPException(status_code=403, detail="You can only assemble uploads in your own folder")


class ArchiveService:
    def __init__(self, supabase: Client, storage: Optional[BucketStorage] = None):
        self.supabase = supabase
        self.storage = storage or BucketStorage(supabase, settings.vault_bucket)

    def assemble_chunks(self, request: AssembleChunksRequest, user_id: str) -> AssembleChunksResponse:
        """Download chunks in order, concatenate, upload the result and drop the chunks"""
        if request.total_chunks > settings.archive_max_chunks:
            raise HTTPException(
                status_code=400,
                detail=f"Too many chunks: {request.total_chunks} (max {settings.archive_max_chunks})"
            )
        check_final_path(request.final_path, user_id, settings.archive_path_prefix)
        ordered = order_chunk_paths(request.chunk_paths, request.final_path, request.total_chunks)

        logger.info(f"Assembling {len(ordered)} chunks into {request.final_path}")
        assembled = bytearray()
        for index, path in ordered:
            try:
                data = self.storage.download(path)
            except StorageError as e:
                raise HTTPException(status_code=502, detail=f"Failed to download chunk {index}: {e}")
            if data is None:
                raise HTTPException(status_code=404, detail=f"Chunk {index} not found")
            assembled.extend(data)
            if len(assembled) > settings.archive_max_bytes:
                raise HTTPException(status_code=413, detail="Assembled file exceeds maximum size")

        content = bytes(assembled)
        sha256 = hashlib.sha256(content).hexdigest()
        if request.expected_size is not None and request.expected_size != len(content):
            raise HTTPException(
                status_code=422,
                detail=f"Size mismatch: expected {request.expected_size} bytes, assembled {len(content)}"
            )
        if request.expected_sha256 and request.expected_sha256.lower() != sha256:
            raise HTTPException(status_code=422, detail="SHA-256 mismatch after assembly")

        try:
            self.storage.upload_file(content, request.final_path, content_type="application/zip")
        except StorageError as e:
            raise HTTPException(status_code=502, detail=f"Failed to upload assembled file: {e}")

        chunks_removed = 0
        cleanup_errors: List[str] = []
        if request.cleanup:
            paths = [path for _, path in ordered]
            if self.storage.delete_files(paths):
                chunks_removed = len(paths)
            else:
                cleanup_errors.append(f"Failed to remove {len(paths)} chunk(s)")

        upload_id = None
        try:
            result = self.supabase.table("archive_uploads").insert({
                "user_id": user_id,
                "storage_path": request.final_path,
                "sha256": sha256,
                "size_bytes": len(content),
                "chunk_count": len(ordered),
                "status": "assembled",
            }).execute()
            if result.data:
                upload_id = result.data[0].get("id")
        except Exception as e:
            logger.error(f"Error recording archive upload: {str(e)}")
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(f"Assembled {request.final_path}: {len(content)} bytes, sha256={sha256}")
        return AssembleChunksResponse(
            final_path=request.final_path,
            size_bytes=len(content),
            sha256=sha256,
            chunks_assembled=len(ordered),
            chunks_removed=chunks_removed,
            cleanup_errors=cleanup_errors,
            upload_id=upload_id,
        )
