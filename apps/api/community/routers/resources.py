"""
Resource library endpoints and file uploads
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.jwt import CurrentUser, get_current_user, get_optional_user
from ..config import settings
from ..database.resources import ResourcesRepository
from ..database.session import get_session
from ..errors import CommunityError, ValidationError
from ..logging_config import setup_logging
from ..middleware.security import SecurityValidator, validate_request_size
from ..storage.objects import ObjectStorage, get_storage
from ..utils import row_to_dict

logger = setup_logging(__name__)

router = APIRouter(prefix="/resources", tags=["resources"])


class ResourceCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    category: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    external_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    is_premium: bool = False
    tag_ids: Optional[List[UUID]] = None


class ResourceUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    category: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    external_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    is_premium: Optional[bool] = None


@router.get("")
async def list_resources(
    type: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    resources = await ResourcesRepository(session).list_resources(
        user_id=current_user.id if current_user else None,
        type=type,
        category=category,
        search=search,
    )
    return {"data": resources}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_resource(
    payload: ResourceCreate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    data = payload.model_dump(exclude={"tag_ids"})
    if data.get("external_url") and not SecurityValidator.validate_url(data["external_url"]):
        raise ValidationError("Invalid external URL")
    try:
        resource = await ResourcesRepository(session).create_resource(data, current_user.id, payload.tag_ids)
        return {"success": True, "data": resource}
    except HTTPException:
        raise
    except CommunityError:
        raise
    except Exception as e:
        logger.error(f"Error creating resource: {e}")
        raise HTTPException(status_code=500, detail="Failed to create resource")


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_resource_file(
    request: Request,
    file: UploadFile = File(...),
    current_user: CurrentUser = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_storage),
):
    """Store an uploaded file; images also get thumbnails"""
    validate_request_size(request)
    if not SecurityValidator.validate_filename(file.filename or ""):
        raise ValidationError("Invalid file name", code="INVALID_FILENAME")

    file_data = await file.read()
    if not file_data:
        raise ValidationError("Empty file")
    if len(file_data) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size: {settings.MAX_UPLOAD_SIZE} bytes",
        )

    try:
        stored = await storage.store_upload(file_data, current_user.id, file.filename, file.content_type)
    except Exception as e:
        logger.error(f"Upload of {file.filename} failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload file")
    return {"success": True, "data": stored}


@router.put("/{resource_id}")
async def update_resource(
    resource_id: UUID,
    payload: ResourceUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    resource = await ResourcesRepository(session).update_resource(
        resource_id, payload.model_dump(exclude_unset=True), current_user.id, current_user.is_admin
    )
    return {"success": True, "data": row_to_dict(resource)}


@router.delete("/{resource_id}")
async def delete_resource(
    resource_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    resource = await ResourcesRepository(session).delete_resource(resource_id, current_user.id, current_user.is_admin)
    if settings.storage_configured:
        await _delete_stored_file(resource.file_url)
    return {"success": True, "data": {"id": str(resource_id)}}


async def _delete_stored_file(file_url: Optional[str]) -> None:
    """Remove an uploaded file from the bucket; files hosted elsewhere are left alone"""
    try:
        storage = await get_storage()
        key = storage.key_from_url(file_url)
        if key and await storage.object_exists(key):
            await storage.delete_object(key)
    except Exception as e:
        logger.warning(f"Could not delete stored file {file_url}: {e}")


@router.post("/{resource_id}/like")
async def like_resource(
    resource_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return {"success": True, "data": await ResourcesRepository(session).toggle_like(resource_id, current_user.id)}


@router.post("/{resource_id}/download")
async def register_download(resource_id: UUID, session: AsyncSession = Depends(get_session)):
    count = await ResourcesRepository(session).increment_download_count(resource_id)
    return {"success": True, "data": {"download_count": count}}
