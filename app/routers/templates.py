"""
Template upload and management endpoints.

POST   /upload  — store a DOCX template and detect its section placeholders.
GET    /        — list the caller's templates, newest first.
GET    /{id}    — template metadata and sections.
DELETE /{id}    — delete the template record and its file.
"""
from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import List

import aiofiles
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies.auth import get_current_user_id, get_or_create_user, get_owned_template
from app.models.database_models import Template, User
from app.models.schemas import TemplateDeleteResponse, TemplateResponse
from app.services.document_parser import TemplateParser
from app.services.errors import NoPlaceholdersFound
from app.services.placeholders import extract_sections
from app.utils.helpers import safe_remove

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=TemplateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_template(
    template: UploadFile = File(...),
    user: User = Depends(get_or_create_user),
    db: AsyncSession = Depends(get_db),
) -> TemplateResponse:
    """
    Upload a DOCX template and detect its section placeholders.

    - Max file size: 10 MB (configurable via MAX_FILE_SIZE)
    - Markers: ``{{NAME}}``, ``[NAME]``, ``{NAME}`` or ``<<NAME>>``
    - A template without any marker is rejected and its file deleted
    """
    if not template.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file uploaded",
        )

    file_ext = Path(template.filename).suffix.lower()
    if file_ext not in settings.SUPPORTED_FILE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Unsupported file type '{file_ext}'. "
                f"Accepted: {', '.join(settings.SUPPORTED_FILE_TYPES)}"
            ),
        )

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)

    # Use a UUID-based name on disk to prevent collisions
    stored_name = f"{uuid.uuid4().hex}{file_ext}"
    file_path = os.path.join(settings.UPLOAD_DIR, stored_name)
    file_size = 0

    try:
        # Stream to disk while enforcing the size limit
        async with aiofiles.open(file_path, "wb") as out:
            while True:
                chunk = await template.read(1024 * 1024)   # 1 MB slices
                if not chunk:
                    break
                file_size += len(chunk)
                if file_size > settings.MAX_FILE_SIZE:
                    raise HTTPException(
                        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                        detail=(
                            f"File exceeds the {settings.MAX_FILE_SIZE // (1024 * 1024)} MB "
                            "size limit."
                        ),
                    )
                await out.write(chunk)

        logger.info(
            "Saved template %r → %s (%s bytes)", template.filename, file_path, f"{file_size:,}"
        )

        parser = TemplateParser()
        try:
            parsed = await parser.parse_template(file_path, file_ext)
        except RuntimeError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            )

        try:
            sections = extract_sections(parsed.full_text)
        except NoPlaceholdersFound as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(exc),
            )

        record = Template(
            user_id=user.id,
            filename=stored_name,
            original_name=template.filename,
            file_type=file_ext.lstrip("."),
            file_path=file_path,
            file_size=file_size,
            sections=[section.to_dict() for section in sections],
            page_count=parsed.page_count,
            times_used=0,
        )
        db.add(record)
        await db.commit()
        await db.refresh(record)

        logger.info(
            "Template uploaded: id=%d user=%s sections=%s",
            record.id,
            user.id,
            [s.name for s in sections],
        )
        return TemplateResponse.model_validate(record)

    except HTTPException:
        safe_remove(file_path)
        raise
    except Exception as exc:
        logger.exception("Unexpected error processing template %r", template.filename)
        safe_remove(file_path)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error processing template: {exc}",
        )


# ---------------------------------------------------------------------------
# List / detail
# ---------------------------------------------------------------------------

@router.get("/", response_model=List[TemplateResponse])
async def list_templates(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[TemplateResponse]:
    """Return the caller's templates, newest first."""
    result = await db.execute(
        select(Template)
        .where(Template.user_id == user_id)
        .order_by(Template.created_at.desc(), Template.id.desc())
    )
    return [TemplateResponse.model_validate(t) for t in result.scalars().all()]


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template: Template = Depends(get_owned_template),
) -> TemplateResponse:
    return TemplateResponse.model_validate(template)


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

@router.delete("/{template_id}", response_model=TemplateDeleteResponse)
async def delete_template(
    template: Template = Depends(get_owned_template),
    db: AsyncSession = Depends(get_db),
) -> TemplateDeleteResponse:
    """Delete the template record and release its stored file."""
    template_id = template.id
    file_path = template.file_path

    await db.delete(template)
    await db.commit()
    safe_remove(file_path)

    logger.info("Template deleted: id=%d", template_id)
    return TemplateDeleteResponse(id=template_id)
