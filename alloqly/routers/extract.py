"""
Assignment file extraction.

POST /api/assignments/extract - multipart ``file`` -> normalised text + preview meta.

Stateless: the text is returned to the client, which pastes it into the
assignment form or sends it on to remodelling.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, File, HTTPException, UploadFile, status

from alloqly.config import settings
from alloqly.models.schemas import ExtractionResponse
from alloqly.services.text_extractor import ExtractionError, extract_text

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/extract", response_model=ExtractionResponse)
async def extract_assignment_text(
    file: Optional[UploadFile] = File(None),
) -> ExtractionResponse:
    """
    Extract readable text from a PDF, DOCX, RTF or plain-text upload.

    - Max file size: 5 MB (configurable via MAX_UPLOAD_SIZE)
    - Whitespace is collapsed; ``meta.snippet`` holds the first 200 characters
    """
    if file is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file found in request.",
        )

    # Read one byte past the limit so oversized uploads are detected
    # without buffering the whole body.
    data = await file.read(settings.MAX_UPLOAD_SIZE + 1)

    try:
        extracted = await extract_text(data, file.filename, file.content_type)
    except ExtractionError as exc:
        logger.info("Extraction rejected for %r: %s", file.filename, exc.message)
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    except Exception as exc:
        logger.exception("File extraction error for %r", file.filename)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to read file. Please try another format.",
        ) from exc

    return ExtractionResponse(text=extracted.text, meta=extracted.meta)
