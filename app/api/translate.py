"""
Translation API endpoints.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from app.config import get_settings
from app.models.translate import (
    HealthResponse,
    ProcessingStage,
    ReconstructOptions,
    ReconstructRequest,
    TargetLanguage,
    TranslateResponse,
    TranslateResultData,
    TranslateUrlRequest,
)
from app.services.translate_service import TranslateService, get_translate_service
from app.utils.image_utils import decode_base64_image
from techdraw_reconstruct import SurfaceUnavailableError


settings = get_settings()

router = APIRouter()
api_router = APIRouter(prefix=settings.API_V1_STR)


def _to_response(result: TranslateResultData) -> TranslateResponse:
    if result.stage == ProcessingStage.ERROR:
        return TranslateResponse(success=False, error=result.reason, data=result)
    return TranslateResponse(success=True, data=result)


def _error_response(e: Exception) -> TranslateResponse:
    # not an analysis failure, so there is no ERROR-stage result to report
    return TranslateResponse(success=False, error=str(e))


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """
    Health check endpoint.
    Returns service status and version.
    """
    return HealthResponse(status="ok", version="0.1.0")


@api_router.post(
    "/translate",
    response_model=TranslateResponse,
    tags=["Translation"],
    summary="Translate drawing (multipart upload)",
    description="Upload a technical drawing and get it back with translated text blocks."
)
async def translate_image(
    file: Annotated[UploadFile, File(description="Drawing image to translate")],
    target_lang: Annotated[Optional[TargetLanguage], Form()] = None,
    min_font_px: Annotated[Optional[int], Form()] = None,
    max_font_px: Annotated[Optional[int], Form()] = None,
    padding: Annotated[Optional[float], Form()] = None,
    return_base64: Annotated[bool, Form()] = True,
    service: TranslateService = Depends(get_translate_service),
) -> TranslateResponse:
    """
    Translate the text blocks of an uploaded drawing.

    The drawing is processed through:
    1. Gemini analysis (OCR + translation + TEXT/TECHNICAL classification)
    2. Background erase of every changed TEXT block
    3. Adaptive-size rendering of the translations

    Returns the processed image as base64 (if return_base64=true).
    """
    # Validate file type
    if file.content_type and not file.content_type.startswith("image/"):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type: {file.content_type}. Expected image/*"
        )

    try:
        # unset form fields fall back to the configured defaults
        fields = dict(target_lang=target_lang, min_font_px=min_font_px, max_font_px=max_font_px, padding=padding)
        options = ReconstructOptions(
            return_base64=return_base64,
            **{k: v for k, v in fields.items() if v is not None},
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    image_bytes = await file.read()
    try:
        result = await service.translate_image(
            image_bytes=image_bytes,
            options=options,
            filename=file.filename
        )
    except SurfaceUnavailableError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        return _error_response(e)
    return _to_response(result)


@api_router.post(
    "/translate/url",
    response_model=TranslateResponse,
    tags=["Translation"],
    summary="Translate drawing from URL",
    description="Provide a drawing URL and get the translated version."
)
async def translate_image_from_url(
    request: TranslateUrlRequest,
    service: TranslateService = Depends(get_translate_service),
) -> TranslateResponse:
    """
    Download a drawing from URL and translate it.
    """
    try:
        result = await service.translate_image_from_url(
            image_url=request.image_url,
            options=request.options
        )
    except SurfaceUnavailableError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        return _error_response(e)
    return _to_response(result)


@api_router.post(
    "/reconstruct",
    response_model=TranslateResponse,
    tags=["Translation"],
    summary="Rebuild drawing from annotations",
    description="Apply caller-supplied annotations to a drawing without calling Gemini."
)
async def reconstruct_image(
    request: ReconstructRequest,
    service: TranslateService = Depends(get_translate_service),
) -> TranslateResponse:
    """
    Erase and rewrite the given annotations on a base64 drawing.
    """
    try:
        image_bytes = decode_base64_image(request.image_base64)
        result = await service.reconstruct_image(
            image_bytes=image_bytes,
            annotations=request.annotations,
            options=request.options,
        )
    except SurfaceUnavailableError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        return _error_response(e)
    return _to_response(result)


router.include_router(api_router)
