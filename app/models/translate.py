"""
Pydantic models for translate API request/response.
"""

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.config import get_settings


class TargetLanguage(str, Enum):
    """Languages the annotation service translates into."""

    ENGLISH = "English"
    CHINESE = "Chinese (Simplified)"
    RUSSIAN = "Russian"


class ProcessingStage(str, Enum):
    """Lifecycle of one translation request."""

    IDLE = "IDLE"
    ANALYZING = "ANALYZING"
    RECONSTRUCTING = "RECONSTRUCTING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class Annotation(BaseModel):
    """One detected text block, as returned by the annotation service."""

    model_config = ConfigDict(populate_by_name=True)

    original_text: str = Field(default="", alias="originalText")
    translated_text: str = Field(default="", alias="translatedText")
    box_2d: List[float] = Field(
        ...,
        min_length=4,
        max_length=4,
        description="Bounding box [ymin, xmin, ymax, xmax] normalized to 0-1000",
    )
    category: Literal["TEXT", "TECHNICAL"] = Field(default="TEXT")


class ReconstructOptions(BaseModel):
    """Options for drawing reconstruction."""

    target_lang: TargetLanguage = Field(
        default_factory=lambda: TargetLanguage(get_settings().DEFAULT_TARGET_LANG),
        description="Language the drawing is translated into"
    )
    min_font_px: int = Field(default_factory=lambda: get_settings().MIN_FONT_PX, ge=4, le=100, description="Minimum font size in pixels")
    max_font_px: int = Field(default_factory=lambda: get_settings().MAX_FONT_PX, ge=4, le=200, description="Maximum font size in pixels")
    padding: float = Field(default_factory=lambda: get_settings().PADDING_PX, ge=0, le=50, description="Erase padding around each box in pixels")
    return_base64: bool = Field(default=True, description="Return image as base64 string")

    @model_validator(mode="after")
    def check_font_range(self) -> "ReconstructOptions":
        if self.min_font_px > self.max_font_px:
            raise ValueError("min_font_px must not exceed max_font_px")
        return self


class TranslateUrlRequest(BaseModel):
    """Request model for URL-based translation."""

    image_url: str = Field(..., description="URL of the drawing to translate")
    options: ReconstructOptions = Field(default_factory=ReconstructOptions)


class ReconstructRequest(BaseModel):
    """Request model for reconstruction from caller-supplied annotations."""

    image_base64: str = Field(..., description="Drawing as base64 (data URL prefix allowed)")
    annotations: List[Annotation] = Field(default_factory=list)
    options: ReconstructOptions = Field(default_factory=ReconstructOptions)


class TranslateResultData(BaseModel):
    """Data returned from a translation run."""

    stage: ProcessingStage = Field(description="Final processing stage")
    reason: str = Field(default="", description="Status reason/description")
    regions: int = Field(default=0, description="Number of annotated regions detected")
    processed: int = Field(default=0, description="Number of regions erased and rewritten")
    skipped: int = Field(default=0, description="Regions left untouched (technical or unchanged)")
    overflowed: int = Field(default=0, description="Regions drawn with the minimum-size fallback")
    fallback_fills: int = Field(default=0, description="Regions erased with the white fallback")
    time_ms: int = Field(default=0, description="Processing time in milliseconds")
    annotations: List[Annotation] = Field(default_factory=list)
    output_image_base64: Optional[str] = Field(
        default=None,
        description="Reconstructed image as base64 PNG (if return_base64=true)"
    )
    output_filename: Optional[str] = Field(
        default=None,
        description="Output filename"
    )


class TranslateResponse(BaseModel):
    """Standard API response for translation endpoints."""

    success: bool = Field(description="Whether the request was successful")
    data: Optional[TranslateResultData] = Field(
        default=None,
        description="Translation result data"
    )
    error: Optional[str] = Field(
        default=None,
        description="Error message if success=false"
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="ok")
    version: str = Field(default="0.1.0")
