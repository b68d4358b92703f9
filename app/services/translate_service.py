"""
Translation service that wraps techdraw_reconstruct.py functionality.

A request runs as a small state machine:

    IDLE -> ANALYZING -> RECONSTRUCTING -> COMPLETED
                 \\-> ERROR

Only the analysis step (the external Gemini call) can fail into ERROR.
Reconstruction is one synchronous step on a fresh copy of the original drawing.
"""

import base64
import logging
import os
import uuid
from typing import Dict, List, Optional, Protocol, Sequence, Set

import httpx
from PIL import ImageColor

from app.config import get_settings
from app.models.translate import (
    Annotation,
    ProcessingStage,
    ReconstructOptions,
    TranslateResultData,
)
from app.services.gemini_service import AnnotationError, GeminiAnnotator, get_gemini_annotator
from app.utils.image_utils import open_rgb_image

import techdraw_reconstruct as rd

logger = logging.getLogger(__name__)


class InvalidStageTransition(RuntimeError):
    """A session was driven out of order."""


ALLOWED_TRANSITIONS: Dict[ProcessingStage, Set[ProcessingStage]] = {
    ProcessingStage.IDLE: {ProcessingStage.ANALYZING},
    ProcessingStage.ANALYZING: {ProcessingStage.RECONSTRUCTING, ProcessingStage.ERROR},
    ProcessingStage.RECONSTRUCTING: {ProcessingStage.COMPLETED},
    ProcessingStage.COMPLETED: {ProcessingStage.IDLE},
    ProcessingStage.ERROR: {ProcessingStage.IDLE},
}


class Annotator(Protocol):
    async def analyze_async(
        self, image_bytes: bytes, mime_type: str = ..., target_lang: str = ...
    ) -> List[rd.AnnotatedRegion]:
        ...


class StaticAnnotator:
    """Annotator that returns regions supplied by the caller."""

    def __init__(self, regions: Sequence[rd.AnnotatedRegion]) -> None:
        self.regions = list(regions)

    async def analyze_async(self, image_bytes: bytes, mime_type: str = "image/png", target_lang: str = "English") -> List[rd.AnnotatedRegion]:
        return list(self.regions)


class TranslationSession:
    """
    One drawing, one run.

    The original surface is kept untouched; every run reconstructs a fresh copy
    so a retry never draws over an earlier result.
    """

    def __init__(self, original: rd.Surface, annotator: Annotator) -> None:
        self.original = original
        self.annotator = annotator
        self.stage = ProcessingStage.IDLE
        self.surface: Optional[rd.Surface] = None
        self.regions: List[rd.AnnotatedRegion] = []
        self.report: Optional[rd.ReconstructionReport] = None
        self.error: Optional[str] = None

    def _advance(self, stage: ProcessingStage) -> None:
        if stage not in ALLOWED_TRANSITIONS[self.stage]:
            raise InvalidStageTransition(f"Cannot move from {self.stage.value} to {stage.value}")
        logger.debug(f"Session stage {self.stage.value} -> {stage.value}")
        self.stage = stage

    def reset(self) -> None:
        self._advance(ProcessingStage.IDLE)
        self.surface = None
        self.regions = []
        self.report = None
        self.error = None

    async def run(
        self,
        image_bytes: bytes,
        mime_type: str,
        target_lang: str,
        config: rd.ReconstructionConfig,
    ) -> rd.ReconstructionReport:
        self._advance(ProcessingStage.ANALYZING)
        try:
            regions = await self.annotator.analyze_async(image_bytes, mime_type=mime_type, target_lang=target_lang)
        except Exception as e:
            self.error = str(e)
            self._advance(ProcessingStage.ERROR)
            logger.error(f"Drawing analysis failed: {e}")
            raise

        self.regions = list(regions)
        self._advance(ProcessingStage.RECONSTRUCTING)
        self.surface = self.original.copy()
        self.report = rd.reconstruct(self.surface, self.regions, config)
        self._advance(ProcessingStage.COMPLETED)
        return self.report


class TranslateService:
    """
    Service for translating text blocks in technical drawings.
    Manages the shared annotator and font manager.
    """

    _instance: Optional["TranslateService"] = None

    def __new__(cls) -> "TranslateService":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return

        self._settings = get_settings()

        # Lazy-loaded components
        self._annotator: Optional[GeminiAnnotator] = None
        self._fonts: Optional[rd.FontManager] = None

        self._initialized = True

    def _get_annotator(self) -> GeminiAnnotator:
        """Get or create the Gemini annotator."""
        if self._annotator is None:
            self._annotator = get_gemini_annotator()
        return self._annotator

    def _get_fonts(self) -> rd.FontManager:
        """Get or create the font manager."""
        if self._fonts is None:
            self._fonts = rd.FontManager.default(self._settings.font_paths)
        return self._fonts

    def build_config(self, options: ReconstructOptions) -> rd.ReconstructionConfig:
        s = self._settings
        return rd.ReconstructionConfig(
            min_font_size=options.min_font_px,
            max_font_size=options.max_font_px,
            padding=options.padding,
            brightness_threshold=s.BRIGHTNESS_THRESHOLD,
            sample_thickness=s.SAMPLE_THICKNESS,
            line_height=s.LINE_HEIGHT,
            baseline_shift=s.BASELINE_SHIFT,
            text_color=ImageColor.getrgb(s.TEXT_COLOR)[:3],
        )

    async def _run(
        self,
        image_bytes: bytes,
        options: ReconstructOptions,
        annotator: Annotator,
        filename: Optional[str] = None,
    ) -> TranslateResultData:
        t0 = rd.now_ms()

        original = rd.Surface(open_rgb_image(image_bytes), self._get_fonts())
        session = TranslationSession(original, annotator)
        try:
            report = await session.run(
                image_bytes=original.encode(".png"),
                mime_type="image/png",
                target_lang=options.target_lang.value,
                config=self.build_config(options),
            )
        except Exception as e:
            if session.stage != ProcessingStage.ERROR:
                raise
            return TranslateResultData(
                stage=session.stage,
                reason=str(e),
                time_ms=rd.now_ms() - t0,
            )

        data = TranslateResultData(
            stage=session.stage,
            reason="ok" if report.processed else "nothing_to_translate",
            regions=report.total,
            processed=report.processed,
            skipped=report.skipped,
            overflowed=report.overflowed,
            fallback_fills=report.fallback_fills,
            time_ms=rd.now_ms() - t0,
            annotations=[Annotation(**r.to_dict()) for r in session.regions],
        )

        if options.return_base64 and session.surface is not None:
            data.output_image_base64 = base64.b64encode(session.surface.encode(".png")).decode("utf-8")
            name = os.path.splitext(filename or "")[0] or f"drawing_{uuid.uuid4().hex[:8]}"
            data.output_filename = f"{name}.translated.png"
        return data

    async def translate_image(
        self,
        image_bytes: bytes,
        options: ReconstructOptions,
        filename: Optional[str] = None
    ) -> TranslateResultData:
        """
        Analyze a drawing with Gemini and rebuild it with translated text.

        Args:
            image_bytes: Raw image bytes
            options: Reconstruction options
            filename: Optional original filename

        Returns:
            TranslateResultData with processing results

        Raises:
            SurfaceUnavailableError: the image cannot be decoded
        """
        try:
            annotator = self._get_annotator()
        except AnnotationError as e:
            logger.error(f"Annotator unavailable: {e}")
            return TranslateResultData(stage=ProcessingStage.ERROR, reason=str(e))
        return await self._run(image_bytes, options, annotator, filename)

    async def reconstruct_image(
        self,
        image_bytes: bytes,
        annotations: Sequence[Annotation],
        options: ReconstructOptions,
    ) -> TranslateResultData:
        """Rebuild a drawing from caller-supplied annotations (no external call)."""
        regions = [rd.AnnotatedRegion.from_dict(a.model_dump(by_alias=True)) for a in annotations]
        return await self._run(image_bytes, options, StaticAnnotator(regions))

    async def translate_image_from_url(
        self,
        image_url: str,
        options: ReconstructOptions
    ) -> TranslateResultData:
        """
        Download a drawing from URL and translate.

        Args:
            image_url: URL of the image
            options: Reconstruction options

        Returns:
            TranslateResultData with processing results
        """
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.get(image_url)
            response.raise_for_status()
            image_bytes = response.content

        # Extract filename from URL
        filename = image_url.split("/")[-1].split("?")[0]
        if not filename or "." not in filename:
            filename = f"drawing_{uuid.uuid4().hex[:8]}.png"

        return await self.translate_image(image_bytes, options, filename)


# Singleton accessor
def get_translate_service() -> TranslateService:
    """Get singleton TranslateService instance."""
    return TranslateService()
