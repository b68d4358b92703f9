"""
Drawing analysis via Gemini.

Sends the drawing to a Gemini vision model and gets back one entry per text block:
original text, translated text, a TEXT/TECHNICAL category and a 0-1000 bounding box.
This is the only network call in the pipeline; reconstruction itself is local.
"""

import asyncio
import json
import logging
import re
import time
from typing import Any, List, Optional

from google import genai
from google.genai import types

from app.config import get_settings
from app.models.translate import TargetLanguage
from techdraw_reconstruct import AnnotatedRegion

logger = logging.getLogger(__name__)


class AnnotationError(RuntimeError):
    """The annotation service could not produce usable regions."""


ANALYSIS_PROMPT = """
You are an expert technical drawing optical character recognition (OCR) and translation engine.

Task:
1. Detect all text blocks in the provided technical drawing.
2. Classify each block into one of two categories:
   - 'TECHNICAL': Pure numbers, measurements (e.g., "R15.5", "ø25.4", "120", "+/-0.1"), geometric symbols, reference codes (e.g., "A-A", "B"), or isolated single letters.
   - 'TEXT': Descriptive words, sentences, titles, notes, technical requirements, and material names (e.g., "Steel", "Section View", "1. Hardness...").
3. Translate the content to {target_lang}:
   - If category is 'TECHNICAL': The 'translatedText' MUST BE IDENTICAL to 'originalText'. Do not translate or alter it.
   - If category is 'TEXT': Translate the text naturally.
     CRITICAL FORMATTING RULE: If the text contains a numbered list (e.g., "1. Condition A 2. Condition B") or multiple specifications, YOU MUST insert a newline character (\\n) between items. Do not merge them into a single paragraph. Keep the translation compact and aligned.
4. Return the bounding box coordinates for each text block using the 0-1000 scale (ymin, xmin, ymax, xmax).
"""

RESPONSE_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "originalText": types.Schema(type=types.Type.STRING),
            "translatedText": types.Schema(type=types.Type.STRING),
            "category": types.Schema(type=types.Type.STRING, enum=["TEXT", "TECHNICAL"]),
            "box_2d": types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(type=types.Type.NUMBER),
                description="Bounding box [ymin, xmin, ymax, xmax] normalized to 1000x1000",
            ),
        },
        required=["originalText", "translatedText", "box_2d", "category"],
    ),
)


JSON_START_RE = re.compile(r"[\[{]")


def _looks_like_payload(value: Any) -> bool:
    # an object, or a list of objects; "[1]" in surrounding prose is not a payload
    if isinstance(value, dict):
        return True
    return isinstance(value, list) and all(isinstance(v, dict) for v in value)


def extract_json(s: str) -> Any:
    """
    Pull the annotation JSON out of a model reply.

    Tries the whole text first, then decodes from each '[' or '{' in order of
    appearance and returns the first object or list of objects found.
    """
    s = (s or "").strip()
    try:
        return json.loads(s)
    except json.JSONDecodeError:
        pass
    decoder = json.JSONDecoder()
    for m in JSON_START_RE.finditer(s):
        try:
            value, _ = decoder.raw_decode(s, m.start())
        except json.JSONDecodeError:
            continue
        if _looks_like_payload(value):
            return value
    raise AnnotationError("Gemini returned non-JSON or unparsable JSON.")


def parse_annotations(data: Any) -> List[AnnotatedRegion]:
    """
    Turn the model's JSON into regions, dropping malformed entries.

    Accepts a bare list or an object wrapping it under "annotations" or "items".
    """
    if isinstance(data, dict):
        data = data.get("annotations", data.get("items", []))
    if not isinstance(data, list):
        raise AnnotationError(f"Expected a list of annotations, got {type(data).__name__}")

    regions: List[AnnotatedRegion] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            logger.warning(f"Dropping annotation #{i}: not an object")
            continue
        try:
            regions.append(AnnotatedRegion.from_dict(item))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Dropping annotation #{i}: {e}")
    return regions


class GeminiAnnotator:
    """
    Gemini-backed drawing annotator.

    Usage:
        annotator = GeminiAnnotator(api_key="...")
        regions = annotator.analyze(png_bytes, mime_type="image/png", target_lang="English")
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash",
        temperature: float = 0.0,
        max_retries: int = 3,
        retry_delay: float = 0.6,
        client: Optional[Any] = None,
    ) -> None:
        if not api_key and client is None:
            raise AnnotationError("API Key is missing. Please set GEMINI_API_KEY.")
        self.model = model
        self.temperature = float(temperature)
        self.max_retries = max(1, int(max_retries))
        self.retry_delay = float(retry_delay)
        self._client = client if client is not None else genai.Client(api_key=api_key)

    def _request(self, image_bytes: bytes, mime_type: str, target_lang: str):
        prompt = ANALYSIS_PROMPT.format(target_lang=target_lang)
        contents = [
            types.Content(
                role="user",
                parts=[
                    types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                    types.Part(text=prompt),
                ],
            )
        ]
        config = types.GenerateContentConfig(
            temperature=self.temperature,
            response_mime_type="application/json",
            response_schema=RESPONSE_SCHEMA,
        )
        return contents, config

    def _parse_response(self, resp: Any) -> List[AnnotatedRegion]:
        text = getattr(resp, "text", None)
        if not text:
            raise AnnotationError("No response from AI model.")
        regions = parse_annotations(extract_json(text))
        logger.info(f"Gemini returned {len(regions)} annotated regions")
        return regions

    def analyze(
        self,
        image_bytes: bytes,
        mime_type: str = "image/png",
        target_lang: str = TargetLanguage.ENGLISH.value,
    ) -> List[AnnotatedRegion]:
        contents, config = self._request(image_bytes, mime_type, _lang_value(target_lang))
        for attempt in range(1, self.max_retries + 1):
            try:
                resp = self._client.models.generate_content(model=self.model, contents=contents, config=config)
                return self._parse_response(resp)
            except Exception as e:
                logger.warning(f"Gemini analysis attempt {attempt}/{self.max_retries} failed: {e}")
                if attempt == self.max_retries:
                    raise AnnotationError(f"Drawing analysis failed: {e}") from e
                time.sleep(self.retry_delay * attempt)
        return []

    async def analyze_async(
        self,
        image_bytes: bytes,
        mime_type: str = "image/png",
        target_lang: str = TargetLanguage.ENGLISH.value,
    ) -> List[AnnotatedRegion]:
        contents, config = self._request(image_bytes, mime_type, _lang_value(target_lang))
        for attempt in range(1, self.max_retries + 1):
            try:
                resp = await self._client.aio.models.generate_content(model=self.model, contents=contents, config=config)
                return self._parse_response(resp)
            except Exception as e:
                logger.warning(f"Gemini analysis attempt {attempt}/{self.max_retries} failed: {e}")
                if attempt == self.max_retries:
                    raise AnnotationError(f"Drawing analysis failed: {e}") from e
                await asyncio.sleep(self.retry_delay * attempt)
        return []


def _lang_value(target_lang: Any) -> str:
    return target_lang.value if isinstance(target_lang, TargetLanguage) else str(target_lang)


# Singleton instance
_annotator: Optional[GeminiAnnotator] = None


def get_gemini_annotator(model: Optional[str] = None) -> GeminiAnnotator:
    """Get (or lazily create) the shared GeminiAnnotator."""
    global _annotator
    if _annotator is None or (model and _annotator.model != model):
        settings = get_settings()
        _annotator = GeminiAnnotator(
            api_key=settings.GEMINI_API_KEY,
            model=model or settings.GEMINI_MODEL,
            max_retries=settings.GEMINI_MAX_RETRIES,
        )
    return _annotator
