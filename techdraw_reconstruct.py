#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
techdraw_reconstruct.py

Rebuilds a technical drawing with translated text in place of the original labels.

Two passes over the annotated regions:
1) Erase: every region is repainted with a flat background colour sampled from a thin
   border just outside it. Only light pixels are averaged so nearby ruling lines and
   dimension arrows don't smear gray into the fill.
2) Write: the translated text is fitted into the same footprint by searching font sizes
   from max to min and greedily wrapping. Notes and numbered lists are left-aligned,
   short labels are centred.

TECHNICAL regions (dimensions, tolerances, reference codes) and regions whose text did
not change are never touched.

Example:
  python techdraw_reconstruct.py \
    --input "drawings/**/*.png" \
    --outdir out_translated \
    --summary summary.json \
    --annotations annotations/ \
    --min-font-px 9 --max-font-px 16 --padding 1

  # or ask Gemini for the annotations (needs GEMINI_API_KEY)
  python techdraw_reconstruct.py --input sheet.png --outdir out --summary s.json \
    --gemini --target-lang English
"""

from __future__ import annotations

import os
import re
import sys
import json
import glob
import math
import time
import logging
import argparse
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import cv2
from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

# -----------------------------
# Regex / constants
# -----------------------------
CJK_RE = re.compile(r"[\u3000-\u303f\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af\uff00-\uffef]")
LIST_ITEM_RE = re.compile(r"^\s*(?:\d+\.|[-\u2013\u2014\u2022\u00b7*])")
PARAGRAPH_SPLIT_RE = re.compile(r"\r\n|\r|\n")

BOX_SCALE = 1000.0
WHITE: Tuple[int, int, int] = (255, 255, 255)
DEFAULT_TEXT_COLOR: Tuple[int, int, int] = (0x1F, 0x29, 0x37)

RGB = Tuple[int, int, int]
Measure = Callable[[str, int], float]

# -----------------------------
# Errors
# -----------------------------
class SurfaceUnavailableError(RuntimeError):
    """No usable drawing target (missing or undecodable image)."""

# -----------------------------
# Data structures
# -----------------------------
class Category(str, Enum):
    TEXT = "TEXT"
    TECHNICAL = "TECHNICAL"

@dataclass(frozen=True)
class AnnotatedRegion:
    original_text: str
    translated_text: str
    box: Tuple[float, float, float, float]  # ymin, xmin, ymax, xmax on a 0..1000 scale
    category: Category = Category.TEXT

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AnnotatedRegion":
        box = d.get("box_2d", d.get("box"))
        if not isinstance(box, (list, tuple)) or len(box) != 4:
            raise ValueError(f"box_2d must be four numbers, got {box!r}")
        return cls(
            original_text=str(d.get("originalText") or ""),
            translated_text=str(d.get("translatedText") or ""),
            box=tuple(float(v) for v in box),  # type: ignore[arg-type]
            category=Category(str(d["category"]).strip().upper()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalText": self.original_text,
            "translatedText": self.translated_text,
            "box_2d": list(self.box),
            "category": self.category.value,
        }

@dataclass(frozen=True)
class PixelRegion:
    x: float
    y: float
    w: float
    h: float

@dataclass
class ReconstructionConfig:
    min_font_size: int = 9
    max_font_size: int = 16
    padding: float = 1
    # empirical; tuned on light-paper drawings with dark ink
    brightness_threshold: float = 120.0
    sample_thickness: int = 3
    line_height: float = 1.2
    baseline_shift: float = 0.1
    text_color: RGB = DEFAULT_TEXT_COLOR

@dataclass(frozen=True)
class BorderFill:
    color: RGB
    samples: int

@dataclass(frozen=True)
class WhiteFallback:
    color: RGB = WHITE
    samples: int = 0

@dataclass(frozen=True)
class LayoutFit:
    font_size: int
    lines: Tuple[str, ...]

@dataclass(frozen=True)
class LayoutOverflow:
    font_size: int
    lines: Tuple[str, ...]
    wrapped: bool  # False when the raw string is drawn as-is

FillResult = Union[BorderFill, WhiteFallback]
LayoutResult = Union[LayoutFit, LayoutOverflow]

@dataclass
class RegionOutcome:
    index: int
    region: AnnotatedRegion
    pixels: PixelRegion
    fill: Optional[FillResult] = None
    layout: Optional[LayoutResult] = None

@dataclass
class ReconstructionReport:
    total: int = 0
    skipped: int = 0
    outcomes: List[RegionOutcome] = field(default_factory=list)
    time_ms: int = 0

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def overflowed(self) -> int:
        return sum(1 for o in self.outcomes if isinstance(o.layout, LayoutOverflow))

    @property
    def fallback_fills(self) -> int:
        return sum(1 for o in self.outcomes if isinstance(o.fill, WhiteFallback))

@dataclass
class FileResult:
    path: str
    status: str
    reason: str = ""
    regions: int = 0
    processed: int = 0
    skipped: int = 0
    overflowed: int = 0
    out_path: str = ""
    time_ms: int = 0

# -----------------------------
# Basic utils
# -----------------------------
def now_ms() -> int:
    return int(time.time() * 1000)

def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))

def ensure_dir(p: str) -> None:
    os.makedirs(p, exist_ok=True)

def is_image_file(p: str) -> bool:
    ext = os.path.splitext(p)[1].lower()
    return ext in [".jpg", ".jpeg", ".png", ".webp", ".bmp", ".tif", ".tiff"]

def expand_inputs(inputs: List[str]) -> List[str]:
    out: List[str] = []
    for item in inputs:
        item = item.strip()
        if not item:
            continue
        if any(ch in item for ch in ["*", "?", "["]):
            candidates = glob.glob(item, recursive=True)
        else:
            candidates = [item]
        for m in candidates:
            if os.path.isdir(m):
                for root, _, files in os.walk(m):
                    for f in sorted(files):
                        p = os.path.join(root, f)
                        if is_image_file(p):
                            out.append(p)
            elif is_image_file(m):
                out.append(m)

    seen = set()
    uniq = []
    for p in out:
        ap = os.path.abspath(p)
        if ap not in seen:
            uniq.append(p)
            seen.add(ap)
    return uniq

def safe_imread(path: str) -> np.ndarray:
    bgr = cv2.imread(path, cv2.IMREAD_COLOR)
    if bgr is None:
        raise SurfaceUnavailableError(f"Failed to read image: {path}")
    return bgr

def contains_cjk(s: str) -> bool:
    return bool(CJK_RE.search(s or ""))

def round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))

# -----------------------------
# Fonts
# -----------------------------
MONO_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/roboto/mono/RobotoMono-Regular.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationMono-Regular.ttf",
    "/usr/share/fonts/dejavu-sans-mono-fonts/DejaVuSansMono.ttf",
    "/System/Library/Fonts/Menlo.ttc",
    "/System/Library/Fonts/Supplemental/Courier New.ttf",
    "C:/Windows/Fonts/consola.ttf",
]

CJK_FONT_CANDIDATES = [
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/noto-cjk/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/google-noto-cjk/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/truetype/wqy/wqy-microhei.ttc",
    "/usr/share/fonts/truetype/wqy/wqy-zenhei.ttc",
    "/System/Library/Fonts/PingFang.ttc",
    "/System/Library/Fonts/STHeiti Medium.ttc",
    "C:/Windows/Fonts/msyh.ttc",
]

def discover_default_fonts() -> Tuple[List[str], List[str]]:
    mono = [p for p in MONO_FONT_CANDIDATES if os.path.exists(p)]
    cjk = [p for p in CJK_FONT_CANDIDATES if os.path.exists(p)]
    return mono, cjk

class FontManager:
    """
    Resolves a font per (size, text).

    Latin/technical strings prefer the monospace list, strings with CJK characters
    prefer the CJK list. When nothing is installed Pillow's bundled scalable font
    is used so rendering still completes.
    """

    def __init__(self, mono_paths: Sequence[str], cjk_paths: Sequence[str] = ()) -> None:
        self.mono_paths = [p for p in mono_paths if p and os.path.exists(p)]
        self.cjk_paths = [p for p in cjk_paths if p and os.path.exists(p)]
        if not self.mono_paths and not self.cjk_paths:
            logger.warning("No monospace or CJK font found; falling back to Pillow's default font")
        self._cache: Dict[Tuple[str, int], ImageFont.FreeTypeFont] = {}

    @classmethod
    def default(cls, extra_paths: Sequence[str] = ()) -> "FontManager":
        mono, cjk = discover_default_fonts()
        return cls(list(extra_paths) + mono, cjk)

    def _candidates(self, text: str) -> List[str]:
        if contains_cjk(text):
            return self.cjk_paths + self.mono_paths
        return self.mono_paths + self.cjk_paths

    def get(self, size: int, text: str = "") -> ImageFont.FreeTypeFont:
        size = int(max(1, size))
        for fp in self._candidates(text):
            key = (fp, size)
            if key in self._cache:
                return self._cache[key]
            try:
                f = ImageFont.truetype(fp, size=size)
            except OSError as e:
                logger.debug(f"Skipping font {fp}: {e}")
                continue
            self._cache[key] = f
            return f

        key = ("<default>", size)
        if key not in self._cache:
            self._cache[key] = ImageFont.load_default(size=size)
        return self._cache[key]

# -----------------------------
# Surface
# -----------------------------
class Surface:
    """Mutable RGB raster with the handful of operations the two passes need."""

    def __init__(self, image: Image.Image, fonts: Optional[FontManager] = None) -> None:
        if image.mode != "RGB":
            image = image.convert("RGB")
        self.image = image
        self.fonts = fonts or FontManager.default()
        self._draw = ImageDraw.Draw(self.image)

    @classmethod
    def from_bgr(cls, bgr: np.ndarray, fonts: Optional[FontManager] = None) -> "Surface":
        rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
        return cls(Image.fromarray(rgb), fonts)

    @classmethod
    def from_bytes(cls, data: bytes, fonts: Optional[FontManager] = None) -> "Surface":
        bgr = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR) if data else None
        if bgr is None:
            raise SurfaceUnavailableError("Image bytes could not be decoded")
        return cls.from_bgr(bgr, fonts)

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def copy(self) -> "Surface":
        return Surface(self.image.copy(), self.fonts)

    def to_bgr(self) -> np.ndarray:
        return cv2.cvtColor(np.asarray(self.image), cv2.COLOR_RGB2BGR)

    def encode(self, ext: str = ".png") -> bytes:
        ok, buf = cv2.imencode(ext, self.to_bgr())
        if not ok:
            raise RuntimeError(f"Failed to encode surface as {ext}")
        return buf.tobytes()

    def contains(self, x: int, y: int, w: int, h: int) -> bool:
        return w > 0 and h > 0 and x >= 0 and y >= 0 and x + w <= self.width and y + h <= self.height

    def get_block(self, x: int, y: int, w: int, h: int) -> np.ndarray:
        return np.asarray(self.image.crop((x, y, x + w, y + h)))

    def fill_rect(self, x: int, y: int, w: int, h: int, color: RGB) -> None:
        x0 = int(clamp(x, 0, self.width))
        y0 = int(clamp(y, 0, self.height))
        x1 = int(clamp(x + w, 0, self.width))
        y1 = int(clamp(y + h, 0, self.height))
        if x1 <= x0 or y1 <= y0:
            return
        self._draw.rectangle((x0, y0, x1 - 1, y1 - 1), fill=tuple(color))

    def measure_text(self, text: str, size: int) -> float:
        return float(self.fonts.get(size, text).getlength(text))

    def draw_text(self, text: str, xy: Tuple[float, float], size: int, anchor: str = "mm", fill: RGB = DEFAULT_TEXT_COLOR) -> None:
        self._draw.text(xy, text, font=self.fonts.get(size, text), fill=tuple(fill), anchor=anchor)

# -----------------------------
# Geometry
# -----------------------------
def denormalize_box(box: Sequence[float], width: int, height: int) -> PixelRegion:
    """
    Convert a (ymin, xmin, ymax, xmax) box on the 0..1000 scale into pixels.
    Out-of-range values are clamped and an inverted axis is reordered.
    """
    ymin, xmin, ymax, xmax = (clamp(float(v), 0.0, BOX_SCALE) for v in box)
    ymin, ymax = min(ymin, ymax), max(ymin, ymax)
    xmin, xmax = min(xmin, xmax), max(xmin, xmax)
    return PixelRegion(
        x=xmin / BOX_SCALE * width,
        y=ymin / BOX_SCALE * height,
        w=(xmax - xmin) / BOX_SCALE * width,
        h=(ymax - ymin) / BOX_SCALE * height,
    )

def padded_rect(region: PixelRegion, padding: float) -> Tuple[int, int, int, int]:
    rx = max(0, int(math.floor(region.x - padding)))
    ry = max(0, int(math.floor(region.y - padding)))
    rw = int(math.floor(region.w + padding * 2))
    rh = int(math.floor(region.h + padding * 2))
    return rx, ry, rw, rh

def border_strips(rect: Tuple[int, int, int, int], thickness: int) -> List[Tuple[int, int, int, int]]:
    rx, ry, rw, rh = rect
    t = int(thickness)
    return [
        (rx, ry - t, rw, t),   # top
        (rx, ry + rh, rw, t),  # bottom
        (rx - t, ry, t, rh),   # left
        (rx + rw, ry, t, rh),  # right
    ]

# -----------------------------
# Pass 1: erase
# -----------------------------
def estimate_background(surface: Surface, rect: Tuple[int, int, int, int], config: ReconstructionConfig) -> FillResult:
    sums = np.zeros(3, dtype=np.int64)
    count = 0
    for sx, sy, sw, sh in border_strips(rect, config.sample_thickness):
        # strips that leave the surface are dropped whole, never clamped
        if not surface.contains(sx, sy, sw, sh):
            continue
        px = surface.get_block(sx, sy, sw, sh).reshape(-1, 3).astype(np.int64)
        light = px[px.sum(axis=1) / 3.0 > config.brightness_threshold]
        sums += light.sum(axis=0)
        count += int(light.shape[0])

    if count == 0:
        return WhiteFallback()
    color = tuple(round_half_up(float(s) / count) for s in sums)
    return BorderFill(color=color, samples=count)  # type: ignore[arg-type]

def erase_region(surface: Surface, region: PixelRegion, padding: float, config: Optional[ReconstructionConfig] = None) -> FillResult:
    config = config or ReconstructionConfig()
    rect = padded_rect(region, padding)
    fill = estimate_background(surface, rect, config)
    surface.fill_rect(*rect, fill.color)
    return fill

# -----------------------------
# Pass 2: fit + write
# -----------------------------
def is_left_aligned(text: str) -> bool:
    return "\n" in text or "\r" in text or bool(LIST_ITEM_RE.match(text))

def split_paragraphs(text: str) -> List[str]:
    return [p for p in PARAGRAPH_SPLIT_RE.split(text or "") if p.strip()]

def tokenize_for_wrap(paragraph: str) -> Tuple[List[str], str]:
    # no spaces usually means CJK: every character is a break opportunity
    if " " in paragraph:
        return paragraph.split(" "), " "
    return list(paragraph), ""

def wrap_paragraph(paragraph: str, size: int, max_width: float, measure: Measure) -> Optional[List[str]]:
    toks, sep = tokenize_for_wrap(paragraph)
    if not toks:
        return []

    cur = toks[0]
    if measure(cur, size) > max_width:
        return None

    lines: List[str] = []
    for t in toks[1:]:
        trial = cur + sep + t
        if measure(trial, size) <= max_width:
            cur = trial
            continue
        if measure(t, size) > max_width:
            return None
        lines.append(cur)
        cur = t
    lines.append(cur)
    return lines

def wrap_text(text: str, size: int, max_width: float, measure: Measure) -> Optional[List[str]]:
    out: List[str] = []
    for p in split_paragraphs(text):
        wrapped = wrap_paragraph(p, size, max_width, measure)
        if wrapped is None:
            return None
        out.extend(wrapped)
    return out

def try_fit(text: str, size: int, region: PixelRegion, measure: Measure, line_height: float = 1.2) -> Optional[List[str]]:
    lines = wrap_text(text, size, region.w, measure)
    if lines is None:
        return None
    if len(lines) * size * line_height > region.h:
        return None
    return lines

def fit_text(text: str, region: PixelRegion, config: ReconstructionConfig, measure: Measure) -> LayoutResult:
    lo = int(config.min_font_size)
    hi = int(config.max_font_size)
    for size in range(hi, lo - 1, -1):
        lines = try_fit(text, size, region, measure, config.line_height)
        if lines is not None:
            return LayoutFit(font_size=size, lines=tuple(lines))

    lines = wrap_text(text, lo, region.w, measure)
    if lines:
        return LayoutOverflow(font_size=lo, lines=tuple(lines), wrapped=True)
    return LayoutOverflow(font_size=lo, lines=(text,), wrapped=False)

def layout_text(surface: Surface, text: str, region: PixelRegion, config: Optional[ReconstructionConfig] = None) -> LayoutResult:
    config = config or ReconstructionConfig()
    result = fit_text(text, region, config, surface.measure_text)
    if isinstance(result, LayoutOverflow):
        logger.debug(f"Text overflows {region} at {result.font_size}px (wrapped={result.wrapped}): {text!r}")

    left = is_left_aligned(text)
    size = result.font_size
    step = size * config.line_height
    block_h = len(result.lines) * step
    start_y = region.y + (region.h - block_h) / 2 + step / 2
    x = region.x if left else region.x + region.w / 2
    anchor = "lm" if left else "mm"

    for i, line in enumerate(result.lines):
        # middle-anchored glyphs sit slightly low; nudge each line up
        y = start_y + i * step - size * config.baseline_shift
        surface.draw_text(line, (x, y), size, anchor=anchor, fill=config.text_color)
    return result

# -----------------------------
# Pipeline
# -----------------------------
def needs_reconstruction(region: AnnotatedRegion) -> bool:
    if region.category != Category.TEXT:
        return False
    original = (region.original_text or "").strip()
    translated = (region.translated_text or "").strip()
    if not translated:
        return False
    return original != translated

def reconstruct(surface: Optional[Surface], regions: Sequence[AnnotatedRegion], config: Optional[ReconstructionConfig] = None) -> ReconstructionReport:
    """
    Erase every selected region, then draw every translation.

    All erasures run before any text is drawn so overlapping boxes never wipe
    freshly written text. Per-region degradation (white fill, overflowing text)
    is recorded in the report; only a missing surface aborts the run.
    """
    if surface is None:
        raise SurfaceUnavailableError("No drawing surface available for reconstruction")
    config = config or ReconstructionConfig()
    t0 = now_ms()

    report = ReconstructionReport(total=len(regions))
    for i, r in enumerate(regions):
        if not needs_reconstruction(r):
            report.skipped += 1
            continue
        px = denormalize_box(r.box, surface.width, surface.height)
        report.outcomes.append(RegionOutcome(index=i, region=r, pixels=px))

    for o in report.outcomes:
        o.fill = erase_region(surface, o.pixels, config.padding, config)

    for o in report.outcomes:
        o.layout = layout_text(surface, o.region.translated_text, o.pixels, config)

    report.time_ms = now_ms() - t0
    logger.info(
        f"Reconstructed {report.processed}/{report.total} regions "
        f"(skipped={report.skipped}, white_fallback={report.fallback_fills}, "
        f"overflow={report.overflowed}) in {report.time_ms}ms"
    )
    return report

# -----------------------------
# Annotation files
# -----------------------------
def load_annotations(path: str) -> List[AnnotatedRegion]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("annotations", data.get("items", []))
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of annotations")
    return [AnnotatedRegion.from_dict(d) for d in data]

def annotations_path_for(image_path: str, annotations: str) -> str:
    if os.path.isdir(annotations):
        name = os.path.splitext(os.path.basename(image_path))[0]
        return os.path.join(annotations, f"{name}.json")
    return annotations

# -----------------------------
# Core processing
# -----------------------------
def process_one(
    path: str,
    regions: Sequence[AnnotatedRegion],
    config: ReconstructionConfig,
    fonts: FontManager,
    outdir: str,
) -> FileResult:
    t0 = now_ms()
    surface = Surface.from_bgr(safe_imread(path), fonts)

    base = os.path.basename(path)
    name, ext = os.path.splitext(base)
    fr = FileResult(path=path, status="", regions=len(regions))

    report = reconstruct(surface, regions, config)
    fr.processed = report.processed
    fr.skipped = report.skipped
    fr.overflowed = report.overflowed

    if report.processed == 0:
        fr.status = "skipped"
        fr.reason = "nothing_to_translate"
        fr.time_ms = now_ms() - t0
        return fr

    ensure_dir(outdir)
    out_path = os.path.join(outdir, f"{name}.translated{ext if ext else '.png'}")
    cv2.imwrite(out_path, surface.to_bgr())
    fr.out_path = out_path
    fr.status = "processed"
    fr.reason = "ok"
    fr.time_ms = now_ms() - t0
    return fr

# -----------------------------
# CLI
# -----------------------------
def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Replace translated text blocks in technical drawings")

    ap.add_argument("--input", nargs="+", required=True, help="Input files/dirs/globs, e.g. drawings/**/*.png")
    ap.add_argument("--outdir", required=True, help="Output directory")
    ap.add_argument("--summary", required=True, help="Summary JSON path")

    src = ap.add_mutually_exclusive_group(required=True)
    src.add_argument("--annotations", help="Annotation JSON file, or a directory holding <image name>.json files")
    src.add_argument("--gemini", action="store_true", help="Request annotations from Gemini (GEMINI_API_KEY)")
    ap.add_argument("--target-lang", default="English", help="Target language for --gemini")
    ap.add_argument("--gemini-model", default=None, help="Override the Gemini model")

    ap.add_argument("--min-font-px", type=int, default=9, help="Min font px")
    ap.add_argument("--max-font-px", type=int, default=16, help="Max font px")
    ap.add_argument("--padding", type=float, default=1, help="Erase padding around each box (px)")
    ap.add_argument("--brightness-threshold", type=float, default=120.0, help="Border pixels at or below this mean brightness are ignored")
    ap.add_argument("--sample-thickness", type=int, default=3, help="Border sample strip thickness (px)")
    ap.add_argument("--font", action="append", default=[], help="Extra font file to try first (repeatable)")

    ap.add_argument("--skip-existing", action="store_true", help="Skip if output already exists")
    ap.add_argument("--log-level", default="INFO", help="Logging level")
    return ap

def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    files = expand_inputs(args.input)
    if not files:
        print("No input images found.", file=sys.stderr)
        return 2

    config = ReconstructionConfig(
        min_font_size=args.min_font_px,
        max_font_size=args.max_font_px,
        padding=args.padding,
        brightness_threshold=args.brightness_threshold,
        sample_thickness=args.sample_thickness,
    )
    fonts = FontManager.default(args.font)

    annotator = None
    if args.gemini:
        from app.services.gemini_service import get_gemini_annotator
        annotator = get_gemini_annotator(model=args.gemini_model)

    ensure_dir(args.outdir)
    results: List[FileResult] = []
    t_all = now_ms()

    total = len(files)
    for i, p in enumerate(files, start=1):
        base = os.path.basename(p)
        name, ext = os.path.splitext(base)
        out_path = os.path.join(args.outdir, f"{name}.translated{ext if ext else '.png'}")

        print(f"[{i}/{total}] Processing: {p}")
        t0 = now_ms()

        if args.skip_existing and os.path.exists(out_path):
            fr = FileResult(path=p, status="skipped", reason="skip_existing", out_path=out_path, time_ms=now_ms() - t0)
            results.append(fr)
            print(f"  -> SKIP existing: {out_path}")
            continue

        try:
            if annotator is not None:
                with open(p, "rb") as f:
                    regions = annotator.analyze(f.read(), mime_type=guess_mime_type(p), target_lang=args.target_lang)
            else:
                regions = load_annotations(annotations_path_for(p, args.annotations))
            fr = process_one(path=p, regions=regions, config=config, fonts=fonts, outdir=args.outdir)
            results.append(fr)
            print(f"  -> {fr.status.upper()}: {fr.reason}   regions={fr.regions} processed={fr.processed} time={fr.time_ms}ms")
            if fr.out_path:
                print(f"     out={fr.out_path}")
        except Exception as e:
            logger.exception(f"Failed to process {p}")
            fr = FileResult(path=p, status="error", reason=str(e), time_ms=now_ms() - t0)
            results.append(fr)
            print(f"  -> ERROR: {e}")

    summary = {
        "total": len(results),
        "processed": sum(1 for r in results if r.status == "processed"),
        "skipped": sum(1 for r in results if r.status == "skipped"),
        "errors": sum(1 for r in results if r.status == "error"),
        "elapsed_ms": now_ms() - t_all,
        "files": [asdict(r) for r in results],
    }

    summary_dir = os.path.dirname(os.path.abspath(args.summary))
    ensure_dir(summary_dir)
    with open(args.summary, "w", encoding="utf-8") as f:
        json.dump(summary, f, ensure_ascii=False, indent=2)

    print(json.dumps({k: summary[k] for k in ("total", "processed", "skipped", "errors")}, indent=2))
    print(f"Outdir: {os.path.abspath(args.outdir)}")
    print(f"Summary: {os.path.abspath(args.summary)}")
    return 1 if summary["errors"] else 0

def guess_mime_type(path: str) -> str:
    ext = os.path.splitext(path)[1].lower()
    return {
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".webp": "image/webp",
        ".bmp": "image/bmp",
        ".tif": "image/tiff",
        ".tiff": "image/tiff",
    }.get(ext, "image/png")

if __name__ == "__main__":
    sys.exit(main())
