# Copyright 2026 Justin Cook
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Turns a mounted render target into a downloadable file.

Two strategies:
  - Image PDF: rasterise at 2x, then place the image on A4 pages, either
    scaled down onto one page (cover letter) or sliced into page-height bands
    (CV).
  - DOCX: walk the preview markup and rebuild it as Word paragraphs, headings
    and lists. Word paginates by itself.

Files are written only once the whole artifact exists in memory.
"""

import io
import os
import re
import math
import base64
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol

from bs4 import BeautifulSoup, Comment, Doctype, NavigableString, Tag
from docx import Document
from docx.shared import Mm, Pt
from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

CAPTURE_PIXEL_RATIO = 2
PAGE_WIDTH_PT, PAGE_HEIGHT_PT = A4
PAGE_TOLERANCE_PT = 1.0

HEADING_LEVELS = {"h1": 0, "h2": 1, "h3": 2, "h4": 3, "h5": 4, "h6": 5}
BLOCK_TAGS = {"p", "h1", "h2", "h3", "h4", "h5", "h6", "ul", "ol", "div", "section", "header", "footer", "article", "img"}


class ExportError(Exception):
    """Base class for export failures shown to the user."""


class RenderTargetNotFound(ExportError):
    """Nothing is mounted under the requested name."""


class CaptureFailed(ExportError):
    """Rasterising the target produced no usable image."""


class PageMode(Enum):
    FIT_TO_PAGE = "fit"      # always one page (cover letter)
    PAGINATE = "paginate"    # one page per band (CV)


class RenderTarget(Protocol):
    def capture(self, pixel_ratio: float) -> Image.Image: ...

    def markup(self) -> str: ...


@dataclass(frozen=True)
class PagePlacement:
    """
    Where the image goes on one page, in points. `top` is the distance from
    the page's top edge to the image's top edge; negative values push the
    image up so a lower band shows.
    """
    x: float
    top: float
    width: float
    height: float


def plan_pages(
    image_width: int,
    image_height: int,
    mode: PageMode,
    page_width: float = PAGE_WIDTH_PT,
    page_height: float = PAGE_HEIGHT_PT,
    tolerance: float = PAGE_TOLERANCE_PT,
) -> List[PagePlacement]:
    """Maps an image onto pages; the image always spans the page width first."""
    if image_width <= 0 or image_height <= 0:
        raise CaptureFailed("The captured image is empty (zero width or height).")

    mapped_height = image_height * page_width / image_width
    if mapped_height <= page_height + tolerance:
        return [PagePlacement(0.0, 0.0, page_width, mapped_height)]

    if mode is PageMode.FIT_TO_PAGE:
        factor = page_height / mapped_height
        width = page_width * factor
        return [PagePlacement((page_width - width) / 2, 0.0, width, page_height)]

    count = math.ceil((mapped_height - tolerance) / page_height)
    return [PagePlacement(0.0, -i * page_height, page_width, mapped_height) for i in range(count)]


def export_filename(label: str, artifact: str, extension: str, today: Optional[date] = None) -> str:
    safe = re.sub(r'[\\/:*?"<>|\x00-\x1f]+', "", label or "").strip() or "draft"
    day = (today or date.today()).isoformat()
    return f"{safe}-{artifact}-{day}.{extension}"


def render_pdf(image: Image.Image, mode: PageMode) -> bytes:
    """Builds the whole PDF in memory."""
    placements = plan_pages(image.width, image.height, mode)
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    reader = ImageReader(image)
    for placement in placements:
        # reportlab's origin is bottom-left
        y = PAGE_HEIGHT_PT - placement.top - placement.height
        pdf.drawImage(reader, placement.x, y, width=placement.width, height=placement.height)
        pdf.showPage()
    pdf.save()
    logger.debug(f"Rendered {len(placements)} PDF page(s) from {image.width}x{image.height} capture")
    return buffer.getvalue()


# --- Markup to DOCX ---

def _clean(text: str) -> str:
    return re.sub(r"\s+", " ", text)


def _add_node(paragraph, node, bold: bool = False, italic: bool = False) -> None:
    if isinstance(node, (Comment, Doctype)):
        return
    if isinstance(node, NavigableString):
        text = _clean(str(node))
        if text.strip():
            run = paragraph.add_run(text)
            run.bold = bold or None
            run.italic = italic or None
    elif isinstance(node, Tag):
        if node.name == "br":
            paragraph.add_run().add_break()
        else:
            _add_runs(
                paragraph,
                node,
                bold=bold or node.name in ("strong", "b"),
                italic=italic or node.name in ("em", "i"),
            )


def _add_runs(paragraph, node, bold: bool = False, italic: bool = False) -> None:
    for child in node.children:
        _add_node(paragraph, child, bold=bold, italic=italic)


def _strip_paragraph(paragraph) -> None:
    runs = paragraph.runs
    if runs:
        runs[0].text = runs[0].text.lstrip()
        runs[-1].text = runs[-1].text.rstrip()


def _add_image(doc, tag: Tag) -> None:
    src = tag.get("src") or ""
    match = re.match(r"data:image/[\w.+-]+;base64,(.*)", src, re.DOTALL)
    if not match:
        logger.debug("Skipping non-inline image in DOCX export")
        return
    try:
        data = base64.b64decode(match.group(1))
        doc.add_picture(io.BytesIO(data), width=Mm(30))
    except Exception as e:
        logger.warning(f"Skipping unreadable inline image: {e}")


def _emit_blocks(doc, node) -> None:
    pending_inline = []

    def flush():
        if not pending_inline:
            return
        p = doc.add_paragraph()
        for item in pending_inline:
            _add_node(p, item)
        _strip_paragraph(p)
        if not p.text.strip():
            p._element.getparent().remove(p._element)
        pending_inline.clear()

    for child in node.children:
        if isinstance(child, Tag) and child.name in BLOCK_TAGS:
            flush()
            name = child.name
            if name in HEADING_LEVELS:
                heading = doc.add_heading(level=HEADING_LEVELS[name])
                _add_runs(heading, child)
                _strip_paragraph(heading)
            elif name == "p":
                p = doc.add_paragraph()
                _add_runs(p, child)
                _strip_paragraph(p)
            elif name in ("ul", "ol"):
                style = "List Bullet" if name == "ul" else "List Number"
                for li in child.find_all("li", recursive=False):
                    p = doc.add_paragraph(style=style)
                    _add_runs(p, li)
                    _strip_paragraph(p)
            elif name == "img":
                _add_image(doc, child)
            else:
                _emit_blocks(doc, child)
        elif isinstance(child, Tag) and child.name in ("style", "script", "title", "head"):
            continue
        elif isinstance(child, (NavigableString, Tag)):
            pending_inline.append(child)
    flush()


def render_docx(markup: str, root_selector: Optional[str] = None, font_name: Optional[str] = None, font_size: Optional[float] = None) -> bytes:
    """Serialises preview markup into a DOCX in memory."""
    soup = BeautifulSoup(markup, "html.parser")
    for junk in soup(["script", "style", "head"]):
        junk.decompose()
    root = soup.select_one(root_selector) if root_selector else None
    if root is None:
        root = soup.body or soup

    doc = Document()
    if font_name or font_size:
        style = doc.styles["Normal"]
        if font_name:
            style.font.name = font_name
        if font_size:
            # preview sizes are CSS px; Word wants points
            style.font.size = Pt(round(float(font_size) * 0.75, 1))

    _emit_blocks(doc, root)
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


class ExportOrchestrator:
    """
    Holds the currently mounted render targets and writes export files.
    Exporting never saves a draft; callers combine the two as they like.
    """

    def __init__(self, output_dir, pixel_ratio: float = CAPTURE_PIXEL_RATIO, today: Callable[[], date] = date.today):
        self.output_dir = Path(output_dir)
        self.pixel_ratio = pixel_ratio
        self.today = today
        self.targets: Dict[str, RenderTarget] = {}

    def mount(self, name: str, target: RenderTarget) -> None:
        self.targets[name] = target

    def unmount(self, name: str) -> None:
        self.targets.pop(name, None)

    def _target(self, name: str) -> RenderTarget:
        target = self.targets.get(name)
        if target is None:
            raise RenderTargetNotFound(f"Could not find the '{name}' preview to export. Open the preview and try again.")
        return target

    def _write(self, filename: str, content: bytes) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / filename
        tmp = path.with_name(path.name + ".tmp")
        try:
            tmp.write_bytes(content)
            os.replace(tmp, path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
        logger.info(f"Exported {path}")
        return path

    def capture(self, name: str) -> Image.Image:
        target = self._target(name)
        try:
            image = target.capture(self.pixel_ratio)
        except ExportError:
            raise
        except Exception as e:
            raise CaptureFailed(f"Failed to capture the '{name}' preview: {e}") from e
        if image is None or image.width == 0 or image.height == 0:
            raise CaptureFailed(f"The '{name}' preview rendered as an empty image; nothing to export.")
        return image

    def export_pdf(self, name: str, label: str, artifact: str, mode: PageMode = PageMode.PAGINATE) -> Path:
        image = self.capture(name)
        content = render_pdf(image, mode)
        return self._write(export_filename(label, artifact, "pdf", self.today()), content)

    def export_docx(self, name: str, label: str, artifact: str, root_selector: Optional[str] = None,
                    font_name: Optional[str] = None, font_size: Optional[float] = None) -> Path:
        target = self._target(name)
        markup = target.markup()
        if not markup or not markup.strip():
            raise CaptureFailed(f"The '{name}' preview has no markup to export.")
        content = render_docx(markup, root_selector=root_selector, font_name=font_name, font_size=font_size)
        return self._write(export_filename(label, artifact, "docx", self.today()), content)
