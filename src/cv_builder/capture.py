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
Render targets: things the exporter can rasterise or serialise.

HtmlRenderTarget lays markup out in headless Chromium (Playwright) to measure
it for the fit engine and to screenshot it for image export.
ImageRenderTarget wraps an already rendered image.
"""

import io
import logging
from pathlib import Path
from typing import Optional, Union

from PIL import Image

from cv_builder.fit import A4_HEIGHT_PX, A4_WIDTH_PX

logger = logging.getLogger(__name__)


class CaptureUnavailable(Exception):
    """Playwright (or its Chromium build) is not installed."""


def _empty_image() -> Image.Image:
    return Image.new("RGB", (0, 0))


class HtmlRenderTarget:
    """
    Markup rendered by headless Chromium. `selector` picks the element that is
    measured and captured (the preview root).
    """

    def __init__(self, html: str, selector: str, viewport_width: int = A4_WIDTH_PX, scale: float = 1.0):
        self.html = html
        self.selector = selector
        self.viewport_width = viewport_width
        self.scale = scale

    def markup(self) -> str:
        return self.html

    def _with_page(self, device_scale_factor: float, action):
        try:
            from playwright.sync_api import sync_playwright
        except ImportError as e:
            raise CaptureUnavailable(
                "Playwright is not installed. Install it with:\n"
                "  pip install playwright && python -m playwright install chromium"
            ) from e

        with sync_playwright() as p:
            browser = p.chromium.launch(headless=True)
            try:
                context = browser.new_context(
                    viewport={"width": self.viewport_width, "height": A4_HEIGHT_PX},
                    device_scale_factor=device_scale_factor,
                )
                page = context.new_page()
                page.set_content(self.html, wait_until="networkidle")
                if self.scale != 1.0:
                    # Visual scale only; layout height is what the fit engine measured
                    page.eval_on_selector(
                        self.selector,
                        "(el, s) => { el.style.transformOrigin = 'top left'; el.style.transform = `scale(${s})`; }",
                        self.scale,
                    )
                return action(page)
            finally:
                browser.close()

    def measure_height(self) -> float:
        """Laid-out height of the element in CSS pixels (0 when it is missing)."""
        def measure(page):
            handle = page.query_selector(self.selector)
            if handle is None:
                logger.warning(f"Element '{self.selector}' not found while measuring")
                return 0.0
            box = handle.bounding_box()
            return float(box["height"]) if box else 0.0

        height = self._with_page(1.0, measure)
        logger.debug(f"Measured '{self.selector}' at {height:.1f}px")
        return height

    def capture(self, pixel_ratio: float) -> Image.Image:
        def shoot(page):
            handle = page.query_selector(self.selector)
            if handle is None:
                logger.warning(f"Element '{self.selector}' not found while capturing")
                return _empty_image()
            box = handle.bounding_box()
            if not box or box["width"] <= 0 or box["height"] <= 0:
                return _empty_image()
            png = handle.screenshot(type="png")
            return Image.open(io.BytesIO(png)).convert("RGB")

        return self._with_page(pixel_ratio, shoot)


class ImageRenderTarget:
    """A pre-rendered preview (e.g. a PNG saved from the browser)."""

    def __init__(self, image: Union[Image.Image, str, Path], html: str = "", pixel_ratio: float = 1.0):
        self._image = image
        self.html = html
        self.pixel_ratio = pixel_ratio

    def markup(self) -> str:
        return self.html

    def _load(self) -> Image.Image:
        if isinstance(self._image, Image.Image):
            return self._image
        with Image.open(self._image) as img:
            return img.convert("RGB")

    def capture(self, pixel_ratio: float) -> Image.Image:
        img = self._load()
        factor = pixel_ratio / self.pixel_ratio
        if factor == 1.0 or img.width == 0 or img.height == 0:
            return img
        size = (max(1, round(img.width * factor)), max(1, round(img.height * factor)))
        return img.resize(size, Image.Resampling.LANCZOS)

    def measure_height(self) -> Optional[float]:
        img = self._load()
        return img.height / self.pixel_ratio
