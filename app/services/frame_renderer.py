"""
Frame Renderer - rasterizes substituted HTML/CSS to a fixed-size PNG via headless Chromium.
"""

import base64
import logging
from pathlib import Path
from typing import Optional

from app.config import get_settings
from app.services.browser_session import BrowserSessionManager

logger = logging.getLogger(__name__)


DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html><head><meta charset="utf-8"><style>
{font_faces}
* {{ margin: 0; padding: 0; box-sizing: border-box; }}
html, body {{ width: {width}px; height: {height}px; overflow: hidden; }}
{css}
</style></head>
<body>{html}</body></html>"""


class FrameRenderer:
    """
    Renders one (html, css) pair to a PNG of exactly width x height CSS pixels.

    The output image is width*scale by height*scale device pixels.
    """

    def __init__(
        self,
        browser_manager: BrowserSessionManager,
        fonts_dir: Optional[Path] = None,
    ):
        self.settings = get_settings()
        self.browser_manager = browser_manager
        self.fonts_dir = fonts_dir if fonts_dir is not None else self.settings.get_fonts_dir()
        self._font_css: Optional[str] = None

    def _load_font_css(self) -> str:
        """
        Build @font-face rules with the bundled fonts inlined as data URIs.

        Returns an empty string when no candidate pair is present, in which
        case Chromium's default fonts are used.
        """
        family = self.settings.embedded_font_family
        for regular_name, bold_name in self.settings.font_candidates:
            regular_path = self.fonts_dir / regular_name
            bold_path = self.fonts_dir / bold_name
            if not (regular_path.is_file() and bold_path.is_file()):
                continue

            rules = []
            for path, weight in ((regular_path, 400), (bold_path, 700)):
                encoded = base64.b64encode(path.read_bytes()).decode("ascii")
                rules.append(
                    f"@font-face {{ font-family: '{family}'; font-weight: {weight}; "
                    f"src: url(data:font/ttf;base64,{encoded}) format('truetype'); }}"
                )
            logger.info(f"Using bundled fonts: {regular_name}, {bold_name}")
            return "\n".join(rules)

        logger.warning(f"No bundled fonts found in {self.fonts_dir}, using browser default fonts")
        return ""

    @property
    def font_css(self) -> str:
        if self._font_css is None:
            self._font_css = self._load_font_css()
        return self._font_css

    def build_document(self, html: str, css: str, width: int, height: int) -> str:
        """Wrap body markup and styling in a document pinned to width x height."""
        return DOCUMENT_TEMPLATE.format(
            font_faces=self.font_css,
            width=width,
            height=height,
            css=css,
            html=html,
        )

    async def render(
        self,
        html: str,
        css: str,
        width: int,
        height: int,
        scale: float = 2.0,
    ) -> bytes:
        """
        Rasterize markup to PNG bytes.

        Args:
            html: Final body markup (placeholders already substituted)
            css: Final stylesheet
            width: Canvas width in CSS pixels
            height: Canvas height in CSS pixels
            scale: Device scale factor

        Returns:
            PNG image bytes

        Raises:
            FrameRenderError: On launch, navigation or capture failure
        """
        document = self.build_document(html, css, width, height)

        try:
            browser = await self.browser_manager.acquire()
        except Exception as e:
            raise FrameRenderError(f"Browser launch failed: {e}") from e

        try:
            page = await browser.new_page(
                viewport={"width": width, "height": height},
                device_scale_factor=scale,
            )
        except Exception as e:
            raise FrameRenderError(f"Failed to open page: {e}") from e

        try:
            await page.set_content(
                document,
                wait_until="networkidle",
                timeout=self.settings.browser_navigation_timeout_ms,
            )
            png = await page.screenshot(
                type="png",
                clip={"x": 0, "y": 0, "width": width, "height": height},
            )
        except Exception as e:
            raise FrameRenderError(f"Render failed ({width}x{height}@{scale}x): {e}") from e
        finally:
            try:
                await page.close()
            except Exception as e:
                logger.warning(f"Failed to close page: {e}")

        logger.debug(f"Rendered frame {width}x{height}@{scale}x ({len(png) / 1024:.1f} KB)")
        return png


class FrameRenderError(Exception):
    """Exception raised when rasterization fails."""
    pass
