"""Photo -> printable model (STL) generation.

Tracing is an external automation that can take tens of seconds and is
flaky; callers wrap ``generate`` in their own retry policy.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Protocol

import httpx
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from formfit.core.config import (
    MODEL_GENERATOR,
    MODEL_SERVICE_API_KEY,
    MODEL_SERVICE_TIMEOUT_SECONDS,
    MODEL_SERVICE_URL,
    TOOLTRACE_HEADLESS,
    TOOLTRACE_THICKNESS_MM,
    TOOLTRACE_TIMEOUT_MS,
    TOOLTRACE_URL,
)

logger = logging.getLogger(__name__)


@dataclass
class ModelGenerationResult:
    model_path: str | None
    success: bool
    error: str | None = None


class ModelGenerator(Protocol):
    def generate(self, photo_path: str, output_dir: str) -> ModelGenerationResult:
        ...


class HttpModelGenerator(ModelGenerator):
    """Uploads the photo to the tracing service and saves the STL it returns."""

    def __init__(
        self,
        base_url: str = MODEL_SERVICE_URL,
        *,
        api_key: str = MODEL_SERVICE_API_KEY,
        timeout: float = MODEL_SERVICE_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}

    def generate(self, photo_path: str, output_dir: str) -> ModelGenerationResult:
        image = Path(photo_path).resolve()
        out_dir = Path(output_dir).resolve()

        if not self.base_url:
            return ModelGenerationResult(model_path=None, success=False, error="MODEL_SERVICE_URL not set")
        if not image.exists():
            return ModelGenerationResult(model_path=None, success=False, error=f"Image not found: {image}")

        out_dir.mkdir(parents=True, exist_ok=True)
        target = out_dir / f"{image.stem}_{int(time.time() * 1000)}.stl"

        logger.info("model generation start image=%s", image)
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                with image.open("rb") as fh:
                    response = client.post(
                        f"{self.base_url}/trace",
                        headers=self._headers(),
                        files={"image": (image.name, fh, "image/jpeg")},
                        data={"output": "stl", "mode": "shadow_box"},
                    )
                if response.status_code >= 400:
                    return ModelGenerationResult(
                        model_path=None,
                        success=False,
                        error=f"Model service error {response.status_code}: {response.text[:200]}",
                    )
                if not response.content:
                    return ModelGenerationResult(model_path=None, success=False, error="Model service returned an empty file")
                target.write_bytes(response.content)
        except (httpx.HTTPError, OSError) as exc:
            return ModelGenerationResult(model_path=None, success=False, error=str(exc))

        logger.info("model generated path=%s bytes=%s", target, target.stat().st_size)
        return ModelGenerationResult(model_path=str(target), success=True)


TRACE_READY_SCRIPT = """() => {
    const canvas = document.querySelector('canvas');
    const svgPaths = document.querySelectorAll('svg path');
    const done = document.querySelector('[data-status="complete"], .trace-complete, .outline-ready');
    return (canvas && canvas.width > 0) || svgPaths.length > 2 || done;
}"""

GET_STARTED_SELECTOR = 'button:has-text("Get Started"), a:has-text("Get Started")'
FILE_INPUT_SELECTOR = 'input[type="file"]'
SHADOW_BOX_SELECTOR = (
    'button:has-text("Shadow Box"), label:has-text("Shadow Box"), '
    '[data-type="shadow-box"], [value="shadow-box"], '
    'div:has-text("Shadow Box"):not(:has(div))'
)
THICKNESS_SELECTOR = (
    'input[name="thickness"], input[placeholder*="thickness"], '
    'input[type="number"][aria-label*="thickness"], input[type="range"]'
)
DOWNLOAD_SELECTOR = (
    'button:has-text("Download"), button:has-text("Export"), '
    'a:has-text("Download"), a:has-text("Export STL")'
)
CLICK_TIMEOUT_MS = 15000
DOWNLOAD_TIMEOUT_MS = 30000


class PlaywrightModelGenerator(ModelGenerator):
    """Runs tooltrace.ai in a browser: upload, wait for the trace, pick Shadow Box,
    set the foam thickness and download the STL.

    The site has no API, so the selectors follow its current UI and are the
    first thing to check when generation starts timing out.
    """

    def __init__(
        self,
        url: str = TOOLTRACE_URL,
        *,
        headless: bool = TOOLTRACE_HEADLESS,
        timeout_ms: int = TOOLTRACE_TIMEOUT_MS,
        thickness_mm: str = TOOLTRACE_THICKNESS_MM,
        playwright_factory: Callable[[], Any] = sync_playwright,
    ) -> None:
        self.url = url
        self.headless = headless
        self.timeout_ms = timeout_ms
        self.thickness_mm = thickness_mm
        self._playwright_factory = playwright_factory

    def generate(self, photo_path: str, output_dir: str) -> ModelGenerationResult:
        image = Path(photo_path).resolve()
        out_dir = Path(output_dir).resolve()

        if not image.exists():
            return ModelGenerationResult(model_path=None, success=False, error=f"Image not found: {image}")
        out_dir.mkdir(parents=True, exist_ok=True)
        target = out_dir / f"{int(time.time() * 1000)}.stl"

        logger.info("tooltrace start image=%s", image)
        try:
            with self._playwright_factory() as playwright:
                browser = playwright.chromium.launch(headless=self.headless)
                try:
                    self._run_trace(browser, image, target)
                finally:
                    browser.close()
        except PlaywrightError as exc:
            logger.warning("tooltrace failed image=%s: %s", image, exc)
            target.unlink(missing_ok=True)
            return ModelGenerationResult(model_path=None, success=False, error=str(exc))

        logger.info("tooltrace saved %s", target)
        return ModelGenerationResult(model_path=str(target), success=True)

    def _run_trace(self, browser: Any, image: Path, target: Path) -> None:
        context = browser.new_context(accept_downloads=True)
        page = context.new_page()
        page.set_default_timeout(self.timeout_ms)

        page.goto(self.url, wait_until="networkidle")
        page.locator(GET_STARTED_SELECTOR).first.click(timeout=CLICK_TIMEOUT_MS)
        page.wait_for_timeout(2000)

        logger.info("tooltrace uploading %s", image.name)
        page.locator(FILE_INPUT_SELECTOR).first.set_input_files(str(image))
        page.wait_for_function(TRACE_READY_SCRIPT, timeout=self.timeout_ms, polling=2000)

        page.locator(SHADOW_BOX_SELECTOR).first.click(timeout=CLICK_TIMEOUT_MS)
        page.wait_for_timeout(1000)
        page.locator(THICKNESS_SELECTOR).first.fill(self.thickness_mm)
        page.wait_for_timeout(500)

        with page.expect_download(timeout=DOWNLOAD_TIMEOUT_MS) as download_info:
            page.locator(DOWNLOAD_SELECTOR).first.click()
        download_info.value.save_as(str(target))


def build_model_generator(kind: str = MODEL_GENERATOR) -> ModelGenerator:
    if kind == "http":
        return HttpModelGenerator()
    if kind != "tooltrace":
        logger.warning("unknown MODEL_GENERATOR %r, using tooltrace", kind)
    return PlaywrightModelGenerator()
