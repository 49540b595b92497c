"""Merge per-page PDFs or build a PDF from page images, using pypdfium2."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Sequence

import pypdfium2 as pdfium
from PIL import Image

from .errors import AssemblyFailure, MergeReadError, NoContent
from .models import RenderedPage

logger = logging.getLogger("pagegrab.assemble")


def _save_document(document: pdfium.PdfDocument, output: Path) -> None:
    """Write to a sibling ``.part`` file and rename it into place."""
    output.parent.mkdir(parents=True, exist_ok=True)
    partial = output.with_name(output.name + ".part")
    try:
        document.save(str(partial))
        os.replace(partial, output)
    except (pdfium.PdfiumError, OSError) as exc:
        partial.unlink(missing_ok=True)
        raise AssemblyFailure(f"Failed to save PDF to {output}: {exc}") from exc


def merge_pdfs(inputs: Sequence[Path], output: Path) -> Path:
    """Concatenate ``inputs`` page by page, in order, into ``output``.

    Raises :class:`MergeReadError` naming the first input that cannot be
    parsed; nothing is written in that case.
    """
    if not inputs:
        raise NoContent("No input PDFs provided for merge")

    merged = pdfium.PdfDocument.new()
    try:
        for path in inputs:
            try:
                source = pdfium.PdfDocument(str(path))
            except (pdfium.PdfiumError, OSError) as exc:
                raise MergeReadError(path, str(exc)) from exc
            try:
                merged.import_pages(source)
            except pdfium.PdfiumError as exc:
                raise MergeReadError(path, str(exc)) from exc
            finally:
                source.close()
        _save_document(merged, output)
        logger.debug("Merged %d PDFs into %s", len(inputs), output)
    finally:
        merged.close()
    return output


def _flatten(image: Image.Image) -> Image.Image:
    if image.mode == "RGB":
        return image.copy()
    if image.mode in ("RGBA", "LA", "P"):
        rgba = image.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        return Image.alpha_composite(background, rgba).convert("RGB")
    return image.convert("RGB")


def _add_image_page(document: pdfium.PdfDocument, rendered: RenderedPage) -> None:
    try:
        with Image.open(rendered.path) as source:
            image = _flatten(source)
    except OSError as exc:
        raise AssemblyFailure(f"Failed to read image {rendered.path}: {exc}") from exc

    page = document.new_page(rendered.width, rendered.height)
    bitmap = pdfium.PdfBitmap.from_pil(image)
    try:
        image_object = pdfium.PdfImage.new(document)
        image_object.set_bitmap(bitmap)
        image_object.set_matrix(pdfium.PdfMatrix().scale(rendered.width, rendered.height))
        page.insert_obj(image_object)
        page.gen_content()
    finally:
        bitmap.close()
        page.close()


def generate_pdf(pages: Sequence[RenderedPage], output: Path, title: str = "") -> Path:
    """Create one PDF page per image, sized exactly to the image's stored size."""
    if not pages:
        raise NoContent("No images provided for PDF generation")

    document = pdfium.PdfDocument.new()
    try:
        for rendered in pages:
            _add_image_page(document, rendered)
        _save_document(document, output)
    finally:
        document.close()
    logger.debug("Generated %d-page PDF %r at %s", len(pages), title or output.stem, output)
    return output
