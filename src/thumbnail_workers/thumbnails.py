"""
Image renditions with Pillow.

Each rendition is scaled to a target width, keeps the aspect ratio of the
original and is encoded in the original's format.
"""

import asyncio
import logging
from io import BytesIO
from typing import Iterable, List

from PIL import Image

from database.schemas import RenditionResult
from files_manager.adapters.storage import BaseBlobStore, BlobStoreError
from files_manager.utils.decorators import log_execution_time

logger = logging.getLogger(__name__)

# Formats that cannot carry an alpha channel or a palette
_RGB_ONLY_FORMATS = {'JPEG'}


def rendition_path(source_path: str, width: int) -> str:
    return f"{source_path}_{width}"


@log_execution_time
def render_thumbnail(data: bytes, width: int) -> bytes:
    """Scale image bytes to width pixels wide"""
    with Image.open(BytesIO(data)) as img:
        image_format = img.format or 'PNG'
        height = max(1, round(img.height * width / img.width))
        resized = img.resize((width, height))
        if image_format in _RGB_ONLY_FORMATS and resized.mode not in ('RGB', 'L'):
            resized = resized.convert('RGB')

        buffer = BytesIO()
        resized.save(buffer, format=image_format)
        return buffer.getvalue()


async def generate_rendition(blob_store: BaseBlobStore, source_path: str, data: bytes, width: int) -> RenditionResult:
    """Render and store one width; failures are reported, not raised"""
    path = rendition_path(source_path, width)
    try:
        thumbnail = await asyncio.to_thread(render_thumbnail, data, width)
        await asyncio.to_thread(blob_store.write, path, thumbnail)
    except (OSError, ValueError, BlobStoreError) as e:
        logger.error(f"Thumbnail {width} for {source_path} failed: {e}")
        return RenditionResult(width=width, ok=False, error=str(e))
    return RenditionResult(width=width, ok=True, path=path)


async def generate_renditions(
    blob_store: BaseBlobStore,
    source_path: str,
    data: bytes,
    widths: Iterable[int],
    timeout: float,
) -> List[RenditionResult]:
    """Render every width concurrently under a shared deadline.

    Widths still running at the deadline are cancelled and reported as timed
    out. The result list follows the order of widths.
    """
    tasks = {
        width: asyncio.create_task(generate_rendition(blob_store, source_path, data, width))
        for width in widths
    }
    _, pending = await asyncio.wait(tasks.values(), timeout=timeout)
    for task in pending:
        task.cancel()

    results = []
    for width, task in tasks.items():
        if task in pending:
            logger.error(f"Thumbnail {width} for {source_path} timed out after {timeout}s")
            results.append(RenditionResult(width=width, ok=False, error=f"timed out after {timeout}s"))
        else:
            results.append(task.result())
    return results
