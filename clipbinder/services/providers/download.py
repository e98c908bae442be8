"""Streaming download to an installed file.

Bytes go to ``<dest>.part`` first; the partial file is renamed onto the
destination only after the whole body arrived and passed the byte window.
On any failure, including task cancellation, the partial file is removed,
so an aborted download never leaves a file the index would pick up.
"""

import logging
import os
from pathlib import Path

import httpx

from clipbinder.core.exceptions import ConstraintViolationError, DownloadError
from clipbinder.services.providers.base import ProgressCallback

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def partial_path(dest_path: Path) -> Path:
    """Temporary path used while ``dest_path`` is being written."""
    return dest_path.with_name(dest_path.name + ".part")


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove partial file {path}: {e}")


def _report(on_progress: ProgressCallback | None, percent: float) -> None:
    if on_progress is None:
        return
    try:
        on_progress(min(100.0, max(0.0, percent)))
    except Exception as e:
        logger.warning(f"Progress callback failed: {e}")


async def stream_to_file(
    client: httpx.AsyncClient,
    url: str,
    dest_path: Path,
    *,
    provider: str,
    min_bytes: int = 0,
    max_bytes: int | None = None,
    timeout: float | None = None,
    headers: dict[str, str] | None = None,
    on_progress: ProgressCallback | None = None,
) -> int:
    """Download ``url`` to ``dest_path``.

    Args:
        client: httpx client (or anything with a compatible ``stream``)
        url: Source URL
        dest_path: Final file path
        provider: Provider name for errors
        min_bytes: Reject bodies smaller than this
        max_bytes: Abort as soon as the body exceeds this
        timeout: Per-request timeout
        headers: Extra request headers
        on_progress: Percent callback (only when Content-Length is known)

    Returns:
        Number of bytes written

    Raises:
        ConstraintViolationError: If the body is outside the byte window
        DownloadError: On HTTP/transport/filesystem errors
    """
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    part = partial_path(dest_path)
    written = 0

    kwargs: dict = {}
    if timeout is not None:
        kwargs["timeout"] = timeout
    if headers:
        kwargs["headers"] = headers

    try:
        async with client.stream("GET", url, **kwargs) as response:
            response.raise_for_status()

            total = int(response.headers.get("content-length") or 0) or None
            if total and max_bytes and total > max_bytes:
                raise ConstraintViolationError(
                    [f"size {total} exceeds {max_bytes} bytes"], provider=provider
                )

            _report(on_progress, 0.0)
            with open(part, "wb") as f:
                async for chunk in response.aiter_bytes(chunk_size=CHUNK_SIZE):
                    written += len(chunk)
                    if max_bytes and written > max_bytes:
                        raise ConstraintViolationError(
                            [f"size exceeds {max_bytes} bytes"], provider=provider
                        )
                    f.write(chunk)
                    if total:
                        _report(on_progress, written * 100.0 / total)

        if min_bytes and written < min_bytes:
            raise ConstraintViolationError(
                [f"size {written} below {min_bytes} bytes"], provider=provider
            )

        os.replace(part, dest_path)
        _report(on_progress, 100.0)
        logger.info(f"Downloaded: {dest_path} ({written} bytes)")
        return written

    except httpx.HTTPStatusError as e:
        _remove_quietly(part)
        raise DownloadError(
            f"Download failed with HTTP {e.response.status_code}",
            provider=provider,
            url=url,
            context={"status_code": e.response.status_code},
        ) from e
    except httpx.HTTPError as e:
        _remove_quietly(part)
        raise DownloadError(f"Download failed: {e}", provider=provider, url=url) from e
    except OSError as e:
        _remove_quietly(part)
        raise DownloadError(f"Cannot write {dest_path}: {e}", provider=provider, url=url) from e
    except BaseException:
        _remove_quietly(part)
        raise


def write_atomic(dest_path: Path, data: bytes) -> int:
    """Write ``data`` through a partial file and rename it into place.

    Returns:
        Number of bytes written
    """
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    part = partial_path(dest_path)
    try:
        with open(part, "wb") as f:
            f.write(data)
        os.replace(part, dest_path)
    except BaseException:
        _remove_quietly(part)
        raise
    return len(data)


__all__ = ["partial_path", "stream_to_file", "write_atomic"]
