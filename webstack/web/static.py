"""
Static file serving on top of the range writer.
"""

import asyncio
import mimetypes
from email.utils import formatdate
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from ..core.exceptions import Error
from ..utils.logging import logger
from .types import HTTPResponse, Request, Writer

INDEX_FILE = 'index.html'


def resolve_static_path(root: Path, relative: str) -> Optional[Path]:
    """
    Map ``relative`` to a regular file under ``root``.

    Returns None when the path does not exist or resolves (through ``..``
    segments or symlinks) to somewhere outside ``root``.
    """
    if '\x00' in relative:
        return None

    candidate = (root / relative.lstrip('/')).resolve()
    if candidate.is_dir():
        # The index file may itself be a symlink, so resolve again
        candidate = (candidate / INDEX_FILE).resolve()

    try:
        candidate.relative_to(root)
    except ValueError:
        logger.warning(f"Refusing static path outside of {root}: {relative!r}")
        return None

    if not candidate.is_file():
        return None
    return candidate


class StaticFiles:
    """HTTP handle serving the files below one directory."""

    def __init__(self, root: str):
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            logger.warning(f"Static root {self.root} is not a directory")

    async def __call__(self, request: Request, writer: Writer) -> HTTPResponse:
        # Path resolution stats the filesystem, keep it off the event loop
        target = await asyncio.get_running_loop().run_in_executor(
            None, resolve_static_path, self.root, request.parameters.get('filepath', ''))
        if target is None:
            raise Error.not_found()

        stat = await aiofiles.os.stat(target)
        content_type = mimetypes.guess_type(target.name)[0] or 'application/octet-stream'
        reader = await aiofiles.open(target, 'rb')
        return HTTPResponse(
            reader=reader,
            content_type=content_type,
            content_length=stat.st_size,
            headers={'Last-Modified': formatdate(stat.st_mtime, usegmt=True)},
        )
