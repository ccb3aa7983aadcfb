"""Image endpoint.

Serves files from the configured images directory so that markdown image
links produced by tools (``/api/images/painting.png``) resolve.
"""

import logging
from pathlib import Path, PurePosixPath, PureWindowsPath

from starlette.requests import Request
from starlette.responses import FileResponse, JSONResponse, Response
from starlette.routing import Route

logger = logging.getLogger(__name__)

IMAGE_CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
}


def is_safe_filename(filename: str) -> bool:
    """True if filename is a bare file name with no directory parts."""
    if filename in ("", ".", ".."):
        return False
    return (
        PurePosixPath(filename).name == filename
        and PureWindowsPath(filename).name == filename
    )


def content_type_for(path: Path) -> str:
    return IMAGE_CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")


async def get_image(request: Request) -> Response:
    """Serve one file from the images directory."""
    filename = request.path_params["filename"]
    if not is_safe_filename(filename):
        logger.warning(f"Rejected image request for {filename!r}")
        return JSONResponse({"error": f"Invalid image name: {filename}"}, status_code=400)

    path = Path(request.app.state.config.images_dir) / filename
    if not path.is_file():
        return JSONResponse({"error": f"Image not found: {filename}"}, status_code=404)

    return FileResponse(path, media_type=content_type_for(path))


image_routes = [
    Route("/{filename}", get_image, methods=["GET"]),
]
