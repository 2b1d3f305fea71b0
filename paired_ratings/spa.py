"""Static file serving for the built web client"""

from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException


class SPAStaticFiles(StaticFiles):
    """Serve files from the build, falling back to index.html for client routes.

    Paths whose last segment has an extension are treated as assets and 404
    normally when missing.
    """

    async def get_response(self, path: str, scope):
        try:
            return await super().get_response(path, scope)
        except StarletteHTTPException as e:
            if e.status_code != 404 or "." in Path(path).name:
                raise
            return await super().get_response("index.html", scope)


def mount_spa(app: FastAPI, directory: Path) -> bool:
    """Mount the web client at / if it has been built"""
    if not (directory / "index.html").is_file():
        return False
    app.mount("/", SPAStaticFiles(directory=str(directory), html=True), name="spa")
    return True
