"""Local whisper.cpp model cache with streaming download.

Models live at <models_dir>/<model_id>. A present file is returned without
any network access; an absent one is fetched from <base_url>/<model_id>
into a ``.part`` file and renamed into place only once every byte announced
by Content-Length has been written.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Callable

import requests
from rich.console import Console

from vidsub.core.config import MODEL_BASE_URL
from vidsub.core.errors import (
    ModelError,
    ModelIOError,
    ModelNetworkError,
    ModelSizeUnknownError,
)
from vidsub.core.models import DownloadProgress, ModelDescriptor

console = Console()

DownloadCallback = Callable[[DownloadProgress], None]

_PART_SUFFIX = ".part"


class ModelStore:
    """Ensures named model artifacts are present in the local cache."""

    def __init__(
        self,
        models_dir: Path,
        base_url: str = MODEL_BASE_URL,
        session: requests.Session | None = None,
        timeout: float = 30.0,
        chunk_size: int = 1 << 20,
    ) -> None:
        self.models_dir = Path(models_dir)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.chunk_size = chunk_size
        self._session = session

    @property
    def session(self) -> requests.Session:
        # Created on first download so cached runs never open a connection pool
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def resolve(self, model_id: str) -> ModelDescriptor:
        """Map a model id to its cache path and check whether it is present."""
        if not model_id or Path(model_id).name != model_id:
            raise ModelError(f"Invalid model name: {model_id!r}")
        local_path = self.models_dir / model_id
        return ModelDescriptor(model_id=model_id, local_path=local_path, present=local_path.is_file())

    def url_for(self, model_id: str) -> str:
        return f"{self.base_url}/{model_id}"

    def ensure(self, model_id: str, on_progress: DownloadCallback | None = None) -> Path:
        """Return the local path of a model, downloading it first if absent.

        Args:
            model_id: Model file name, e.g. "ggml-medium-q8_0.bin".
            on_progress: Called after every written chunk while downloading.

        Returns:
            Path to the model file.

        Raises:
            ModelNetworkError: Request failed, bad status, or truncated body.
            ModelSizeUnknownError: No Content-Length header.
            ModelIOError: Cache directory or file could not be written.
        """
        descriptor = self.resolve(model_id)
        if descriptor.present:
            console.print(f"[dim]Model present:[/dim] {descriptor.local_path}")
            return descriptor.local_path

        console.print(f"[bold]Downloading model:[/bold] {model_id}")
        self._download(self.url_for(model_id), descriptor.local_path, on_progress)
        console.print(f"[green]Model ready:[/green] {descriptor.local_path}")
        return descriptor.local_path

    def list_models(self) -> list[ModelDescriptor]:
        """Cached models, sorted by name. Partial downloads are excluded."""
        if not self.models_dir.is_dir():
            return []
        return [
            ModelDescriptor(model_id=p.name, local_path=p, present=True)
            for p in sorted(self.models_dir.iterdir())
            if p.is_file() and not p.name.endswith(_PART_SUFFIX)
        ]

    def _download(self, url: str, dest: Path, on_progress: DownloadCallback | None) -> None:
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ModelIOError(f"Cannot create model directory {dest.parent}: {e}") from e

        try:
            resp = self.session.get(url, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise ModelNetworkError(f"Request for {url} failed: {e}") from e

        try:
            try:
                resp.raise_for_status()
            except requests.RequestException as e:
                raise ModelNetworkError(f"Request for {url} failed: {e}") from e
            total = _content_length(resp)
            if total is None:
                raise ModelSizeUnknownError(f"Server did not report a size for {url}")
            self._stream_to_file(resp, dest, total, on_progress)
        finally:
            resp.close()

    def _stream_to_file(
        self,
        resp: requests.Response,
        dest: Path,
        total: int,
        on_progress: DownloadCallback | None,
    ) -> None:
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=_PART_SUFFIX, dir=dest.parent)
        except OSError as e:
            raise ModelIOError(f"Cannot create {dest.parent}/{dest.name}{_PART_SUFFIX}: {e}") from e
        tmp_path = Path(tmp_name)

        downloaded = 0
        try:
            with os.fdopen(fd, "wb") as f:
                for chunk in resp.iter_content(chunk_size=self.chunk_size):
                    if not chunk:
                        continue
                    try:
                        f.write(chunk)
                    except OSError as e:
                        raise ModelIOError(f"Failed writing {tmp_path}: {e}") from e
                    downloaded += len(chunk)
                    if on_progress:
                        on_progress(DownloadProgress(bytes_downloaded=downloaded, total_bytes=total))

            if downloaded != total:
                raise ModelNetworkError(f"Download truncated: got {downloaded} of {total} bytes")

            try:
                os.replace(tmp_path, dest)
            except OSError as e:
                raise ModelIOError(f"Cannot move model into place at {dest}: {e}") from e
        except requests.RequestException as e:
            tmp_path.unlink(missing_ok=True)
            raise ModelNetworkError(f"Download interrupted: {e}") from e
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise


def _content_length(resp: requests.Response) -> int | None:
    value = resp.headers.get("Content-Length")
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
