from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol

from apuracao.core.config import settings
from apuracao.core.errors import StorageFailure
from apuracao.core.logging_config import get_logger

logger = get_logger("storage")


class ObjectStorage(Protocol):
    def put(self, key: str, content: bytes, content_type: str | None = None) -> str: ...

    def get(self, key: str) -> bytes: ...

    def delete(self, key: str) -> None: ...


class LocalObjectStorage:
    """
    Bucket em disco: ``<root>/<bucket>/<obligation_id>/<arquivo>``.
    Qualquer falha de E/S vira StorageFailure.
    """

    def __init__(self, root: str | os.PathLike, bucket: str = "fiscal-outputs") -> None:
        self.bucket_dir = Path(root) / bucket

    def _path(self, key: str) -> Path:
        path = (self.bucket_dir / key).resolve()
        if self.bucket_dir.resolve() not in path.parents:
            raise StorageFailure(f"Chave inválida: {key}", key=key)
        return path

    def put(self, key: str, content: bytes, content_type: str | None = None) -> str:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            logger.error("storage_put_failed", extra={"key": key, "error": str(e)})
            raise StorageFailure(f"Falha ao gravar arquivo: {e}", key=key) from e
        return key

    def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except OSError as e:
            logger.error("storage_get_failed", extra={"key": key, "error": str(e)})
            raise StorageFailure(f"Falha ao ler arquivo: {e}", key=key) from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except OSError as e:
            logger.error("storage_delete_failed", extra={"key": key, "error": str(e)})
            raise StorageFailure(f"Falha ao excluir arquivo: {e}", key=key) from e


def object_key(obligation_id: int, request_id: str, file_name: str) -> str:
    # cada geração em sua pasta: novas tentativas não sobrescrevem as anteriores
    return f"{obligation_id}/{request_id}/{file_name}"


def get_storage() -> ObjectStorage:
    return LocalObjectStorage(settings.STORAGE_DIR, settings.STORAGE_BUCKET)
