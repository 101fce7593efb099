# apuracao/api/obligations.py

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from apuracao.core.database import get_db
from apuracao.core.errors import InvalidTransition, ObligationConflict, StorageFailure
from apuracao.schemas.obligation import (
    FailInput,
    GenerateFileInput,
    GenerationResult,
    ObligationCreate,
    ObligationFileOut,
    ObligationOut,
    SubmitInput,
)
from apuracao.services import obligations as service
from apuracao.services.render import Renderer, get_renderer
from apuracao.services.storage import ObjectStorage, get_storage

router = APIRouter(prefix="/obligations", tags=["obrigações"])


def _not_found(e: ValueError) -> HTTPException:
    msg = str(e).lower()
    if "kind" in msg:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tipo de obrigação não encontrado.")
    if "file" in msg:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Arquivo não encontrado.")
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Obrigação não encontrada.")


def _conflict(e: InvalidTransition | ObligationConflict) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)


@router.post("/", response_model=ObligationOut, status_code=status.HTTP_201_CREATED)
def create(payload: ObligationCreate, db: Session = Depends(get_db)):
    try:
        return service.create_obligation(db, payload)
    except ValueError as e:
        raise _not_found(e)
    except ObligationConflict as e:
        raise _conflict(e)


@router.get("/", response_model=List[ObligationOut])
def list_all(db: Session = Depends(get_db)):
    return service.list_obligations(db)


@router.get("/{obligation_id}", response_model=ObligationOut)
def get_one(obligation_id: int, db: Session = Depends(get_db)):
    try:
        return service.get_obligation(db, obligation_id)
    except ValueError as e:
        raise _not_found(e)


@router.post("/{obligation_id}/generate", response_model=GenerationResult)
def generate(
    obligation_id: int,
    payload: GenerateFileInput,
    db: Session = Depends(get_db),
    renderer: Renderer = Depends(get_renderer),
):
    """
    Gera o arquivo da obrigação. Se a geração falhar, a obrigação vai
    para "erro" e a resposta volta com success=false.
    """
    try:
        return service.generate_obligation_file(
            db,
            obligation_id,
            renderer,
            file_type=payload.file_type,
            fmt=payload.format,
        )
    except ValueError as e:
        raise _not_found(e)
    except InvalidTransition as e:
        raise _conflict(e)


@router.post("/{obligation_id}/validate", response_model=ObligationOut)
def validate(obligation_id: int, db: Session = Depends(get_db)):
    try:
        return service.validate_obligation(db, obligation_id)
    except ValueError as e:
        raise _not_found(e)
    except InvalidTransition as e:
        raise _conflict(e)


@router.post("/{obligation_id}/submit", response_model=ObligationOut)
def submit(obligation_id: int, payload: SubmitInput, db: Session = Depends(get_db)):
    try:
        return service.submit_obligation(db, obligation_id, payload.protocol)
    except ValueError as e:
        raise _not_found(e)
    except InvalidTransition as e:
        raise _conflict(e)


@router.post("/{obligation_id}/fail", response_model=ObligationOut)
def fail(obligation_id: int, payload: FailInput, db: Session = Depends(get_db)):
    try:
        return service.fail_obligation(db, obligation_id, payload.message)
    except ValueError as e:
        raise _not_found(e)
    except InvalidTransition as e:
        raise _conflict(e)


@router.post("/{obligation_id}/reset", response_model=ObligationOut)
def reset(obligation_id: int, db: Session = Depends(get_db)):
    try:
        return service.reset_obligation(db, obligation_id)
    except ValueError as e:
        raise _not_found(e)
    except InvalidTransition as e:
        raise _conflict(e)


# === Arquivos ===

@router.get("/{obligation_id}/files", response_model=List[ObligationFileOut])
def list_files(obligation_id: int, db: Session = Depends(get_db)):
    try:
        return service.list_obligation_files(db, obligation_id)
    except ValueError as e:
        raise _not_found(e)


@router.get("/files/{file_id}/download")
def download_file(
    file_id: int,
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    try:
        file, content = service.download_obligation_file(db, storage, file_id)
    except ValueError as e:
        raise _not_found(e)
    except StorageFailure as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    filename = file.file_name or file.file_path.rsplit("/", 1)[-1]
    return Response(
        content=content,
        media_type=file.mime_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/files/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(
    file_id: int,
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    try:
        service.delete_obligation_file(db, storage, file_id)
    except ValueError as e:
        raise _not_found(e)
    except StorageFailure as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return None
