from __future__ import annotations

import uuid
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy.orm import Session

from apuracao.core.errors import ExternalRenderFailure, InvalidTransition, ObligationConflict
from apuracao.core.logging_config import get_logger
from apuracao.models.obligation import Obligation, ObligationFile, ObligationKind
from apuracao.schemas.obligation import (
    GenerationResult,
    ObligationCreate,
    ObligationFileOut,
    ObligationOut,
)
from apuracao.services.render import RenderRequest, Renderer
from apuracao.services.storage import ObjectStorage

logger = get_logger("obligations")

RASCUNHO = "rascunho"
GERADO = "gerado"
VALIDADO = "validado"
ENVIADO = "enviado"
ERRO = "erro"

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    RASCUNHO: frozenset({GERADO, ERRO}),
    GERADO: frozenset({GERADO, VALIDADO, ERRO}),
    VALIDADO: frozenset({ENVIADO, ERRO}),
    ERRO: frozenset({RASCUNHO}),
    ENVIADO: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def _transition(obligation: Obligation, target: str) -> None:
    if not can_transition(obligation.status, target):
        raise InvalidTransition(obligation.status, target)
    logger.info(
        "obligation_transition",
        extra={"obligation_id": obligation.id, "from": obligation.status, "to": target},
    )
    obligation.status = target


def get_obligation(db: Session, obligation_id: int) -> Obligation:
    obligation = db.query(Obligation).filter(Obligation.id == obligation_id).first()
    if obligation is None:
        raise ValueError("Obligation not found")
    return obligation


def list_obligations(db: Session) -> List[Obligation]:
    return (
        db.query(Obligation)
        .order_by(Obligation.period_year.desc(), Obligation.period_month.desc(), Obligation.id.desc())
        .all()
    )


def create_obligation(db: Session, payload: ObligationCreate) -> Obligation:
    kind = db.query(ObligationKind).filter(ObligationKind.id == payload.obligation_kind_id).first()
    if kind is None:
        raise ValueError("Obligation kind not found")

    existing = (
        db.query(Obligation)
        .filter(
            Obligation.obligation_kind_id == payload.obligation_kind_id,
            Obligation.period_month == payload.period_month,
            Obligation.period_year == payload.period_year,
        )
        .first()
    )
    if existing is not None:
        raise ObligationConflict(
            f"Já existe obrigação {kind.code} para {payload.period_month:02d}/{payload.period_year}."
        )

    obligation = Obligation(
        obligation_kind_id=payload.obligation_kind_id,
        period_month=payload.period_month,
        period_year=payload.period_year,
        status=RASCUNHO,
    )
    db.add(obligation)
    db.commit()
    db.refresh(obligation)
    return obligation


def _generation_failed(
    db: Session,
    obligation_id: int,
    request: RenderRequest,
    message: str,
    timed_out: bool = False,
) -> GenerationResult:
    db.rollback()
    obligation = get_obligation(db, obligation_id)
    _transition(obligation, ERRO)
    obligation.message = message
    obligation.finished_at = datetime.utcnow()
    db.commit()
    db.refresh(obligation)
    logger.warning(
        "obligation_generation_failed",
        extra={
            "obligation_id": obligation.id,
            "request_id": request.request_id,
            "timed_out": timed_out,
            "error": message,
        },
    )
    return GenerationResult(
        success=False,
        obligation=ObligationOut.model_validate(obligation),
        message=message,
    )


def generate_obligation_file(
    db: Session,
    obligation_id: int,
    renderer: Renderer,
    file_type: str = "TAX_SUMMARY",
    fmt: str = "csv",
) -> GenerationResult:
    """
    Gera o arquivo da obrigação (rascunho/gerado -> gerado).

    Falha ou timeout da geração leva a obrigação para ``erro`` com a mensagem;
    cada geração bem-sucedida acrescenta um ObligationFile.
    """
    obligation = get_obligation(db, obligation_id)
    if obligation.status not in (RASCUNHO, GERADO):
        raise InvalidTransition(obligation.status, GERADO)

    request = RenderRequest(
        obligation_id=obligation.id,
        file_type=file_type,
        format=fmt,
        request_id=uuid.uuid4().hex,
    )
    obligation.started_at = datetime.utcnow()
    obligation.finished_at = None
    db.commit()

    try:
        rendered = renderer.render(request)
    except ExternalRenderFailure as e:
        return _generation_failed(db, obligation_id, request, e.message, timed_out=e.timed_out)
    except Exception as e:
        # renderer quebrado não pode deixar a obrigação parada em rascunho
        logger.exception(
            "obligation_renderer_crashed",
            extra={"obligation_id": obligation_id, "request_id": request.request_id},
        )
        return _generation_failed(db, obligation_id, request, f"Erro inesperado na geração do arquivo: {e}")

    file = ObligationFile(
        obligation_id=obligation.id,
        file_path=rendered.file_path,
        file_name=rendered.file_name,
        file_type=rendered.file_type,
        format=rendered.format,
        mime_type=rendered.mime_type,
        size_bytes=rendered.size_bytes,
        hash_sha256=rendered.hash_sha256,
        request_id=request.request_id,
        generated_at=datetime.utcnow(),
    )
    db.add(file)

    _transition(obligation, GERADO)
    obligation.generated_file_path = rendered.file_path
    obligation.finished_at = datetime.utcnow()
    obligation.message = "Arquivo gerado com sucesso"
    db.commit()
    db.refresh(obligation)
    db.refresh(file)

    return GenerationResult(
        success=True,
        obligation=ObligationOut.model_validate(obligation),
        file=ObligationFileOut.model_validate(file),
        message=obligation.message,
    )


def validate_obligation(db: Session, obligation_id: int) -> Obligation:
    obligation = get_obligation(db, obligation_id)
    _transition(obligation, VALIDADO)
    obligation.message = None
    db.commit()
    db.refresh(obligation)
    return obligation


def submit_obligation(db: Session, obligation_id: int, protocol: str) -> Obligation:
    obligation = get_obligation(db, obligation_id)
    _transition(obligation, ENVIADO)
    obligation.protocol = protocol
    obligation.finished_at = datetime.utcnow()
    db.commit()
    db.refresh(obligation)
    return obligation


def fail_obligation(db: Session, obligation_id: int, message: str) -> Obligation:
    obligation = get_obligation(db, obligation_id)
    _transition(obligation, ERRO)
    obligation.message = message
    obligation.finished_at = datetime.utcnow()
    db.commit()
    db.refresh(obligation)
    return obligation


def reset_obligation(db: Session, obligation_id: int) -> Obligation:
    """erro -> rascunho, para tentar gerar de novo. Arquivos anteriores ficam."""
    obligation = get_obligation(db, obligation_id)
    _transition(obligation, RASCUNHO)
    obligation.message = None
    obligation.started_at = None
    obligation.finished_at = None
    db.commit()
    db.refresh(obligation)
    return obligation


# === Arquivos ===


def list_obligation_files(db: Session, obligation_id: int) -> List[ObligationFile]:
    get_obligation(db, obligation_id)
    return (
        db.query(ObligationFile)
        .filter(ObligationFile.obligation_id == obligation_id)
        .order_by(ObligationFile.generated_at.desc(), ObligationFile.id.desc())
        .all()
    )


def get_obligation_file(db: Session, file_id: int) -> ObligationFile:
    file = db.query(ObligationFile).filter(ObligationFile.id == file_id).first()
    if file is None:
        raise ValueError("Obligation file not found")
    return file


def download_obligation_file(db: Session, storage: ObjectStorage, file_id: int) -> tuple[ObligationFile, bytes]:
    file = get_obligation_file(db, file_id)
    return file, storage.get(file.file_path)


def delete_obligation_file(db: Session, storage: ObjectStorage, file_id: int) -> None:
    """Apaga o objeto e depois o registro; se o objeto falhar, o registro fica."""
    file = get_obligation_file(db, file_id)
    file_path = file.file_path
    storage.delete(file_path)

    db.delete(file)
    db.commit()
    logger.info("obligation_file_deleted", extra={"file_id": file_id, "file_path": file_path})
