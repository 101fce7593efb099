from __future__ import annotations

import csv
import hashlib
import io
import json
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Protocol

import httpx
from fastapi import Depends
from sqlalchemy.orm import Session

from apuracao.core.config import settings
from apuracao.core.database import get_db
from apuracao.core.errors import ExternalRenderFailure, StorageFailure
from apuracao.core.logging_config import get_logger
from apuracao.models.obligation import Obligation
from apuracao.models.tax_calculation import TaxCalculation
from apuracao.schemas.calculation import TaxCalculationOut
from apuracao.schemas.ledger import Period, TaxLedgerOut
from apuracao.schemas.obligation import ObligationOut
from apuracao.services.calculation import list_calculations
from apuracao.services.ledger import list_ledgers
from apuracao.services.storage import ObjectStorage, get_storage, object_key

logger = get_logger("render")

MIME_TYPES = {"csv": "text/csv", "json": "application/json"}


@dataclass(frozen=True)
class RenderRequest:
    obligation_id: int
    file_type: str
    format: str
    request_id: str

    def payload(self) -> dict:
        return {"obligationId": self.obligation_id, "fileType": self.file_type, "format": self.format}


@dataclass(frozen=True)
class RenderedFile:
    file_path: str
    file_type: str
    format: str
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    hash_sha256: Optional[str] = None


class Renderer(Protocol):
    def render(self, request: RenderRequest) -> RenderedFile: ...


def build_file_name(file_type: str, period: Period, fmt: str) -> str:
    return f"{file_type}_{period.year}_{period.month:02d}.{fmt}"


# =============================================================================
# Função remota
# =============================================================================


class HttpRenderClient:
    """Chama a função remota de geração; timeout e erro de transporte viram ExternalRenderFailure."""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        headers: Optional[dict] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.transport = transport
        self.headers = headers or {}

    def render(self, request: RenderRequest) -> RenderedFile:
        headers = {**self.headers, "Idempotency-Key": request.request_id}
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                r = client.post(self.url, json=request.payload(), headers=headers)
        except httpx.TimeoutException as e:
            raise ExternalRenderFailure(
                f"Tempo esgotado ao gerar arquivo ({self.timeout:.0f}s).", timed_out=True
            ) from e
        except httpx.HTTPError as e:
            raise ExternalRenderFailure(f"Falha ao chamar função de geração: {e}") from e

        try:
            data = r.json()
        except ValueError as e:
            raise ExternalRenderFailure(f"Resposta inválida da função de geração (HTTP {r.status_code}).") from e

        if not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            raise ExternalRenderFailure(str(error) if error else f"Função de geração retornou erro (HTTP {r.status_code}).")

        file = data.get("file") or {}
        if not isinstance(file, dict):
            raise ExternalRenderFailure("Função de geração retornou arquivo em formato inválido.")
        if not file.get("file_path") or not isinstance(file["file_path"], str):
            raise ExternalRenderFailure("Função de geração não informou o caminho do arquivo.")
        size_bytes = file.get("size_bytes")
        if size_bytes is not None and (not isinstance(size_bytes, int) or isinstance(size_bytes, bool)):
            raise ExternalRenderFailure("Função de geração informou tamanho de arquivo inválido.")

        return RenderedFile(
            file_path=file["file_path"],
            file_type=file.get("file_type") or request.file_type,
            format=request.format,
            file_name=file.get("file_name"),
            mime_type=file.get("mime_type"),
            size_bytes=size_bytes,
            hash_sha256=file.get("hash_sha256"),
        )


# =============================================================================
# Gerador local
# =============================================================================


def _money(value) -> str:
    if value is None:
        return "0.00"
    return f"{Decimal(str(value)):.2f}"


def _date_br(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")


def _tax_details(calc: TaxCalculation) -> str:
    result = calc.result if isinstance(calc.result, dict) else {}
    taxes = result.get("taxes") or []
    return "; ".join(
        f"{t.get('tax_type')}: {_money(t.get('amount'))}" for t in taxes if isinstance(t, dict)
    )


def _total_tax(calc: TaxCalculation) -> str:
    result = calc.result if isinstance(calc.result, dict) else {}
    return _money(result.get("total_tax"))


def _csv(rows: Iterable[list]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def tax_summary_csv(obligation: Obligation, calculations: list, ledgers: list) -> str:
    kind_name = obligation.kind.name if obligation.kind is not None else "Obrigação"
    rows: list[list] = [
        [f"Resumo Fiscal - {kind_name}"],
        [f"Período: {obligation.period_month}/{obligation.period_year}"],
        [],
        ["RESUMO DE IMPOSTOS"],
        ["Tipo", "Total Débitos", "Total Créditos", "Saldo Devedor"],
    ]
    for ledger in ledgers:
        rows.append([
            ledger.tax_type.name if ledger.tax_type is not None else "N/A",
            _money(ledger.total_debits),
            _money(ledger.total_credits),
            _money(ledger.balance_due),
        ])

    rows += [[], ["CÁLCULOS DO PERÍODO"], ["Data", "Operação", "Valor Base", "Total Impostos", "Detalhes"]]
    for calc in calculations:
        rows.append([
            _date_br(calc.calculated_at),
            calc.operation,
            _money(calc.amount),
            _total_tax(calc),
            _tax_details(calc),
        ])
    return _csv(rows)


def tax_calculations_csv(calculations: list) -> str:
    rows: list[list] = [
        ["CÁLCULOS DE IMPOSTOS"],
        [
            "Data", "ID", "Operação", "Regime", "Classificação", "Valor Base",
            "UF Origem", "UF Destino", "Total Impostos", "Status", "Observações",
        ],
    ]
    for calc in calculations:
        rows.append([
            _date_br(calc.calculated_at),
            calc.id,
            calc.operation,
            calc.regime.name if calc.regime is not None else "N/A",
            calc.classification.description if calc.classification is not None else "N/A",
            _money(calc.amount),
            calc.origin_uf or "N/A",
            calc.destination_uf or "N/A",
            _total_tax(calc),
            "Calculado",
            calc.notes or "",
        ])
    return _csv(rows)


def generic_csv(obligation: Obligation, calculations: list, ledgers: list, generated_at: datetime) -> str:
    kind_name = obligation.kind.name if obligation.kind is not None else "N/A"
    rows: list[list] = [
        ["DADOS FISCAIS - EXPORTAÇÃO COMPLETA"],
        [f"Obrigação: {kind_name}"],
        [f"Período: {obligation.period_month}/{obligation.period_year}"],
        [f"Status: {obligation.status}"],
        [],
        ["Resumo:"],
        [f"- Total de Cálculos: {len(calculations)}"],
        [f"- Total de Livros Fiscais: {len(ledgers)}"],
        [],
        [f"Gerado em: {generated_at.strftime('%d/%m/%Y %H:%M:%S')}"],
    ]
    return _csv(rows)


class LocalRenderer:
    """Gera o arquivo da obrigação no próprio processo e grava no bucket."""

    def __init__(self, db: Session, storage: ObjectStorage) -> None:
        self.db = db
        self.storage = storage

    def render(self, request: RenderRequest) -> RenderedFile:
        obligation = self.db.query(Obligation).filter(Obligation.id == request.obligation_id).first()
        if obligation is None:
            raise ExternalRenderFailure("Obrigação não encontrada.")

        period = Period(month=obligation.period_month, year=obligation.period_year)
        calculations = list_calculations(self.db, period)
        ledgers = list_ledgers(self.db, period)
        generated_at = datetime.utcnow()

        if request.format == "csv":
            if request.file_type == "TAX_SUMMARY":
                content = tax_summary_csv(obligation, calculations, ledgers)
            elif request.file_type == "TAX_CALCULATIONS":
                content = tax_calculations_csv(calculations)
            else:
                content = generic_csv(obligation, calculations, ledgers, generated_at)
        elif request.format == "json":
            content = json.dumps(
                {
                    "obligation": ObligationOut.model_validate(obligation).model_dump(mode="json"),
                    "calculations": [
                        TaxCalculationOut.model_validate(c).model_dump(mode="json") for c in calculations
                    ],
                    "ledgers": [TaxLedgerOut.model_validate(l).model_dump(mode="json") for l in ledgers],
                    "generatedAt": generated_at.isoformat(),
                    "requestId": request.request_id,
                },
                indent=2,
                ensure_ascii=False,
            )
        else:
            raise ExternalRenderFailure(f"Formato não suportado: {request.format}")

        data = content.encode("utf-8")
        file_name = build_file_name(request.file_type, period, request.format)
        key = object_key(obligation.id, request.request_id, file_name)
        mime_type = MIME_TYPES[request.format]

        try:
            self.storage.put(key, data, content_type=mime_type)
        except StorageFailure as e:
            raise ExternalRenderFailure(f"Falha ao gravar arquivo: {e.message}") from e

        logger.info(
            "obligation_file_rendered",
            extra={"obligation_id": obligation.id, "file_path": key, "size_bytes": len(data)},
        )
        return RenderedFile(
            file_path=key,
            file_type=request.file_type,
            format=request.format,
            file_name=file_name,
            mime_type=mime_type,
            size_bytes=len(data),
            hash_sha256=hashlib.sha256(data).hexdigest(),
        )


def get_renderer(
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
) -> Renderer:
    if settings.RENDER_FUNCTION_URL:
        return HttpRenderClient(settings.RENDER_FUNCTION_URL, timeout=settings.RENDER_TIMEOUT_SECONDS)
    return LocalRenderer(db, storage)
