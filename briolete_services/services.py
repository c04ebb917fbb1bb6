"""Service record endpoints: list, create, read, update, delete and invoice."""

from __future__ import annotations

import json
import logging
import unicodedata
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, cast
from urllib.parse import quote, unquote

from .auth import AuthGate
from .config import Settings
from .errors import (
    DEFAULT_ERROR_MESSAGE,
    ErrorResponse,
    FontLoadError,
    FormError,
    StoreError,
    error_response,
    handle_error,
)
from .formatting import normalize_time
from .forms import FormData, UploadedFile, parse_form
from .store import ORDER_FIELDS, AttachmentStore, ServiceQuery, ServiceStore
from .validators import (
    MAX_DESCRIPTION_LENGTH,
    parse_money,
    sanitize_string,
    validate_date,
    validate_file,
    validate_material,
    validate_money,
    validate_phone,
    validate_priority,
    validate_status,
    validate_string,
    validate_time,
    ValidationResult,
)

logger = logging.getLogger(__name__)

MAX_CODE_LENGTH = 100
MAX_DELETE_CODES = 100
DEFAULT_LIST_LIMIT = 200
MAX_LIST_LIMIT = 500
QUOTATION_FIELD = "cotizacionFile"

NOT_FOUND_MESSAGE = "Servicio no encontrado"


@dataclass
class ApiResponse:
    status: int
    payload: Optional[Dict[str, Any]] = None
    body: bytes = b""
    content_type: str = "application/json"
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_error(cls, error: ErrorResponse) -> "ApiResponse":
        status, payload = error
        return cls(status, payload)

    def encode(self) -> bytes:
        if self.payload is not None:
            return json.dumps(self.payload, ensure_ascii=False).encode("utf-8")
        return self.body


def _parse_bool(value: str) -> bool:
    return value.strip().lower() == "true"


def _optional_param(params: Mapping[str, str], name: str) -> str:
    value = str(params.get(name) or "").strip()
    if value in ("undefined", "null"):
        return ""
    return value


def _int_param(params: Mapping[str, str], name: str, default: int) -> int:
    raw = str(params.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        return default


@dataclass(frozen=True)
class ServiceForm:
    """Sanitized fields of a create/update submission."""

    cliente: str
    telefono: str
    maquina: str
    fecha: str
    hora: str
    estado: str
    descripcion: str
    material: str
    agente: str
    almacen: str
    prioridad: str
    abono_raw: str
    costo_final_raw: str
    abono_pagado: bool
    costo_final_pagado: bool
    quotation: Optional[UploadedFile] = None

    @classmethod
    def from_form(cls, form: FormData) -> "ServiceForm":
        return cls(
            cliente=sanitize_string(form.get("cliente")),
            telefono=sanitize_string(form.get("telefono")),
            maquina=sanitize_string(form.get("maquina")),
            fecha=form.get("fecha").strip(),
            hora=form.get("hora").strip(),
            estado=form.get("estado").strip(),
            descripcion=sanitize_string(form.get("descripcion"), MAX_DESCRIPTION_LENGTH),
            material=sanitize_string(form.get("material")),
            agente=sanitize_string(form.get("agente")),
            almacen=sanitize_string(form.get("almacen")),
            prioridad=form.get("prioridad").strip(),
            abono_raw=form.get("abono").strip(),
            costo_final_raw=form.get("costo_final").strip(),
            abono_pagado=_parse_bool(form.get("abono_pagado", "false")),
            costo_final_pagado=_parse_bool(form.get("costo_final_pagado", "false")),
            quotation=form.file(QUOTATION_FIELD),
        )

    @property
    def abono(self) -> float:
        amount = parse_money(self.abono_raw)
        return amount if amount is not None else 0

    @property
    def costo_final(self) -> float:
        amount = parse_money(self.costo_final_raw)
        return amount if amount is not None else 0

    def validate(self) -> Optional[str]:
        """Message of the first invalid field, or None when the form is valid."""
        checks: List[Callable[[], ValidationResult]] = [
            lambda: validate_string(self.cliente, "Cliente"),
            lambda: validate_phone(self.telefono),
            lambda: validate_string(self.maquina, "Máquina"),
            lambda: validate_date(self.fecha),
            lambda: validate_time(self.hora),
            lambda: validate_status(self.estado),
            lambda: validate_string(self.descripcion, "Descripción", MAX_DESCRIPTION_LENGTH),
            lambda: validate_material(self.material),
            lambda: validate_string(self.agente, "Agente"),
            lambda: validate_string(self.almacen, "Almacén"),
            lambda: validate_priority(self.prioridad),
            lambda: validate_money(self.abono_raw, "Abono", required=False),
            lambda: validate_money(self.costo_final_raw, "Costo final", required=True),
        ]
        for check in checks:
            result = check()
            if not result.valid:
                return result.error

        if self.abono > self.costo_final:
            return "El abono no puede ser mayor al costo final"

        file_result = validate_file(self.quotation)
        if not file_result.valid:
            return file_result.error
        return None

    def to_row(self, cotizacion_url: Optional[str]) -> Dict[str, Any]:
        return {
            "cliente": self.cliente,
            "telefono": self.telefono,
            "maquina": self.maquina,
            "fecha": self.fecha,
            "hora": normalize_time(self.hora),
            "estado": self.estado,
            "descripcion": self.descripcion,
            "material": self.material,
            "agente": self.agente,
            "almacen": self.almacen,
            "prioridad": self.prioridad,
            "cotizacion_url": cotizacion_url,
            "abono": self.abono,
            "costo_final": self.costo_final,
            "abono_pagado": self.abono_pagado,
            "costo_final_pagado": self.costo_final_pagado,
        }


def build_list_query(params: Mapping[str, str]) -> Tuple[Optional[ServiceQuery], Optional[ErrorResponse]]:
    q = sanitize_string(params.get("q"))
    estado = sanitize_string(params.get("estado"))
    prioridad = sanitize_string(params.get("prioridad"))
    desde = str(params.get("desde") or "").strip()
    hasta = str(params.get("hasta") or "").strip()

    for raw in (desde, hasta):
        if raw:
            result = validate_date(raw)
            if not result.valid:
                return None, error_response(result.error or "Fecha inválida", 400)

    money_filters = (
        ("abono_min", "abono", "Abono mínimo", True),
        ("abono_max", "abono", "Abono máximo", False),
        ("costo_final_min", "costo_final", "Costo final mínimo", True),
        ("costo_final_max", "costo_final", "Costo final máximo", False),
    )
    minimums: List[Tuple[str, Any]] = []
    maximums: List[Tuple[str, Any]] = []
    for param, column, label, is_minimum in money_filters:
        raw = _optional_param(params, param)
        if not raw:
            continue
        result = validate_money(raw, label, required=False)
        if not result.valid:
            return None, error_response(result.error or "Valor inválido", 400)
        (minimums if is_minimum else maximums).append((column, parse_money(raw)))

    equals: List[Tuple[str, Any]] = []
    if estado:
        result = validate_status(estado)
        if not result.valid:
            return None, error_response(result.error or "Estado inválido", 400)
        equals.append(("estado", estado))
    for column in ("maquina", "agente", "almacen"):
        value = sanitize_string(params.get(column))
        if value:
            equals.append((column, value))
    if prioridad:
        result = validate_priority(prioridad)
        if not result.valid:
            return None, error_response(result.error or "Prioridad inválida", 400)
        equals.append(("prioridad", prioridad))
    if desde:
        minimums.append(("fecha", desde))
    if hasta:
        maximums.append(("fecha", hasta))
    for column in ("abono_pagado", "costo_final_pagado"):
        raw = _optional_param(params, column)
        if raw in ("true", "false"):
            equals.append((column, raw == "true"))

    limit = min(max(_int_param(params, "limit", DEFAULT_LIST_LIMIT), 1), MAX_LIST_LIMIT)
    offset = max(_int_param(params, "offset", 0), 0)

    order_field, _, direction = str(params.get("order") or "created_at.desc").partition(".")
    if order_field not in ORDER_FIELDS:
        order_field = "created_at"

    return (
        ServiceQuery(
            search=q,
            equals=tuple(equals),
            minimums=tuple(minimums),
            maximums=tuple(maximums),
            order_field=order_field,
            ascending=direction == "asc",
            offset=offset,
            limit=limit,
        ),
        None,
    )


def content_disposition(filename: str) -> str:
    """Inline disposition with an ASCII fallback name and an RFC 5987 UTF-8 name."""
    folded = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    folded = "".join(ch for ch in folded if ch.isprintable() and ch not in '"\\') or "servicio.pdf"
    if folded == filename:
        return f'inline; filename="{folded}"'
    return f"inline; filename=\"{folded}\"; filename*=UTF-8''{quote(filename, safe='')}"


def parse_code(raw: Optional[str]) -> Tuple[Optional[str], Optional[ErrorResponse]]:
    code = unquote(str(raw or "")).strip()
    if not code:
        return None, error_response("Falta el parámetro code", 400)
    if len(code) > MAX_CODE_LENGTH:
        return None, error_response("Código de servicio inválido", 400)
    return code, None


def parse_delete_codes(body: bytes) -> Tuple[Optional[List[str]], Optional[ErrorResponse]]:
    try:
        payload = json.loads(body.decode("utf-8")) if body else {}
    except (UnicodeDecodeError, json.JSONDecodeError):
        payload = {}
    codes = payload.get("codes") if isinstance(payload, dict) else None
    if not isinstance(codes, list):
        codes = []

    if not codes:
        return None, error_response("No hay códigos para eliminar", 400)
    if len(codes) > MAX_DELETE_CODES:
        return None, error_response(
            f"No se pueden eliminar más de {MAX_DELETE_CODES} servicios a la vez", 400
        )
    if not all(isinstance(code, str) and code.strip() for code in codes):
        return None, error_response("Algunos códigos no son válidos", 400)
    return codes, None


class ServiceHandlers:
    def __init__(
        self,
        settings: Settings,
        gate: AuthGate,
        store: ServiceStore,
        attachments: AttachmentStore,
        clock: Callable[[], datetime] = datetime.now,
        renderer: Optional[Callable[..., bytes]] = None,
    ) -> None:
        self.settings = settings
        self.gate = gate
        self.store = store
        self.attachments = attachments
        self.clock = clock
        self.renderer = renderer

    def _fail(self, exc: BaseException, message: str = DEFAULT_ERROR_MESSAGE) -> ApiResponse:
        return ApiResponse.from_error(handle_error(exc, message, self.settings.is_development))

    def _quotation_path(self, upload: UploadedFile) -> str:
        return f"{self.clock().year}/{uuid.uuid4()}.{upload.extension}"

    def _discard_upload(self, path: str, reason: str) -> None:
        try:
            self.attachments.remove(path)
        except StoreError as exc:
            logger.warning("Could not remove quotation %s after %s: %s", path, reason, exc)

    def _find(self, code: str) -> Optional[Dict[str, Any]]:
        return self.store.find_by_code(code)

    def list_services(self, headers: Mapping[str, str], params: Mapping[str, str]) -> ApiResponse:
        try:
            _, auth_error = self.gate.require_auth(headers)
            if auth_error is not None:
                return ApiResponse.from_error(auth_error)

            query, error = build_list_query(params)
            if error is not None:
                return ApiResponse.from_error(error)
            query = cast(ServiceQuery, query)

            try:
                services = self.store.list_services(query)
            except StoreError as exc:
                return self._fail(exc, "Error obteniendo servicios")
            return ApiResponse(200, {"services": services})
        except Exception as exc:
            return self._fail(exc)

    def create_service(
        self, headers: Mapping[str, str], content_type: Optional[str], body: bytes
    ) -> ApiResponse:
        try:
            _, auth_error = self.gate.require_auth(headers)
            if auth_error is not None:
                return ApiResponse.from_error(auth_error)

            try:
                form = ServiceForm.from_form(parse_form(content_type, body))
            except FormError as exc:
                logger.info("Rejected create form: %s", exc)
                return ApiResponse.from_error(error_response("Formulario inválido", 400))

            message = form.validate()
            if message is not None:
                return ApiResponse.from_error(error_response(message, 400))

            staged_path: Optional[str] = None
            cotizacion_url: Optional[str] = None
            if form.quotation is not None:
                staged_path = self._quotation_path(form.quotation)
                try:
                    cotizacion_url = self.attachments.upload(
                        staged_path, form.quotation.content, form.quotation.content_type
                    )
                except StoreError as exc:
                    return self._fail(exc, "Error subiendo cotización")

            try:
                created = self.store.insert(form.to_row(cotizacion_url))
            except StoreError as exc:
                if staged_path is not None:
                    self._discard_upload(staged_path, "failed insert")
                return self._fail(exc, "Error insertando servicio")

            logger.info("Created service %s", created.get("code"))
            return ApiResponse(201, {"service": created})
        except Exception as exc:
            return self._fail(exc)

    def get_service(self, headers: Mapping[str, str], raw_code: Optional[str]) -> ApiResponse:
        try:
            _, auth_error = self.gate.require_auth(headers)
            if auth_error is not None:
                return ApiResponse.from_error(auth_error)

            code, error = parse_code(raw_code)
            if error is not None:
                return ApiResponse.from_error(error)
            code = cast(str, code)

            record = self._find(code)
            if record is None:
                return ApiResponse.from_error(error_response(NOT_FOUND_MESSAGE, 404))
            return ApiResponse(200, {"service": record})
        except Exception as exc:
            return self._fail(exc)

    def update_service(
        self,
        headers: Mapping[str, str],
        raw_code: Optional[str],
        content_type: Optional[str],
        body: bytes,
    ) -> ApiResponse:
        try:
            _, auth_error = self.gate.require_auth(headers)
            if auth_error is not None:
                return ApiResponse.from_error(auth_error)

            code, error = parse_code(raw_code)
            if error is not None:
                return ApiResponse.from_error(error)
            code = cast(str, code)

            existing = self._find(code)
            if existing is None:
                return ApiResponse.from_error(error_response(NOT_FOUND_MESSAGE, 404))

            try:
                form = ServiceForm.from_form(parse_form(content_type, body))
            except FormError as exc:
                logger.info("Rejected update form for %s: %s", code, exc)
                return ApiResponse.from_error(error_response("Formulario inválido", 400))

            message = form.validate()
            if message is not None:
                return ApiResponse.from_error(error_response(message, 400))

            previous_url = existing.get("cotizacion_url")
            cotizacion_url = previous_url
            staged_path: Optional[str] = None
            if form.quotation is not None:
                staged_path = self._quotation_path(form.quotation)
                try:
                    cotizacion_url = self.attachments.upload(
                        staged_path, form.quotation.content, form.quotation.content_type
                    )
                except StoreError as exc:
                    return self._fail(exc, "Error subiendo cotización")

            try:
                updated = self.store.update(existing["code"], form.to_row(cotizacion_url))
            except StoreError as exc:
                if staged_path is not None:
                    self._discard_upload(staged_path, "failed update")
                return self._fail(exc, "Error actualizando servicio")

            if staged_path is not None and previous_url and previous_url != cotizacion_url:
                previous_path = self.attachments.path_from_url(previous_url)
                if previous_path:
                    self._discard_upload(previous_path, "replacement")

            return ApiResponse(200, {"service": updated})
        except Exception as exc:
            return self._fail(exc)

    def delete_services(self, headers: Mapping[str, str], body: bytes) -> ApiResponse:
        try:
            _, auth_error = self.gate.require_auth(headers)
            if auth_error is not None:
                return ApiResponse.from_error(auth_error)

            codes, error = parse_delete_codes(body)
            if error is not None:
                return ApiResponse.from_error(error)
            codes = cast(List[str], codes)

            try:
                self.store.delete_codes(codes)
            except StoreError as exc:
                return self._fail(exc, "Error eliminando servicios")

            logger.info("Deleted %d service(s)", len(codes))
            return ApiResponse(200, {"ok": True, "deleted": len(codes)})
        except Exception as exc:
            return self._fail(exc)

    def service_invoice(
        self,
        headers: Mapping[str, str],
        raw_code: Optional[str],
        params: Mapping[str, str],
    ) -> ApiResponse:
        try:
            _, auth_error = self.gate.require_auth(headers)
            if auth_error is not None:
                return ApiResponse.from_error(auth_error)

            code, error = parse_code(raw_code)
            if error is not None:
                return ApiResponse.from_error(error)
            code = cast(str, code)

            try:
                record = self._find(code)
            except StoreError as exc:
                return self._fail(exc, "Error obteniendo servicio")
            if record is None:
                return ApiResponse.from_error(error_response(NOT_FOUND_MESSAGE, 404))

            render = self.renderer or _load_renderer()
            try:
                pdf_bytes = render(
                    record,
                    self.settings.font_regular_path,
                    self.settings.font_bold_path,
                    paper=str(params.get("paper") or ""),
                    logo_path=self.settings.logo_path,
                )
            except FontLoadError as exc:
                logger.error("Invoice fonts unavailable: %s", exc)
                payload: Dict[str, Any] = {"error": "Error cargando recursos del PDF"}
                if self.settings.is_development:
                    payload["details"] = str(exc)
                    payload["expected"] = list(exc.expected)
                return ApiResponse(500, payload)

            filename = str(record.get("code") or code)
            return ApiResponse(
                200,
                body=pdf_bytes,
                content_type="application/pdf",
                headers={
                    "Content-Disposition": content_disposition(f"{filename}.pdf"),
                    "Cache-Control": "no-store",
                },
            )
        except Exception as exc:
            return self._fail(exc, "Error generando PDF")


def _load_renderer() -> Callable[..., bytes]:
    from .rendering import render_service_invoice

    return render_service_invoice
