"""Adapters over the hosted Supabase database and storage bucket.

Every call made to the platform goes through ``ServiceStore`` or
``AttachmentStore`` so handler code only ever sees ``StoreError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import unquote, urlparse

from .config import Settings
from .errors import DependencyError, StoreError

SEARCH_COLUMNS = (
    "code",
    "cliente",
    "telefono",
    "maquina",
    "descripcion",
    "material",
    "agente",
    "almacen",
)
ORDER_FIELDS = ("created_at", "fecha", "code", "cliente")
# Characters with meaning inside a PostgREST or=(...) expression.
_OR_RESERVED = str.maketrans("", "", ",()")


def load_supabase():
    try:
        from supabase import create_client
    except ModuleNotFoundError as exc:
        if exc.name == "supabase":
            raise DependencyError(
                "Missing dependency 'supabase'. Install project dependencies with "
                "'pip install -e .'."
            ) from exc
        raise
    return create_client


def create_data_client(settings: Settings):
    """Client authenticated with the service role key, used for table and bucket calls."""
    create_client = load_supabase()
    return create_client(settings.supabase_url, settings.supabase_service_key)


def create_auth_client(settings: Settings):
    """Client with the public anon key, used only to resolve session tokens."""
    create_client = load_supabase()
    return create_client(settings.supabase_url, settings.supabase_anon_key)


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class ServiceQuery:
    search: str = ""
    equals: Tuple[Tuple[str, Any], ...] = ()
    minimums: Tuple[Tuple[str, Any], ...] = ()
    maximums: Tuple[Tuple[str, Any], ...] = ()
    order_field: str = "created_at"
    ascending: bool = False
    offset: int = 0
    limit: int = 200

    def search_filter(self) -> str:
        term = self.search.translate(_OR_RESERVED).strip()
        if not term:
            return ""
        return ",".join(f"{column}.ilike.%{term}%" for column in SEARCH_COLUMNS)


class ServiceStore:
    def __init__(self, client: Any, table: str = "services") -> None:
        self.client = client
        self.table = table

    def _first(self, builder: Any) -> Optional[Dict[str, Any]]:
        response = builder.limit(1).execute()
        rows = getattr(response, "data", None) or []
        return rows[0] if rows else None

    def find_by_code(self, code: str) -> Optional[Dict[str, Any]]:
        """Exact code match first, then a case-insensitive match."""
        try:
            record = self._first(self.client.table(self.table).select("*").eq("code", code))
            if record is None:
                record = self._first(
                    self.client.table(self.table).select("*").ilike("code", escape_like(code))
                )
        except Exception as exc:
            raise StoreError(f"Error obteniendo servicio: {exc}") from exc
        return record

    def list_services(self, query: ServiceQuery) -> List[Dict[str, Any]]:
        try:
            builder = (
                self.client.table(self.table)
                .select("*")
                .order(query.order_field, desc=not query.ascending)
                .range(query.offset, query.offset + query.limit - 1)
            )
            for column, value in query.equals:
                builder = builder.eq(column, value)
            for column, value in query.minimums:
                builder = builder.gte(column, value)
            for column, value in query.maximums:
                builder = builder.lte(column, value)
            search = query.search_filter()
            if search:
                builder = builder.or_(search)
            response = builder.execute()
        except Exception as exc:
            raise StoreError(f"Error obteniendo servicios: {exc}") from exc
        return list(getattr(response, "data", None) or [])

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.client.table(self.table).insert(row).execute()
        except Exception as exc:
            raise StoreError(f"Error insertando servicio: {exc}") from exc
        rows = getattr(response, "data", None) or []
        if not rows:
            raise StoreError("Error insertando servicio: no row returned")
        return rows[0]

    def update(self, code: str, row: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.client.table(self.table).update(row).eq("code", code).execute()
        except Exception as exc:
            raise StoreError(f"Error actualizando servicio: {exc}") from exc
        rows = getattr(response, "data", None) or []
        if not rows:
            raise StoreError("Error actualizando servicio: no row returned")
        return rows[0]

    def delete_codes(self, codes: Sequence[str]) -> None:
        try:
            self.client.table(self.table).delete().in_("code", list(codes)).execute()
        except Exception as exc:
            raise StoreError(f"Error eliminando servicios: {exc}") from exc


class AttachmentStore:
    def __init__(self, client: Any, bucket: str = "cotizaciones") -> None:
        self.client = client
        self.bucket = bucket

    def _bucket(self) -> Any:
        return self.client.storage.from_(self.bucket)

    def upload(self, path: str, content: bytes, content_type: str) -> str:
        """Upload a new object and return its public URL."""
        try:
            self._bucket().upload(
                path=path,
                file=content,
                file_options={"content-type": content_type or "application/octet-stream", "upsert": "false"},
            )
            return self._bucket().get_public_url(path)
        except Exception as exc:
            raise StoreError(f"Error subiendo cotización: {exc}") from exc

    def remove(self, path: str) -> None:
        # Removing a missing object is not an error on the platform side.
        try:
            self._bucket().remove([path])
        except Exception as exc:
            raise StoreError(f"Error eliminando cotización {path}: {exc}") from exc

    def path_from_url(self, url: Optional[str]) -> Optional[str]:
        """Object path inside the bucket for a public URL issued by ``upload``."""
        if not url:
            return None
        marker = f"/object/public/{self.bucket}/"
        path = urlparse(url).path
        if marker not in path:
            return None
        return unquote(path.split(marker, 1)[1]) or None
