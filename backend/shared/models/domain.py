"""
Pydantic v2 domain models for the Acta Verification workflow.
These are the canonical wire/internal representations of gateway data.

The record gateway is not consistent about field names: newer endpoints use
English keys, older ones the portal's legacy Spanish keys. Every model
accepts both through validation aliases, and always serializes with the
English names.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from shared.models.enums import ActaSide, FailureKind


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


# ── Championship ────────────────────────────────────────────────────────
class Championship(DomainModel):
    id: str = Field(validation_alias=_alias("id", "id_campeonato"))
    name: str = Field(default="", validation_alias=_alias("name", "nombre"))
    start_date: Optional[str] = Field(default=None, validation_alias=_alias("start_date", "fecha_inicio"))
    end_date: Optional[str] = Field(default=None, validation_alias=_alias("end_date", "fecha_fin"))
    pending_count: Optional[int] = Field(
        default=None, validation_alias=_alias("pending_count", "cantidad_pendientes")
    )


# ── Acta files and ledger anchor ────────────────────────────────────────
class ActaFile(DomainModel):
    """One scanned page of the acta (front or back)."""
    tag: str = Field(default="", validation_alias=_alias("tag", "tipo"))
    path: str = Field(default="", validation_alias=_alias("path", "ruta"))
    file_hash: Optional[str] = Field(default=None, validation_alias=_alias("file_hash", "hash"))

    @field_validator("tag", mode="before")
    @classmethod
    def normalize_tag(cls, value: Any) -> str:
        return ActaSide.normalize(value or "")

    @field_validator("path", mode="before")
    @classmethod
    def none_path_to_empty(cls, value: Any) -> str:
        return value or ""

    @property
    def has_path(self) -> bool:
        return bool(self.path.strip())


class IntegrityAnchor(DomainModel):
    """Ledger anchoring state. Hash presence is the only anchoring signal."""
    hash: Optional[str] = None
    timestamp: Optional[str] = None

    @field_validator("hash", mode="before")
    @classmethod
    def blank_hash_to_none(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


# ── Match ───────────────────────────────────────────────────────────────
class Match(DomainModel):
    """A single fixture pending acta verification."""
    id: str = Field(validation_alias=_alias("id", "id_partido"))
    date: Optional[str] = Field(default=None, validation_alias=_alias("date", "fecha_encuentro"))
    time: Optional[str] = Field(default=None, validation_alias=_alias("time", "hora_encuentro"))
    court: Optional[str] = Field(default=None, validation_alias=_alias("court", "cancha"))

    team_local: str = Field(default="", validation_alias=_alias("team_local", "equipo_local"))
    team_visitor: str = Field(default="", validation_alias=_alias("team_visitor", "equipo_visitante"))
    logo_local: Optional[str] = Field(default=None, validation_alias=_alias("logo_local"))
    logo_visitor: Optional[str] = Field(default=None, validation_alias=_alias("logo_visitor", "logo_visitante"))

    # None on a side means that team did not present
    score_local: Optional[int] = Field(default=None, validation_alias=_alias("score_local", "goles_local"))
    score_visitor: Optional[int] = Field(
        default=None, validation_alias=_alias("score_visitor", "goles_visitante")
    )

    referee_id: Optional[str] = Field(default=None, validation_alias=_alias("referee_id", "arbitro_id"))
    referee_name: Optional[str] = Field(default=None, validation_alias=_alias("referee_name", "nombre_arbitro"))
    referee_surname: Optional[str] = Field(
        default=None, validation_alias=_alias("referee_surname", "apellido_arbitro")
    )
    poll_worker_id: Optional[str] = Field(default=None, validation_alias=_alias("poll_worker_id", "vocal_id"))
    poll_worker_name: Optional[str] = Field(
        default=None, validation_alias=_alias("poll_worker_name", "nombre_vocal")
    )
    poll_worker_surname: Optional[str] = Field(
        default=None, validation_alias=_alias("poll_worker_surname", "apellido_vocal")
    )

    anchor: IntegrityAnchor = Field(default_factory=IntegrityAnchor)
    files: tuple[ActaFile, ...] = Field(default=(), validation_alias=_alias("files", "actas"))

    @model_validator(mode="before")
    @classmethod
    def collect_anchor(cls, data: Any) -> Any:
        """Fold the flat anchor fields of the wire format into ``anchor``."""
        if not isinstance(data, dict) or "anchor" in data:
            return data
        data = dict(data)
        data["anchor"] = {
            "hash": data.pop("anchor_hash", None) or data.pop("hash_acta", None),
            "timestamp": data.pop("anchor_timestamp", None) or data.pop("fecha_subida_blockchain", None),
        }
        return data

    @field_validator("files", mode="before")
    @classmethod
    def none_files_to_empty(cls, value: Any) -> Any:
        if value is None:
            return ()
        return value


# ── Approval ────────────────────────────────────────────────────────────
class ApprovalOutcome(DomainModel):
    """Result of one approval attempt. ``type`` is set only on failure."""
    ok: bool
    type: Optional[FailureKind] = None
    message: Optional[str] = None
    details: Any = None

    @classmethod
    def success(cls, message: str, details: Any = None) -> "ApprovalOutcome":
        return cls(ok=True, message=message, details=details)

    @classmethod
    def failure(cls, kind: FailureKind, message: Optional[str], details: Any = None) -> "ApprovalOutcome":
        return cls(ok=False, type=kind, message=message, details=details)


class AnchorStatus(DomainModel):
    anchored: bool
    message: str


class ApprovalCheck(DomainModel):
    allowed: bool
    reason: Optional[str] = None
