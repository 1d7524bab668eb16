"""Pydantic schemas for Firestore documents."""

from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .codec import parse_timestamp, unwrap_fields, wrap_fields
from .utils import path_segments, strip_base_path


class Document(BaseModel):
    """A Firestore document as returned by the REST API.

    ``fields`` keeps the wire representation; use :attr:`obj` for native
    Python values.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, description="Full resource name of the document.")
    fields: Dict[str, Any] = Field(default_factory=dict, description="Wire-encoded document fields.")
    create_time: Optional[str] = Field(None, alias="createTime", description="Creation timestamp.")
    update_time: Optional[str] = Field(None, alias="updateTime", description="Last update timestamp.")
    read_time: Optional[str] = Field(None, alias="readTime", description="Time the document was read.")

    @property
    def path(self) -> Optional[str]:
        """Document path relative to the database's documents root."""
        if not self.name:
            return None
        return strip_base_path(self.name, "")

    @property
    def id(self) -> Optional[str]:
        if not self.name:
            return None
        parts = path_segments(self.name)
        return parts[-1] if parts else None

    @property
    def obj(self) -> Dict[str, Any]:
        """Fields unwrapped into native Python values."""
        return unwrap_fields(self.fields)

    @property
    def created(self) -> Optional[datetime]:
        return parse_timestamp(self.create_time) if self.create_time else None

    @property
    def updated(self) -> Optional[datetime]:
        return parse_timestamp(self.update_time) if self.update_time else None

    @property
    def read(self) -> Optional[datetime]:
        return parse_timestamp(self.read_time) if self.read_time else None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any], read_time: Optional[str] = None) -> "Document":
        """Build a Document from a REST ``Document`` payload.

        Args:
            payload: Decoded JSON document (``name``, ``fields``, ``createTime``...)
            read_time: Read time reported alongside the document, if any

        Returns:
            Document instance
        """
        data = dict(payload)
        if read_time is not None:
            data["readTime"] = read_time
        return cls.model_validate(data)

    @classmethod
    def from_fields(cls, fields: Optional[Mapping[str, Any]] = None, name: Optional[str] = None) -> "Document":
        """Build a Document from native Python field values."""
        return cls(name=name, fields=wrap_fields(fields))

    def to_api(self) -> Dict[str, Any]:
        """Return the REST payload for writing this document."""
        out: Dict[str, Any] = {"fields": self.fields}
        if self.name:
            out["name"] = self.name
        return out

    def __getitem__(self, key: str) -> Any:
        return self.obj[key]
