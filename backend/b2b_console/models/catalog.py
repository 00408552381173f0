"""Catalog option models returned by the marketplace collaborator."""

from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


class CatalogOption(BaseModel):
    """One selectable choice for a selection tier."""

    id: str = Field(..., description="Option identifier (may be an encrypted ID)")
    name: str = Field("", description="Display name")
    raw: Dict[str, Any] = Field(default_factory=dict, description="Untyped remote payload")

    @classmethod
    def from_remote(cls, payload: Dict[str, Any], *name_keys: str) -> "CatalogOption":
        """Build an option from a remote dict, taking the first non-empty name key."""
        keys = name_keys or ("name",)
        name = next((str(payload[k]) for k in keys if payload.get(k)), "")
        return cls(id=str(payload["id"]), name=name, raw=payload)


class ProviderOption(CatalogOption):
    """Service provider eligible for the current category/subcategory/filter."""

    phone: Optional[str] = Field(None, description="Contact phone")

    @classmethod
    def from_remote(cls, payload: Dict[str, Any], *name_keys: str) -> "ProviderOption":
        """Provider display name falls back company_name -> name -> 'first last - phone'."""
        phone = payload.get("phone") or ""
        name = payload.get("company_name") or payload.get("name")
        if not name:
            full_name = f"{payload.get('first_name') or ''} {payload.get('last_name') or ''}".strip()
            name = f"{full_name} - {phone or 'No Phone'}"
        return cls(id=str(payload["id"]), name=name, phone=phone or None, raw=payload)
