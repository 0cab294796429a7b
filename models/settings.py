"""
Singleton configuration records.

SystemSettings and PrinterConfig each exist exactly once in the local
database. The settings screen replaces them wholesale; the core only reads
the rates (pricing) and the sync block (cloud replication).

Wire format uses the same camelCase keys as the rest of the snapshot
document so a backup file and the cloud copy are interchangeable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Any

from core.pricing import RateConfig

# Prefix of a masked access token in API responses
TOKEN_MASK = "****"


@dataclass
class SyncSettings:
    """Cloud replication settings."""

    enabled: bool = False
    """Whether local changes are mirrored to Dropbox."""

    access_token: str = ""
    """Dropbox bearer token (stored without the "Bearer " prefix)."""

    @property
    def has_credential(self) -> bool:
        return bool(self.access_token.strip())

    @property
    def masked_token(self) -> str:
        """Token as shown to clients: at most its last 4 characters."""
        if not self.access_token:
            return ""
        visible = self.access_token[-4:] if len(self.access_token) > 8 else ""
        return f"{TOKEN_MASK}{visible}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "dropbox": {"accessToken": self.access_token},
        }

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "dropbox": {
                "accessToken": self.masked_token,
                "hasAccessToken": self.has_credential,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncSettings":
        dropbox = data.get("dropbox") or {}
        return cls(
            enabled=bool(data.get("enabled", False)),
            access_token=str(dropbox.get("accessToken") or ""),
        )


@dataclass
class SystemSettings:
    """
    Restaurant-wide settings.

    Rates are percentages (5 means 5%).
    """

    restaurant_name: str = ""
    restaurant_urdu_name: str = ""
    phone: str = ""
    address: str = ""

    tax_rate: float = 0.0
    """GST percentage applied to the discounted subtotal."""

    service_charge_rate: float = 0.0
    """Service charge percentage, dine-in orders only."""

    sync: SyncSettings = field(default_factory=SyncSettings)

    @property
    def rates(self) -> RateConfig:
        """Rate configuration consumed by the pricing calculator."""
        return RateConfig(
            tax_rate_percent=self.tax_rate,
            service_charge_rate_percent=self.service_charge_rate,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "restaurantName": self.restaurant_name,
            "restaurantUrduName": self.restaurant_urdu_name,
            "phone": self.phone,
            "address": self.address,
            "taxRate": self.tax_rate,
            "serviceChargeRate": self.service_charge_rate,
            "sync": self.sync.to_dict(),
        }

    def to_public_dict(self) -> Dict[str, Any]:
        """Same as to_dict() with the access token masked (API responses)."""
        data = self.to_dict()
        data["sync"] = self.sync.to_public_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemSettings":
        return cls(
            restaurant_name=data.get("restaurantName", ""),
            restaurant_urdu_name=data.get("restaurantUrduName", ""),
            phone=data.get("phone", ""),
            address=data.get("address", ""),
            tax_rate=float(data.get("taxRate", 0.0) or 0.0),
            service_charge_rate=float(data.get("serviceChargeRate", 0.0) or 0.0),
            sync=SyncSettings.from_dict(data.get("sync") or {}),
        )


@dataclass
class PrinterConfig:
    """Receipt printer preferences. Only persisted by the core."""

    paper_width: str = "80mm"
    """Either "58mm" or "80mm"."""

    header_text: str = ""
    footer_text: str = "Thank you for your visit!"
    show_logo: bool = True
    auto_print: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "paperWidth": self.paper_width,
            "headerText": self.header_text,
            "footerText": self.footer_text,
            "showLogo": self.show_logo,
            "autoPrint": self.auto_print,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrinterConfig":
        default = cls()
        return cls(
            paper_width=data.get("paperWidth", default.paper_width),
            header_text=data.get("headerText", default.header_text),
            footer_text=data.get("footerText", default.footer_text),
            show_logo=bool(data.get("showLogo", default.show_logo)),
            auto_print=bool(data.get("autoPrint", default.auto_print)),
        )
