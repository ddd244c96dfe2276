from __future__ import annotations
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from .layout import default_return_address
from .models import LabelCustomization

@dataclass
class Config:
    db_path: str
    template: str = "5160"
    name_format: str = "office"
    show_to_label: bool = False
    default_tiers: List[str] = field(default_factory=lambda: ["VIP", "Warm", "Cold", "Dormant"])
    correction: Dict[str, Any] = field(default_factory=dict)
    clinic_name: str = ""
    clinic_address: str = ""
    label: Dict[str, Any] = field(default_factory=dict)
    log_level: str = "INFO"

    @property
    def correction_mode(self) -> str:
        """'local' geocodes in-process against the store, 'remote' calls the HTTP service."""
        return str(self.correction.get("mode", "local"))

    def label_customization(self, **overrides: Any) -> LabelCustomization:
        """Label options from the `label` section; the clinic is the default return address."""
        opts: Dict[str, Any] = {"show_to_label": self.show_to_label}
        opts.update(self.label)
        opts.update({k: v for k, v in overrides.items() if v is not None})
        if not opts.get("return_address"):
            opts["return_address"] = default_return_address(self.clinic_name, self.clinic_address)
        return LabelCustomization(**opts)

def load_config(path: str | Path) -> Config:
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    db_path = os.getenv("MAILING_LABELS_DB") or raw["db_path"]
    if not Path(db_path).is_absolute():
        db_path = str(p.parent / db_path)
    correction = dict(raw.get("correction", {}))
    if os.getenv("CORRECTION_SERVICE_URL"):
        correction["base_url"] = os.environ["CORRECTION_SERVICE_URL"]
        correction.setdefault("mode", "remote")
    clinic = dict(raw.get("clinic", {}))
    return Config(
        db_path=db_path,
        template=str(raw.get("template", "5160")),
        name_format=str(raw.get("name_format", "office")),
        show_to_label=bool(raw.get("show_to_label", False)),
        default_tiers=list(raw.get("default_tiers", ["VIP", "Warm", "Cold", "Dormant"])),
        correction=correction,
        clinic_name=os.getenv("CLINIC_NAME") or str(clinic.get("name", "")),
        clinic_address=os.getenv("CLINIC_ADDRESS") or str(clinic.get("address", "")),
        label=dict(raw.get("label", {})),
        log_level=os.getenv("LOG_LEVEL") or str(raw.get("log_level", "INFO")),
    )
