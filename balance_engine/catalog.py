"""YAML-backed catalogs of balance templates."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml

logger = logging.getLogger(__name__)

_DATA_PATH = Path(__file__).parent / "data"


class Catalog:
    """Loads the resource, risk, failure and faction templates.

    Entries are kept as plain mappings; each subsystem builds its own typed
    records from the sections it consumes.
    """

    def __init__(self, data_path: Path | None = None) -> None:
        self._path = data_path or _DATA_PATH
        resources = self._load_yaml("resources.yaml")
        risk = self._load_yaml("risk.yaml")
        failures = self._load_yaml("failures.yaml")
        factions = self._load_yaml("factions.yaml")
        self._resource_types = list(resources.get("resource_types", []))
        self._scarcity_events = list(resources.get("scarcity_events", []))
        self._resource_recovery = list(resources.get("resource_recovery", []))
        self._risk_factors = list(risk.get("risk_factors", []))
        self._tradeoffs = list(risk.get("tradeoffs", []))
        self._failure_types = list(failures.get("failure_types", []))
        self._recovery_mechanics = list(failures.get("recovery_mechanics", []))
        self._factions = list(factions.get("factions", []))
        logger.debug("Loaded balance catalogs from %s", self._path)

    def _load_yaml(self, name: str) -> Dict[str, Any]:
        with (self._path / name).open("r", encoding="utf-8") as fh:
            return yaml.safe_load(fh) or {}

    @property
    def path(self) -> Path:
        return self._path

    def resource_types(self) -> List[Dict[str, Any]]:
        return list(self._resource_types)

    def scarcity_events(self) -> List[Dict[str, Any]]:
        return list(self._scarcity_events)

    def resource_recovery(self) -> List[Dict[str, Any]]:
        return list(self._resource_recovery)

    def risk_factors(self) -> List[Dict[str, Any]]:
        return list(self._risk_factors)

    def tradeoffs(self) -> List[Dict[str, Any]]:
        return list(self._tradeoffs)

    def failure_types(self) -> List[Dict[str, Any]]:
        return list(self._failure_types)

    def recovery_mechanics(self) -> List[Dict[str, Any]]:
        return list(self._recovery_mechanics)

    def factions(self) -> List[Dict[str, Any]]:
        return list(self._factions)


__all__ = ["Catalog"]
