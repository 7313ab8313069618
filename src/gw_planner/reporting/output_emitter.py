# =========================================================
# 📦 src/gw_planner/reporting/output_emitter.py
# =========================================================

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import pandas as pd
from shapely.geometry import Point, mapping

from src.gw_planner.application.refinement_controller import RefinementOutcome
from src.gw_planner.domain.config import PlannerConfig
from src.gw_planner.domain.entities import Device, DuplicateGroup, OutlierRecord

GATEWAY_COLUMNS = ["gateway_id", "lat", "lng", "status", "n_devices", "max_hops", "max_relay_load", "assigned_devices"]
OUTLIER_COLUMNS = ["id", "lat", "lng", "isolation_m"]


def gateway_ids(outcome: RefinementOutcome) -> List[str]:
    """Fixos mantêm o próprio id; novos recebem GW1, GW2, ... na ordem dos clusters."""
    ids = []
    seq = 0
    for c in outcome.clusters:
        if c.medoid.is_fixed:
            ids.append(c.medoid.id)
        else:
            seq += 1
            ids.append(f"GW{seq}")
    return ids


# =========================================================
# 📋 Tabela de gateways
# =========================================================
def build_gateway_table(outcome: RefinementOutcome) -> pd.DataFrame:
    registros = []
    for gw_id, c, v in zip(gateway_ids(outcome), outcome.clusters, outcome.validations):
        registros.append(
            {
                "gateway_id": gw_id,
                "lat": c.medoid.lat,
                "lng": c.medoid.lng,
                "status": "FIXED" if c.medoid.is_fixed else "NEW",
                "n_devices": c.size,
                "max_hops": v.max_hops,
                "max_relay_load": v.max_relay_load,
                "assigned_devices": ",".join(c.device_ids),
            }
        )
    return pd.DataFrame(registros, columns=GATEWAY_COLUMNS)


def build_outlier_report(outliers: Sequence[OutlierRecord]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"id": o.device.id, "lat": o.device.lat, "lng": o.device.lng, "isolation_m": round(o.isolation_m, 2)}
            for o in outliers
        ],
        columns=OUTLIER_COLUMNS,
    )


def build_duplicate_report(duplicates: Sequence[DuplicateGroup]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"lat": d.lat, "lng": d.lng, "kept_id": d.kept_id, "device_ids": ",".join(d.device_ids)}
            for d in duplicates
        ],
        columns=["lat", "lng", "kept_id", "device_ids"],
    )


# =========================================================
# 🗺️ Camada de mapa (GeoJSON)
# =========================================================
def build_map_layer(
    devices: Sequence[Device],
    outcome: RefinementOutcome,
    outliers: Sequence[OutlierRecord] = (),
) -> Dict[str, Any]:
    """Todos os postes de entrada (tag post) + gateways aceitos (tag gateway)."""
    ids = gateway_ids(outcome)
    gw_por_poste = {
        dev_id: gw_id
        for gw_id, c in zip(ids, outcome.clusters)
        for dev_id in c.device_ids
    }
    ids_outliers = {o.device.id for o in outliers}

    features = []
    for d in devices:
        features.append(
            {
                "type": "Feature",
                "geometry": mapping(Point(d.lng, d.lat)),
                "properties": {
                    "tag": "post",
                    "id": d.id,
                    "gateway_id": gw_por_poste.get(d.id),
                    "outlier": d.id in ids_outliers,
                },
            }
        )

    for gw_id, c in zip(ids, outcome.clusters):
        features.append(
            {
                "type": "Feature",
                "geometry": mapping(Point(c.medoid.lng, c.medoid.lat)),
                "properties": {
                    "tag": "gateway",
                    "id": gw_id,
                    "kind": "fixed" if c.medoid.is_fixed else "new",
                    "n_devices": c.size,
                },
            }
        )

    return {"type": "FeatureCollection", "features": features}


# =========================================================
# 📊 Relatório resumo
# =========================================================
@dataclass
class SummaryReport:
    total_devices: int
    valid_devices: int
    duplicate_devices: int
    outlier_devices: int
    initial_gateways: int
    final_gateways: int
    assigned_devices: int
    unassigned_devices: int
    connected_components: int
    state: str
    config: PlannerConfig
    alerts: List[str] = field(default_factory=list)

    @property
    def assignment_rate(self) -> float:
        planejados = self.assigned_devices + self.unassigned_devices
        return self.assigned_devices / planejados if planejados else 0.0

    def to_lines(self) -> List[str]:
        cfg = self.config
        linhas = [
            "=== RESUMO DO PLANEJAMENTO DE GATEWAYS ===",
            f"Estado final: {self.state}",
            f"Postes na entrada: {self.total_devices}",
            f"Postes válidos: {self.valid_devices}",
            f"Postes duplicados: {self.duplicate_devices}",
            f"Postes outliers: {self.outlier_devices}",
            f"Componentes conexas: {self.connected_components}",
            f"Gateways iniciais: {self.initial_gateways}",
            f"Gateways finais: {self.final_gateways}",
            f"Taxa de atribuição: {self.assignment_rate * 100:.1f}%",
            f"Postes sem gateway: {self.unassigned_devices}",
            f"Distância por salto: {cfg.hop_distance:.0f} m | máx. saltos: {cfg.max_hops}",
            f"Distância mínima entre gateways: {cfg.min_gateway_distance:.0f} m",
            f"Capacidade por gateway: {cfg.max_devices_per_gateway} | relay load máx.: {cfg.max_relay_load}",
        ]
        if self.alerts:
            linhas.append("--- ALERTAS ---")
            linhas.extend(f"⚠ {a}" for a in self.alerts)
        return linhas

    def to_text(self) -> str:
        return "\n".join(self.to_lines()) + "\n"


def collect_alerts(outcome: RefinementOutcome, config: PlannerConfig) -> List[str]:
    alertas = list(outcome.alerts)

    for gw_id, c in zip(gateway_ids(outcome), outcome.clusters):
        if c.size > config.max_devices_per_gateway:
            alertas.append(
                f"Gateway {gw_id} excede a capacidade: {c.size} > {config.max_devices_per_gateway} postes"
            )

    if outcome.unassigned_ids:
        alertas.append(f"{len(outcome.unassigned_ids)} postes sem gateway atribuído")
    return alertas
