#gw_planner/src/gw_planner/domain/entities.py

from dataclasses import dataclass, field
from typing import Optional, Dict, List, Tuple


@dataclass(frozen=True)
class Device:
    """Representa um poste (ponto a ser coberto)."""
    id: str
    lat: float
    lng: float

    @property
    def coords(self) -> Tuple[float, float]:
        return (self.lat, self.lng)


@dataclass(frozen=True)
class Gateway:
    """
    Medoide de um cluster.
    Gateways fixos (pré-existentes) nunca se movem.
    """
    id: str
    lat: float
    lng: float
    is_fixed: bool = False

    @property
    def coords(self) -> Tuple[float, float]:
        return (self.lat, self.lng)

    @classmethod
    def from_device(cls, device: Device) -> "Gateway":
        return cls(id=device.id, lat=device.lat, lng=device.lng, is_fixed=False)


# ==========================================================
# 🗺️ Cluster (gateway + postes atribuídos)
# ==========================================================
@dataclass
class Cluster:
    medoid: Gateway
    device_ids: List[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.device_ids)


@dataclass
class ValidationResult:
    valid: bool
    reason: Optional[str] = None

    # device_id -> saltos a partir do gateway
    distances: Dict[str, int] = field(default_factory=dict)

    # métricas auxiliares para o relatório
    max_hops: int = 0
    max_relay_load: int = 0


@dataclass(frozen=True)
class OutlierRecord:
    device: Device
    isolation_m: float


@dataclass(frozen=True)
class DuplicateGroup:
    lat: float
    lng: float
    device_ids: Tuple[str, ...]

    @property
    def kept_id(self) -> str:
        return self.device_ids[0]
