# ============================================================
# 📦 src/gw_planner/domain/device_normalizer.py
# ============================================================

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Tuple

from loguru import logger

from src.gw_planner.domain.entities import Device, Gateway, DuplicateGroup
from src.gw_planner.domain.errors import InputError, InvalidCoordinate
from src.gw_planner.domain.haversine_utils import normalize_coordinate


def _vazio(valor: Any) -> bool:
    if valor is None:
        return True
    if isinstance(valor, float) and valor != valor:  # NaN vindo do pandas
        return True
    return isinstance(valor, str) and not valor.strip()


def _id_texto(valor: Any) -> str:
    # ids numéricos vindos do Excel chegam como 17.0
    if isinstance(valor, float) and valor.is_integer():
        valor = int(valor)
    return str(valor).strip()


def _parse_row(row: Dict[str, Any]) -> Tuple[str, float, float]:
    lat = normalize_coordinate(row["lat"])
    lng = normalize_coordinate(row["lng"])
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinate(row["lat"])
    if not -180.0 <= lng <= 180.0:
        raise InvalidCoordinate(row["lng"])
    return _id_texto(row["id"]), lat, lng


def normalize_devices(rows: Iterable[Dict[str, Any]]) -> Tuple[List[Device], List[int], int]:
    """
    Valida e normaliza linhas {id, lat, lng}.

    Retorna (devices, índices das linhas descartadas, qtd de coordenadas com vírgula).
    Linhas sem id/lat/lng, com coordenada inválida ou com id repetido são
    descartadas com warning (vale a primeira ocorrência do id).
    """
    devices: List[Device] = []
    descartadas: List[int] = []
    vistos: Dict[str, int] = {}
    com_virgula = 0

    for idx, row in enumerate(rows):
        if not row or any(_vazio(row.get(c)) for c in ("id", "lat", "lng")):
            logger.warning(f"⚠️ Linha {idx} sem id, lat ou lng. Ignorando...")
            descartadas.append(idx)
            continue

        try:
            dev_id, lat, lng = _parse_row(row)
        except InvalidCoordinate as e:
            logger.warning(f"⚠️ Linha {idx} inválida: {e}. Ignorando...")
            descartadas.append(idx)
            continue

        if dev_id in vistos:
            logger.warning(f"⚠️ Linha {idx} repete o id {dev_id} (linha {vistos[dev_id]}). Ignorando...")
            descartadas.append(idx)
            continue
        vistos[dev_id] = idx

        if any(isinstance(row[c], str) and "," in row[c] for c in ("lat", "lng")):
            com_virgula += 1

        devices.append(Device(id=dev_id, lat=lat, lng=lng))

    if not devices:
        raise InputError("Nenhum poste válido encontrado na entrada.")

    logger.info(
        f"📦 {len(devices)} postes válidos | {len(descartadas)} descartados | "
        f"{com_virgula} coordenadas normalizadas (vírgula → ponto)"
    )
    return devices, descartadas, com_virgula


def normalize_fixed_gateways(rows: Iterable[Dict[str, Any]]) -> List[Gateway]:
    """Gateways pré-existentes. Aqui uma linha inválida é erro fatal."""
    gateways = []
    for idx, row in enumerate(rows or []):
        if not row or any(_vazio(row.get(c)) for c in ("id", "lat", "lng")):
            raise InputError(f"Gateway fixo na linha {idx} sem id, lat ou lng.")
        gw_id, lat, lng = _parse_row(row)
        gateways.append(Gateway(id=gw_id, lat=lat, lng=lng, is_fixed=True))

    if gateways:
        logger.info(f"🏭 {len(gateways)} gateways fixos informados.")
    return gateways


def deduplicate_devices(devices: List[Device]) -> Tuple[List[Device], List[DuplicateGroup]]:
    """
    Mantém o primeiro poste de cada coordenada idêntica.
    Todos os ids de cada grupo repetido vão para o relatório.
    """
    grupos: "OrderedDict[Tuple[float, float], List[Device]]" = OrderedDict()
    for d in devices:
        grupos.setdefault((d.lat, d.lng), []).append(d)

    unicos = [g[0] for g in grupos.values()]
    duplicados = [
        DuplicateGroup(lat=lat, lng=lng, device_ids=tuple(d.id for d in g))
        for (lat, lng), g in grupos.items()
        if len(g) > 1
    ]

    for dup in duplicados:
        logger.warning(
            f"⚠️ Coordenadas duplicadas ({dup.lat},{dup.lng}): {len(dup.device_ids)} postes "
            f"({', '.join(dup.device_ids)}). Mantido {dup.kept_id}."
        )

    return unicos, duplicados
