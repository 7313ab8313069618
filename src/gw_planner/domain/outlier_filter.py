#gw_planner/src/gw_planner/domain/outlier_filter.py

from typing import List, Sequence, Tuple

import numpy as np
from loguru import logger
from sklearn.neighbors import NearestNeighbors

from src.gw_planner.domain.entities import Device, OutlierRecord
from src.gw_planner.domain.errors import NoServiceableDevices
from src.gw_planner.domain.haversine_utils import EARTH_RADIUS_M

Z_THRESH = 3.0


def nearest_neighbor_distances(devices: Sequence[Device]) -> np.ndarray:
    """Distância (m) de cada poste ao poste mais próximo."""
    coords_rad = np.radians(np.array([[d.lat, d.lng] for d in devices], dtype=float))

    nn = NearestNeighbors(n_neighbors=2, metric="haversine")
    nn.fit(coords_rad)

    dist, _ = nn.kneighbors(coords_rad)
    return dist[:, 1] * EARTH_RADIUS_M


def _limiar(dist_min: np.ndarray, min_gateway_distance: float, z_thresh: float) -> Tuple[float, float, float]:
    mediana = float(np.median(dist_min))
    desvio = float(np.std(dist_min))
    return max(mediana + z_thresh * desvio, 2.0 * min_gateway_distance), mediana, desvio


def filter_outliers(
    devices: Sequence[Device],
    min_gateway_distance: float,
    z_thresh: float = Z_THRESH,
) -> Tuple[List[Device], List[OutlierRecord], float]:
    """
    Um poste é outlier se sua distância ao vizinho mais próximo passa de
    max(mediana + z·desvio, 2 × min_gateway_distance).

    Remover um outlier distante encolhe o desvio e pode expor outro; a
    classificação é repetida sobre os mantidos até não surgir nenhum novo.
    Assim, filtrar a própria saída não remove mais nada. O isolamento
    reportado é o da primeira passada (vizinho mais próximo na entrada toda).

    Retorna (postes mantidos, outliers na ordem da entrada, limiar final em metros).
    """
    devices = list(devices)
    if len(devices) < 2:
        return devices, [], float("inf")

    ativos = np.arange(len(devices))
    isolamento = None
    removido = np.zeros(len(devices), dtype=bool)
    limiar = float("inf")
    passada = 0

    while len(ativos) >= 2:
        passada += 1
        dist_min = nearest_neighbor_distances([devices[i] for i in ativos])
        if isolamento is None:
            isolamento = dist_min

        limiar, mediana, desvio = _limiar(dist_min, min_gateway_distance, z_thresh)
        flags = dist_min > limiar

        logger.debug(
            f"🧹 Passada {passada}: {int(flags.sum())} outliers em {len(ativos)} postes | "
            f"limiar={limiar:.1f} m (mediana={mediana:.1f} m, desvio={desvio:.1f} m)"
        )
        if not flags.any():
            break

        removido[ativos[flags]] = True
        ativos = ativos[~flags]

    mantidos = [d for d, r in zip(devices, removido) if not r]
    outliers = [
        OutlierRecord(device=d, isolation_m=float(iso))
        for d, iso, r in zip(devices, isolamento, removido)
        if r
    ]

    logger.info(
        f"🧹 Outliers detectados={len(outliers)}/{len(devices)} | limiar={limiar:.1f} m | passadas={passada}"
    )

    if not mantidos:
        raise NoServiceableDevices(
            f"Todos os {len(devices)} postes foram classificados como outliers (limiar={limiar:.1f} m)."
        )

    return mantidos, outliers, limiar
