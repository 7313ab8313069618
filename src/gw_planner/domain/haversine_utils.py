#gw_planner/src/gw_planner/domain/haversine_utils.py

import math
from typing import Tuple

import numpy as np

from src.gw_planner.domain.errors import InvalidCoordinate

EARTH_RADIUS_M = 6371000.0

# metros por grau de latitude (esfera de raio EARTH_RADIUS_M)
METERS_PER_DEGREE = math.pi * EARTH_RADIUS_M / 180.0


def normalize_coordinate(value) -> float:
    """
    Converte uma coordenada em float.
    Aceita número ou string com vírgula ou ponto como separador decimal.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidCoordinate(value)

    if isinstance(value, (int, float, np.integer, np.floating)):
        num = float(value)
    elif isinstance(value, str):
        txt = value.strip().replace(",", ".")
        if not txt:
            raise InvalidCoordinate(value)
        try:
            num = float(txt)
        except ValueError:
            raise InvalidCoordinate(value)
    else:
        raise InvalidCoordinate(value)

    if not math.isfinite(num):
        raise InvalidCoordinate(value)
    return num


def haversine(coord1: Tuple[float, float], coord2: Tuple[float, float]) -> float:
    """Distância em metros entre dois pontos (lat, lng)."""
    lat1, lon1 = coord1
    lat2, lon2 = coord2

    if lat1 == lat2 and lon1 == lon2:
        return 0.0

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_vector(lat: float, lng: float, lats: np.ndarray, lngs: np.ndarray) -> np.ndarray:
    """Distâncias (m) de um ponto para um array de pontos."""
    phi1 = np.radians(lat)
    phi2 = np.radians(lats)
    dphi = phi2 - phi1
    dlmb = np.radians(lngs - lng)

    a = np.sin(dphi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlmb / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    return 2 * EARTH_RADIUS_M * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def haversine_matrix(lats1: np.ndarray, lngs1: np.ndarray, lats2: np.ndarray, lngs2: np.ndarray) -> np.ndarray:
    """Matriz (len1 x len2) de distâncias em metros."""
    phi1 = np.radians(np.asarray(lats1, dtype=float))[:, None]
    phi2 = np.radians(np.asarray(lats2, dtype=float))[None, :]
    dlmb = np.radians(np.asarray(lngs2, dtype=float)[None, :] - np.asarray(lngs1, dtype=float)[:, None])

    a = np.sin((phi2 - phi1) / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlmb / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    return 2 * EARTH_RADIUS_M * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def degree_window(lat: float, radius_m: float) -> Tuple[float, float]:
    """
    Meia-largura (dlat, dlng) em graus de uma caixa que contém
    todos os pontos a até radius_m de um ponto na latitude `lat`.
    """
    dlat = radius_m / METERS_PER_DEGREE

    # latitude mais próxima do polo dentro da caixa define o pior caso em longitude
    worst_lat = min(abs(lat) + dlat, 89.999999)
    cos_lat = math.cos(math.radians(worst_lat))
    dlng = min(radius_m / (METERS_PER_DEGREE * cos_lat), 180.0)

    # margem para a diferença entre arco e corda
    return dlat * 1.001, dlng * 1.001
