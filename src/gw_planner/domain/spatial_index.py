#gw_planner/src/gw_planner/domain/spatial_index.py

from typing import List, Sequence, Tuple

import numpy as np
from loguru import logger
from shapely import points, box
from shapely.strtree import STRtree

from src.gw_planner.domain.haversine_utils import degree_window, haversine_vector


class SpatialIndex:
    """
    Índice R-tree (STRtree) sobre pares (lng, lat).

    Consultas por caixa devolvem candidatos (superconjunto da vizinhança real);
    a pertinência exata exige checagem de distância (ver query_radius).
    """

    def __init__(self, lats: Sequence[float], lngs: Sequence[float]):
        self.lats = np.asarray(lats, dtype=float)
        self.lngs = np.asarray(lngs, dtype=float)
        if self.lats.shape != self.lngs.shape:
            raise ValueError("lats e lngs com tamanhos diferentes")

        # bulk load
        self._tree = STRtree(points(self.lngs, self.lats))

    @classmethod
    def from_coords(cls, coords: Sequence[Tuple[float, float]]) -> "SpatialIndex":
        if len(coords) == 0:
            return cls([], [])
        arr = np.asarray(coords, dtype=float)
        return cls(arr[:, 0], arr[:, 1])

    def __len__(self) -> int:
        return len(self.lats)

    def query_box(self, min_lng: float, min_lat: float, max_lng: float, max_lat: float) -> np.ndarray:
        if len(self) == 0:
            return np.empty(0, dtype=int)
        idx = self._tree.query(box(min_lng, min_lat, max_lng, max_lat))
        return np.sort(idx)

    def query_radius(self, lat: float, lng: float, radius_m: float) -> np.ndarray:
        """Índices a até radius_m (haversine) do ponto, em ordem crescente."""
        dlat, dlng = degree_window(lat, radius_m)
        cand = self.query_box(lng - dlng, lat - dlat, lng + dlng, lat + dlat)
        if cand.size == 0:
            return cand
        dist = haversine_vector(lat, lng, self.lats[cand], self.lngs[cand])
        return cand[dist <= radius_m]

    def candidate_pairs(self, radius_m: float) -> List[np.ndarray]:
        """
        Para cada ponto i, candidatos da caixa de raio radius_m
        (consulta em lote, uma caixa por ponto).
        """
        n = len(self)
        if n == 0:
            return []

        janelas = [degree_window(lat, radius_m) for lat in self.lats]
        dlat = np.array([w[0] for w in janelas])
        dlng = np.array([w[1] for w in janelas])
        caixas = box(self.lngs - dlng, self.lats - dlat, self.lngs + dlng, self.lats + dlat)

        origem, alvo = self._tree.query(caixas)
        logger.debug(f"🔎 STRtree: {origem.size} pares candidatos para {n} pontos (raio={radius_m} m)")

        ordem = np.lexsort((alvo, origem))
        origem, alvo = origem[ordem], alvo[ordem]
        cortes = np.searchsorted(origem, np.arange(n + 1))
        return [alvo[cortes[i]:cortes[i + 1]] for i in range(n)]
