#gw_planner/src/gw_planner/domain/connectivity_graph.py

from collections import deque
from typing import List, Sequence, Tuple

import numpy as np
from loguru import logger

from src.gw_planner.domain.haversine_utils import haversine_vector
from src.gw_planner.domain.spatial_index import SpatialIndex


# nó i -> lista ordenada de vizinhos (índices nos arrays de entrada)
ConnectivityGraph = List[List[int]]


def build_connectivity_graph(coords: Sequence[Tuple[float, float]], hop_distance: float) -> ConnectivityGraph:
    """
    Grafo de conectividade: arestas entre pontos a até hop_distance metros.

    Os nós são índices em `coords` (lat, lng). A relação é montada
    explicitamente simétrica: cada aresta é registrada nos dois sentidos.
    """
    n = len(coords)
    if n == 0:
        return []

    index = SpatialIndex.from_coords(coords)
    candidatos = index.candidate_pairs(hop_distance)

    vizinhos = [set() for _ in range(n)]
    for i in range(n):
        cand = candidatos[i]
        cand = cand[cand > i]  # cada par é avaliado uma vez
        if cand.size == 0:
            continue
        dist = haversine_vector(index.lats[i], index.lngs[i], index.lats[cand], index.lngs[cand])
        for j in cand[dist <= hop_distance]:
            j = int(j)
            vizinhos[i].add(j)
            vizinhos[j].add(i)

        if n >= 10000 and i % 10000 == 0:
            logger.info(f"🕸️ Construindo grafo: {(i / n) * 100:.1f}% concluído")

    graph = [sorted(v) for v in vizinhos]
    n_arestas = sum(len(v) for v in graph) // 2
    logger.debug(f"🕸️ Grafo de conectividade: {n} nós, {n_arestas} arestas (hop={hop_distance} m)")
    return graph


def connected_components(graph: ConnectivityGraph) -> np.ndarray:
    """Rótulo de componente conexa por nó (0..c-1, na ordem de descoberta)."""
    labels = np.full(len(graph), -1, dtype=int)
    atual = 0

    for inicio in range(len(graph)):
        if labels[inicio] != -1:
            continue
        labels[inicio] = atual
        fila = deque([inicio])
        while fila:
            u = fila.popleft()
            for v in graph[u]:
                if labels[v] == -1:
                    labels[v] = atual
                    fila.append(v)
        atual += 1

    return labels
