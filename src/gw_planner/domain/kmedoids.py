# ============================================================
# 📦 src/gw_planner/domain/kmedoids.py
# ============================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
from loguru import logger

from src.gw_planner.domain.config import PlannerConfig
from src.gw_planner.domain.entities import Device, Gateway
from src.gw_planner.domain.errors import SeedingExhausted, InputError
from src.gw_planner.domain.haversine_utils import haversine_vector, haversine_matrix

# linhas por bloco no cálculo de custo intra-cluster
_CHUNK = 1024


@dataclass
class KMedoidsResult:
    medoids: List[Gateway]

    # índice do poste que é o medoide (None para gateway fixo)
    medoid_device_idx: List[Optional[int]]

    # índices dos postes atribuídos a cada medoide, na ordem de atribuição
    members: List[List[int]]
    unassigned: List[int] = field(default_factory=list)
    iterations: int = 0
    converged: bool = False


# ============================================================
# 🎯 Inicialização k-means++
# ============================================================
def seed_medoids(
    devices: Sequence[Device],
    k: int,
    config: PlannerConfig,
    fixed: Sequence[Gateway] = (),
    rng: Optional[np.random.Generator] = None,
) -> tuple[List[Gateway], List[Optional[int]]]:
    """
    Gateways fixos ocupam as primeiras posições. As demais são sorteadas com
    peso = (distância mínima aos medoides já escolhidos)², apenas entre postes
    a pelo menos min_gateway_distance de todos eles.
    """
    rng = rng if rng is not None else np.random.default_rng()

    lats = np.array([d.lat for d in devices], dtype=float)
    lngs = np.array([d.lng for d in devices], dtype=float)
    n = len(devices)

    medoids: List[Gateway] = list(fixed)
    medoid_idx: List[Optional[int]] = [None] * len(medoids)

    min_dist = np.full(n, np.inf)
    for g in medoids:
        min_dist = np.minimum(min_dist, haversine_vector(g.lat, g.lng, lats, lngs))

    escolhido = np.zeros(n, dtype=bool)

    for slot in range(len(medoids), k):
        elegiveis = ~escolhido
        if medoids:
            elegiveis &= min_dist >= config.min_gateway_distance

        cand = np.flatnonzero(elegiveis)
        if cand.size == 0:
            raise SeedingExhausted(slot, k, config.min_gateway_distance)

        if not medoids:
            pick = int(rng.choice(cand))
        else:
            pesos = min_dist[cand] ** 2
            total = float(pesos.sum())
            if total <= 0.0 or not np.isfinite(total):
                logger.warning(
                    f"⚠️ Distância total zero para o medoide {slot + 1}/{k} "
                    f"(coordenadas coincidentes?). Sorteio uniforme."
                )
                pick = int(rng.choice(cand))
            else:
                pick = int(rng.choice(cand, p=pesos / total))

        escolhido[pick] = True
        medoids.append(Gateway.from_device(devices[pick]))
        medoid_idx.append(pick)
        min_dist = np.minimum(min_dist, haversine_vector(lats[pick], lngs[pick], lats, lngs))

        logger.debug(f"🎯 Medoide {slot + 1}/{k}: poste {devices[pick].id}")

    return medoids, medoid_idx


# ============================================================
# 🔗 Atribuição com capacidade
# ============================================================
def assign_devices(dist: np.ndarray, capacity: int) -> tuple[List[List[int]], List[int]]:
    """
    dist: matriz (n_postes x k). Cada poste vai para o medoide mais próximo
    que ainda tem vaga; empate → menor índice de medoide.
    """
    n, k = dist.shape
    counts = np.zeros(k, dtype=int)
    members: List[List[int]] = [[] for _ in range(k)]
    unassigned: List[int] = []

    for i in range(n):
        row = np.where(counts < capacity, dist[i], np.inf)
        j = int(np.argmin(row))
        if not np.isfinite(row[j]):
            unassigned.append(i)
            continue
        members[j].append(i)
        counts[j] += 1

    return members, unassigned


def _custo_total(lats: np.ndarray, lngs: np.ndarray) -> np.ndarray:
    m = len(lats)
    totals = np.empty(m)
    for ini in range(0, m, _CHUNK):
        fim = min(ini + _CHUNK, m)
        totals[ini:fim] = haversine_matrix(lats[ini:fim], lngs[ini:fim], lats, lngs).sum(axis=1)
    return totals


def _melhor_medoide(
    j: int,
    members: List[int],
    lats: np.ndarray,
    lngs: np.ndarray,
    medoids: List[Gateway],
    min_gateway_distance: float,
) -> Optional[int]:
    idx = np.asarray(members, dtype=int)
    totals = _custo_total(lats[idx], lngs[idx])

    outros = [g for pos, g in enumerate(medoids) if pos != j]
    if outros:
        d_outros = haversine_matrix(
            lats[idx], lngs[idx],
            np.array([g.lat for g in outros]), np.array([g.lng for g in outros]),
        )
        ok = (d_outros >= min_gateway_distance).all(axis=1)
    else:
        ok = np.ones(len(idx), dtype=bool)

    if not ok.any():
        return None

    totals = np.where(ok, totals, np.inf)
    return int(idx[int(np.argmin(totals))])


# ============================================================
# 🔁 K-Medoids
# ============================================================
def k_medoids(
    devices: Sequence[Device],
    k: int,
    config: PlannerConfig,
    fixed: Sequence[Gateway] = (),
    rng: Optional[np.random.Generator] = None,
) -> KMedoidsResult:
    if not devices:
        raise InputError("Nenhum poste disponível para o K-Medoids.")
    if k < len(fixed):
        raise ValueError(f"k={k} menor que o número de gateways fixos ({len(fixed)})")

    logger.info(f"🔵 K-Medoids | k={k} | postes={len(devices)} | fixos={len(fixed)}")

    medoids, medoid_idx = seed_medoids(devices, k, config, fixed=fixed, rng=rng)

    lats = np.array([d.lat for d in devices], dtype=float)
    lngs = np.array([d.lng for d in devices], dtype=float)

    members: List[List[int]] = [[] for _ in medoids]
    unassigned: List[int] = []
    convergiu = False
    it = 0

    for it in range(1, config.max_iterations + 1):
        dist = np.column_stack([haversine_vector(g.lat, g.lng, lats, lngs) for g in medoids])
        members, unassigned = assign_devices(dist, config.max_devices_per_gateway)

        mudou = False
        for j, g in enumerate(medoids):
            if g.is_fixed or not members[j]:
                continue

            novo = _melhor_medoide(j, members[j], lats, lngs, medoids, config.min_gateway_distance)
            if novo is None or novo == medoid_idx[j]:
                continue

            medoids[j] = Gateway.from_device(devices[novo])
            medoid_idx[j] = novo
            mudou = True

        logger.debug(
            f"🔁 K-Medoids it={it} | mudanças={'sim' if mudou else 'não'} | sem gateway={len(unassigned)}"
        )

        if not mudou:
            convergiu = True
            break

    if not convergiu:
        # medoides mudaram na última iteração: reatribui para manter coerência
        dist = np.column_stack([haversine_vector(g.lat, g.lng, lats, lngs) for g in medoids])
        members, unassigned = assign_devices(dist, config.max_devices_per_gateway)
        logger.warning(f"⚠️ K-Medoids atingiu max_iterations={config.max_iterations} sem convergir.")

    return KMedoidsResult(
        medoids=medoids,
        medoid_device_idx=medoid_idx,
        members=members,
        unassigned=unassigned,
        iterations=it,
        converged=convergiu,
    )
