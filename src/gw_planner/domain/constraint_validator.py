# ============================================================
# 📦 src/gw_planner/domain/constraint_validator.py
# ============================================================

from __future__ import annotations

from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Tuple

from loguru import logger

from src.gw_planner.domain.config import PlannerConfig
from src.gw_planner.domain.connectivity_graph import build_connectivity_graph
from src.gw_planner.domain.entities import Device, Gateway, ValidationResult
from src.gw_planner.domain.errors import ValidatorUnitFailure


@dataclass(frozen=True)
class ValidationUnit:
    """Cópia imutável do que uma unidade de validação precisa."""
    cluster_index: int
    medoid: Gateway
    members: Tuple[Device, ...]
    config: PlannerConfig

    # posição do poste-medoide em members (None: gateway fixo ou externo)
    medoid_member: Optional[int] = None


def _posicao_medoide(members: Tuple[Device, ...], medoid: Gateway) -> Optional[int]:
    if medoid.is_fixed:
        return None
    for pos, d in enumerate(members):
        if d.id == medoid.id and d.coords == medoid.coords:
            return pos
    return None


def validate_cluster(
    members: Tuple[Device, ...],
    medoid: Gateway,
    config: PlannerConfig,
    medoid_member: Optional[int] = None,
) -> ValidationResult:
    """
    BFS a partir do gateway sobre o subgrafo de conectividade do cluster.

    - distância em saltos por poste visitado;
    - relay load de cada nó não-raiz = vizinhos descobertos pela primeira vez através dele;
    - falha imediata quando um relay load passa de max_relay_load;
    - ao final, falha se algum poste ficou sem caminho ou passou de max_hops.

    medoid_member indica qual posição de members é o próprio medoide; sem ele,
    a posição é procurada por id e coordenadas.
    """
    if medoid_member is None:
        medoid_member = _posicao_medoide(members, medoid)

    # nó 0 = gateway. O poste-medoide não entra duas vezes.
    nodes: List[Device] = [d for pos, d in enumerate(members) if pos != medoid_member]
    raiz_id = members[medoid_member].id if medoid_member is not None else None

    coords = [medoid.coords] + [d.coords for d in nodes]
    graph = build_connectivity_graph(coords, config.hop_distance)

    hops = [-1] * len(coords)
    hops[0] = 0
    relay = [0] * len(coords)
    fila = deque([0])

    while fila:
        atual = fila.popleft()
        for viz in graph[atual]:
            if hops[viz] != -1:
                continue
            hops[viz] = hops[atual] + 1
            fila.append(viz)

            if atual != 0:
                relay[atual] += 1
                if relay[atual] > config.max_relay_load:
                    return ValidationResult(
                        valid=False,
                        reason=(
                            f"Poste {nodes[atual - 1].id} excede relay load "
                            f"{config.max_relay_load}"
                        ),
                        distances=_distancias(nodes, hops, raiz_id),
                        max_relay_load=relay[atual],
                    )

    distances = _distancias(nodes, hops, raiz_id)
    max_hops = max(h for h in hops if h != -1)
    max_relay = max(relay[1:], default=0)

    # checagem por posição: ids repetidos não mascaram um poste sem caminho
    for i, d in enumerate(nodes, start=1):
        h = hops[i]
        if h == -1:
            return ValidationResult(
                valid=False,
                reason=f"Poste {d.id} sem caminho até o gateway {medoid.id}",
                distances=distances,
                max_hops=max_hops,
                max_relay_load=max_relay,
            )
        if h > config.max_hops:
            return ValidationResult(
                valid=False,
                reason=f"Poste {d.id} excede {config.max_hops} saltos ({h})",
                distances=distances,
                max_hops=max_hops,
                max_relay_load=max_relay,
            )

    return ValidationResult(
        valid=True,
        distances=distances,
        max_hops=max_hops,
        max_relay_load=max_relay,
    )


def _distancias(nodes: List[Device], hops: List[int], raiz_id: Optional[str]) -> dict:
    dist = {}
    for i, d in enumerate(nodes, start=1):
        if hops[i] != -1:
            dist[d.id] = hops[i]
    if raiz_id is not None:
        dist[raiz_id] = 0
    return dist


def _run_unit(unit: ValidationUnit) -> ValidationResult:
    try:
        return validate_cluster(unit.members, unit.medoid, unit.config, unit.medoid_member)
    except Exception as e:
        raise ValidatorUnitFailure(f"cluster {unit.cluster_index + 1}: {e}") from e


# ============================================================
# 🧵 Lote paralelo (uma unidade por cluster, barreira no final)
# ============================================================
def validate_clusters(units: List[ValidationUnit], max_workers: Optional[int] = None) -> List[ValidationResult]:
    """
    Executa as unidades em paralelo e espera todas.
    Falha interna de uma unidade vira violação daquele cluster; o lote segue.
    """
    if not units:
        return []

    resultados: List[Optional[ValidationResult]] = [None] * len(units)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(_run_unit, u) for u in units]

        for pos, future in enumerate(futures):
            unit = units[pos]
            try:
                resultados[pos] = future.result()
            except ValidatorUnitFailure as e:
                logger.warning(f"⚠️ Erro na verificação de saltos: {e}")
                resultados[pos] = ValidationResult(valid=False, reason=f"Falha interna na validação: {e.__cause__}")

            if not resultados[pos].valid:
                logger.info(
                    f"🚫 Cluster {unit.cluster_index + 1} inválido ({len(unit.members)} postes): "
                    f"{resultados[pos].reason}"
                )

    return resultados
