# ============================================================
# 📦 src/gw_planner/application/refinement_controller.py
# ============================================================

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from src.gw_planner.domain.config import PlannerConfig
from src.gw_planner.domain.constraint_validator import ValidationUnit, validate_clusters
from src.gw_planner.domain.entities import Cluster, Device, Gateway, ValidationResult
from src.gw_planner.domain.errors import ConstraintViolation, SeedingExhausted
from src.gw_planner.domain.haversine_utils import haversine
from src.gw_planner.domain.kmedoids import KMedoidsResult, k_medoids
from src.gw_planner.infrastructure.progress import ProgressSink, notify


class PlannerState(str, Enum):
    SEED = "SEED"
    CLUSTER = "CLUSTER"
    VALIDATE = "VALIDATE"
    ACCEPT = "ACCEPT"
    GROW = "GROW"
    DONE = "DONE"
    CAPPED = "CAPPED"


@dataclass
class RefinementOutcome:
    state: PlannerState
    k_initial: int
    k_final: int
    rounds: int

    # apenas clusters não vazios, na ordem dos medoides
    clusters: List[Cluster]
    validations: List[ValidationResult]
    unassigned_ids: List[str] = field(default_factory=list)
    violations: List[ConstraintViolation] = field(default_factory=list)
    alerts: List[str] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.state == PlannerState.DONE


def initial_k(n_devices: int, config: PlannerConfig, n_fixed: int = 0) -> int:
    if config.max_gateways is not None:
        k = config.max_gateways
    else:
        k = math.ceil(n_devices / config.max_devices_per_gateway)
    return max(k, n_fixed, 1)


def separation_violations(medoids: Sequence[Gateway], min_distance: float) -> List[Tuple[int, int, float]]:
    """Pares (i, j, dist) abaixo da distância mínima, inclusive entre gateways fixos."""
    pares = []
    for i in range(len(medoids)):
        for j in range(i + 1, len(medoids)):
            d = haversine(medoids[i].coords, medoids[j].coords)
            if d < min_distance:
                pares.append((i, j, d))
    return pares


class GatewayRefinementController:
    """
    Máquina de estados SEED → CLUSTER → VALIDATE → {ACCEPT | GROW} → … → DONE | CAPPED.

    Cada rodada recalcula o K-Medoids do zero para o k atual. A validação
    roda em paralelo (uma unidade por cluster); o resto é sequencial.
    """

    def __init__(
        self,
        config: PlannerConfig,
        fixed_gateways: Sequence[Gateway] = (),
        progress: Optional[ProgressSink] = None,
        rng: Optional[np.random.Generator] = None,
        max_workers: Optional[int] = None,
    ):
        self.config = config
        self.fixed_gateways = list(fixed_gateways)
        self.progress = progress
        self.rng = rng if rng is not None else np.random.default_rng()
        self.max_workers = max_workers
        self.state = PlannerState.SEED

    def _set_state(self, state: PlannerState):
        logger.debug(f"🔀 {self.state.value} → {state.value}")
        self.state = state

    def _pode_crescer(self, k: int, n_devices: int) -> bool:
        if self.config.max_gateways is not None and k >= self.config.max_gateways:
            return False
        # não há postes para mais medoides novos
        return k - len(self.fixed_gateways) < n_devices

    # ============================================================
    # ✅ Validação de uma rodada
    # ============================================================
    def _validar(
        self, devices: Sequence[Device], res: KMedoidsResult
    ) -> Tuple[List[ValidationResult], List[ConstraintViolation], List[ConstraintViolation]]:
        cfg = self.config
        violacoes: List[ConstraintViolation] = []
        pares_fixos: List[ConstraintViolation] = []
        resultados: List[Optional[ValidationResult]] = [None] * len(res.medoids)
        unidades: List[ValidationUnit] = []

        for i, membros in enumerate(res.members):
            if not membros:
                resultados[i] = ValidationResult(valid=True)
                continue

            # pré-checagem barata de capacidade
            if len(membros) > cfg.max_devices_per_gateway:
                motivo = f"Excede {cfg.max_devices_per_gateway} dispositivos ({len(membros)})"
                resultados[i] = ValidationResult(valid=False, reason=motivo)
                continue

            idx_medoide = res.medoid_device_idx[i]
            unidades.append(
                ValidationUnit(
                    cluster_index=i,
                    medoid=res.medoids[i],
                    members=tuple(devices[m] for m in membros),
                    config=cfg,
                    medoid_member=membros.index(idx_medoide) if idx_medoide in membros else None,
                )
            )

        for unit, r in zip(unidades, validate_clusters(unidades, max_workers=self.max_workers)):
            resultados[unit.cluster_index] = r

        for i, r in enumerate(resultados):
            if not r.valid:
                violacoes.append(ConstraintViolation(i, r.reason))

        for i, j, d in separation_violations(res.medoids, cfg.min_gateway_distance):
            if not (res.members[i] and res.members[j]):
                continue
            fixos = res.medoids[i].is_fixed and res.medoids[j].is_fixed
            violacoes.append(
                ConstraintViolation(
                    i, f"Gateways {'fixos ' if fixos else ''}{res.medoids[i].id} e {res.medoids[j].id} "
                       f"a {d:.0f} m (mínimo {cfg.min_gateway_distance:.0f} m)"
                )
            )
            if fixos:
                pares_fixos.append(violacoes[-1])

        if res.unassigned:
            violacoes.append(
                ConstraintViolation(-1, f"{len(res.unassigned)} postes sem gateway com capacidade disponível")
            )

        return resultados, violacoes, pares_fixos

    # ============================================================
    # ▶️ Execução principal
    # ============================================================
    def run(self, devices: Sequence[Device]) -> RefinementOutcome:
        cfg = self.config
        devices = list(devices)

        self._set_state(PlannerState.SEED)
        k = initial_k(len(devices), cfg, len(self.fixed_gateways))
        k_inicial = k
        logger.info(
            f"🧮 K inicial | postes={len(devices)} | max_por_gateway={cfg.max_devices_per_gateway} | "
            f"max_gateways={cfg.max_gateways} | fixos={len(self.fixed_gateways)} | k={k}"
        )

        resultado: Optional[KMedoidsResult] = None
        validacoes: List[ValidationResult] = []
        violacoes: List[ConstraintViolation] = []
        alertas: List[str] = []
        rodada = 0

        while True:
            rodada += 1
            notify(
                self.progress,
                f"Rodada {rodada}/{cfg.max_iterations}: K-Medoids com k={k}",
                10 + int(80 * (rodada - 1) / cfg.max_iterations),
            )

            self._set_state(PlannerState.CLUSTER)
            try:
                tentativa = k_medoids(devices, k, cfg, fixed=self.fixed_gateways, rng=self.rng)
            except SeedingExhausted as e:
                if resultado is None:
                    raise
                logger.warning(f"⚠️ {e}. Mantendo a solução com k={k - 1}.")
                alertas.append(f"Não foi possível posicionar {k} gateways separados: {e}")
                k -= 1
                self._set_state(PlannerState.CAPPED)
                break
            resultado = tentativa

            self._set_state(PlannerState.VALIDATE)
            validacoes, violacoes, pares_fixos = self._validar(devices, resultado)

            if not violacoes:
                self._set_state(PlannerState.ACCEPT)
                logger.success(f"✅ Todas as restrições atendidas com k={k} (rodada {rodada}).")
                self._set_state(PlannerState.DONE)
                break

            logger.info(f"🚫 Rodada {rodada}: {len(violacoes)} violações | ex.: {violacoes[0]}")

            # gateways fixos não se movem: mais k não corrige a separação entre eles
            if len(pares_fixos) == len(violacoes):
                alertas.append(
                    f"Gateways fixos a menos de {cfg.min_gateway_distance:.0f} m entre si; "
                    "separação mínima não pode ser atendida."
                )
                self._set_state(PlannerState.CAPPED)
                break

            if rodada >= cfg.max_iterations:
                alertas.append(
                    f"Limite de iterações atingido (max_iterations={cfg.max_iterations}) com k={k}."
                )
                self._set_state(PlannerState.CAPPED)
                break

            if not self._pode_crescer(k, len(devices)):
                alertas.append(
                    f"Limite de gateways atingido (max_gateways={cfg.max_gateways}) com k={k}."
                    if cfg.max_gateways is not None
                    else f"Número de gateways não pode crescer além de k={k}."
                )
                self._set_state(PlannerState.CAPPED)
                break

            self._set_state(PlannerState.GROW)
            k += 1
            logger.info(f"📈 Restrição violada. Aumentando k para {k}...")

        if self.state == PlannerState.CAPPED:
            for v in violacoes:
                alertas.append(f"Violação: {v}")
            logger.warning(f"⚠️ Planejamento encerrado em CAPPED com k={k} ({len(violacoes)} violações).")

        outcome = self._montar_resultado(devices, resultado, validacoes, violacoes, alertas, k_inicial, rodada)
        notify(self.progress, f"Planejamento {outcome.state.value}: {outcome.k_final} gateways", 95)
        return outcome

    def _montar_resultado(self, devices, res, validacoes, violacoes, alertas, k_inicial, rodadas) -> RefinementOutcome:
        clusters: List[Cluster] = []
        vals: List[ValidationResult] = []

        # poda de medoides sem membros
        for i, membros in enumerate(res.members):
            if not membros:
                logger.info(f"🗑️ Medoide {res.medoids[i].id} sem postes, descartado.")
                continue
            clusters.append(Cluster(medoid=res.medoids[i], device_ids=[devices[m].id for m in membros]))
            vals.append(validacoes[i])

        return RefinementOutcome(
            state=self.state,
            k_initial=k_inicial,
            k_final=len(clusters),
            rounds=rodadas,
            clusters=clusters,
            validations=vals,
            unassigned_ids=[devices[m].id for m in res.unassigned],
            violations=violacoes,
            alerts=alertas,
        )
