#gw_planner/src/gw_planner/application/planning_use_case.py

from dataclasses import dataclass, field
from time import time
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd
from loguru import logger

from src.gw_planner.application.refinement_controller import (
    GatewayRefinementController,
    RefinementOutcome,
)
from src.gw_planner.domain.config import PlannerConfig
from src.gw_planner.domain.connectivity_graph import build_connectivity_graph, connected_components
from src.gw_planner.domain.device_normalizer import (
    deduplicate_devices,
    normalize_devices,
    normalize_fixed_gateways,
)
from src.gw_planner.domain.entities import Device, DuplicateGroup, OutlierRecord
from src.gw_planner.domain.outlier_filter import filter_outliers
from src.gw_planner.infrastructure.progress import ProgressSink, notify
from src.gw_planner.reporting.output_emitter import (
    SummaryReport,
    build_duplicate_report,
    build_gateway_table,
    build_map_layer,
    build_outlier_report,
    collect_alerts,
)


@dataclass
class PlanningResult:
    outcome: RefinementOutcome
    devices: List[Device]
    gateway_table: pd.DataFrame
    map_layer: Dict[str, Any]
    summary: SummaryReport
    outlier_report: pd.DataFrame
    duplicate_report: pd.DataFrame
    outliers: List[OutlierRecord] = field(default_factory=list)
    duplicates: List[DuplicateGroup] = field(default_factory=list)
    duration_s: float = 0.0


# ============================================================
# 🚀 Execução principal
# ============================================================
def run_planning(
    device_rows: Iterable[Dict[str, Any]],
    config: Optional[PlannerConfig] = None,
    fixed_rows: Optional[Iterable[Dict[str, Any]]] = None,
    progress: Optional[ProgressSink] = None,
    rng: Optional[np.random.Generator] = None,
    max_workers: Optional[int] = None,
) -> PlanningResult:
    inicio = time()
    config = (config or PlannerConfig()).validate()
    device_rows = list(device_rows)

    logger.info(f"🏁 Iniciando planejamento de gateways | linhas={len(device_rows)}")
    notify(progress, "Normalizando coordenadas", 0)

    # ============================================================
    # 1) Normalização + duplicados
    # ============================================================
    devices, _, _ = normalize_devices(device_rows)
    fixed = normalize_fixed_gateways(fixed_rows or [])

    unicos, duplicados = deduplicate_devices(devices)
    n_duplicados = sum(len(g.device_ids) - 1 for g in duplicados)

    # ============================================================
    # 2) Outliers
    # ============================================================
    notify(progress, "Filtrando postes isolados", 5)
    servidos, outliers, _ = filter_outliers(unicos, config.min_gateway_distance)

    graph = build_connectivity_graph([d.coords for d in servidos], config.hop_distance)
    n_componentes = int(connected_components(graph).max()) + 1 if graph else 0
    logger.info(f"🕸️ {n_componentes} componentes conexas (hop={config.hop_distance:.0f} m)")

    # ============================================================
    # 3) Refinamento
    # ============================================================
    try:
        controller = GatewayRefinementController(
            config=config,
            fixed_gateways=fixed,
            progress=progress,
            rng=rng,
            max_workers=max_workers,
        )
        outcome = controller.run(servidos)
    except Exception as e:
        logger.error(f"❌ Erro durante o planejamento: {e}")
        raise

    # ============================================================
    # 4) Saídas
    # ============================================================
    summary = SummaryReport(
        total_devices=len(device_rows),
        valid_devices=len(devices),
        duplicate_devices=n_duplicados,
        outlier_devices=len(outliers),
        initial_gateways=outcome.k_initial,
        final_gateways=outcome.k_final,
        assigned_devices=sum(c.size for c in outcome.clusters),
        unassigned_devices=len(outcome.unassigned_ids),
        connected_components=n_componentes,
        state=outcome.state.value,
        config=config,
        alerts=collect_alerts(outcome, config),
    )

    resultado = PlanningResult(
        outcome=outcome,
        devices=devices,
        gateway_table=build_gateway_table(outcome),
        map_layer=build_map_layer(devices, outcome, outliers),
        summary=summary,
        outlier_report=build_outlier_report(outliers),
        duplicate_report=build_duplicate_report(duplicados),
        outliers=outliers,
        duplicates=duplicados,
        duration_s=time() - inicio,
    )

    notify(progress, "Planejamento concluído", 100)
    logger.success(
        f"🏁 Planejamento {outcome.state.value} | gateways={outcome.k_final} | "
        f"atribuídos={summary.assigned_devices} | sem gateway={summary.unassigned_devices} | "
        f"{resultado.duration_s:.1f}s"
    )
    return resultado
