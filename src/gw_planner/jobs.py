#gw_planner/src/gw_planner/jobs.py

from typing import Any, Dict, Optional

import numpy as np
from loguru import logger

from src.gw_planner.application.planning_use_case import run_planning
from src.gw_planner.domain.config import load_config
from src.gw_planner.infrastructure.progress import RQJobProgress
from src.gw_planner.infrastructure.spreadsheet_reader import read_rows
from src.gw_planner.reporting.export_plan_xlsx import export_plan


def processar_planejamento(
    input_path: str,
    output_root: str = "output",
    config_path: Optional[str] = None,
    fixed_path: Optional[str] = None,
    run_id: Optional[str] = None,
    seed: Optional[int] = None,
    progress=None,
) -> Dict[str, Any]:
    """Job completo: planilha → planejamento → artefatos. Executado pelo worker rq."""
    logger.info(f"📦 Job de planejamento | arquivo={input_path} | run_id={run_id}")

    config = load_config(config_path)
    rows = read_rows(input_path)
    fixed_rows = read_rows(fixed_path) if fixed_path else None

    if progress is None:
        progress = RQJobProgress()

    result = run_planning(
        rows,
        config=config,
        fixed_rows=fixed_rows,
        progress=progress,
        rng=np.random.default_rng(seed),
    )
    artefatos = export_plan(result, output_root=output_root, run_id=run_id)

    return {
        **artefatos,
        "state": result.outcome.state.value,
        "k_initial": result.outcome.k_initial,
        "k_final": result.outcome.k_final,
        "n_devices": len(result.devices),
        "outliers": len(result.outliers),
        "alerts": result.summary.alerts,
    }
