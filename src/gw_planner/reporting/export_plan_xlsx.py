# =========================================================
# 📦 src/gw_planner/reporting/export_plan_xlsx.py
# =========================================================

import json
import os
import uuid
from typing import Dict, Optional

import pandas as pd
from loguru import logger

from src.gw_planner.application.planning_use_case import PlanningResult


# =========================================================
# 📤 Exportação principal
# =========================================================
def export_plan(result: PlanningResult, output_root: str = "output", run_id: Optional[str] = None) -> Dict[str, str]:
    """
    Grava os artefatos de um planejamento em output_root/<run_id>/.
    Cada execução tem seu próprio diretório.
    """
    run_id = run_id or str(uuid.uuid4())
    output_dir = os.path.join(output_root, run_id)
    os.makedirs(output_dir, exist_ok=True)

    xlsx_path = os.path.join(output_dir, "gateways.xlsx")
    geojson_path = os.path.join(output_dir, "map_layer.geojson")
    summary_path = os.path.join(output_dir, "summary.txt")

    with pd.ExcelWriter(xlsx_path, engine="openpyxl") as writer:
        result.gateway_table.to_excel(writer, sheet_name="Gateways", index=False)
        result.outlier_report.to_excel(writer, sheet_name="Outliers", index=False)
        result.duplicate_report.to_excel(writer, sheet_name="Duplicados", index=False)

    with open(geojson_path, "w", encoding="utf-8") as f:
        json.dump(result.map_layer, f, ensure_ascii=False)

    with open(summary_path, "w", encoding="utf-8") as f:
        f.write(result.summary.to_text())

    logger.success(f"✅ Artefatos gerados em {output_dir}")
    return {
        "run_id": run_id,
        "output_dir": output_dir,
        "gateways_xlsx": xlsx_path,
        "map_layer": geojson_path,
        "summary": summary_path,
    }
