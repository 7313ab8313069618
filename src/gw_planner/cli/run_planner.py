#gw_planner/src/gw_planner/cli/run_planner.py

import argparse
import uuid

import numpy as np
from loguru import logger

from src.gw_planner.application.planning_use_case import run_planning
from src.gw_planner.domain.config import load_config
from src.gw_planner.infrastructure.progress import LoggerProgress
from src.gw_planner.infrastructure.spreadsheet_reader import read_rows
from src.gw_planner.reporting.export_plan_xlsx import export_plan


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Planejamento de posição de gateways sobre postes georreferenciados"
    )

    # ============================================================
    # Obrigatórios
    # ============================================================
    parser.add_argument("arquivo", help="XLSX/CSV com colunas id, lat, lng")

    # ============================================================
    # Opcionais
    # ============================================================
    parser.add_argument("--fixos", help="XLSX/CSV com gateways pré-existentes (id, lat, lng)")
    parser.add_argument("--config", help="Arquivo JSON de configuração")
    parser.add_argument("--output", default="output", help="Diretório raiz de saída")
    parser.add_argument("--run_id", help="Identificador da execução (default: uuid4)")
    parser.add_argument("--seed", type=int, help="Semente do sorteio k-means++")
    parser.add_argument("--workers", type=int, help="Threads de validação")

    # ============================================================
    # Overrides da configuração
    # ============================================================
    parser.add_argument("--max_devices_per_gateway", type=int)
    parser.add_argument("--max_hops", type=int)
    parser.add_argument("--hop_distance", type=float)
    parser.add_argument("--max_gateways", type=int)
    parser.add_argument("--max_iterations", type=int)
    parser.add_argument("--min_gateway_distance", type=float)
    parser.add_argument("--max_relay_load", type=int)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    config = load_config(args.config).with_overrides(
        max_devices_per_gateway=args.max_devices_per_gateway,
        max_hops=args.max_hops,
        hop_distance=args.hop_distance,
        max_gateways=args.max_gateways,
        max_iterations=args.max_iterations,
        min_gateway_distance=args.min_gateway_distance,
        max_relay_load=args.max_relay_load,
    )
    run_id = args.run_id or str(uuid.uuid4())

    # ============================================================
    # Logs
    # ============================================================
    logger.info("==============================================")
    logger.info("🚀 Iniciando planejamento de gateways via CLI")
    logger.info("==============================================")
    logger.info(f"📦 arquivo           = {args.arquivo}")
    logger.info(f"🏭 fixos             = {args.fixos or '-'}")
    logger.info(f"🆔 run_id            = {run_id}")
    logger.info("----- Parâmetros -----")
    for campo, valor in config.to_dict().items():
        logger.info(f"⚙️ {campo:<24} = {valor}")

    # ============================================================
    # Execução
    # ============================================================
    rows = read_rows(args.arquivo)
    fixed_rows = read_rows(args.fixos) if args.fixos else None

    result = run_planning(
        rows,
        config=config,
        fixed_rows=fixed_rows,
        progress=LoggerProgress(),
        rng=np.random.default_rng(args.seed),
        max_workers=args.workers,
    )
    artefatos = export_plan(result, output_root=args.output, run_id=run_id)

    print("\n" + result.summary.to_text())
    print("=== ARTEFATOS ===")
    for campo in ("run_id", "gateways_xlsx", "map_layer", "summary"):
        print(f"{campo}: {artefatos.get(campo, 'N/A')}")

    return result


if __name__ == "__main__":
    main()
