#gw_planner/src/gw_planner/tasks.py

import argparse
import uuid

from loguru import logger

from src.gw_planner.infrastructure.queue_factory import (
    fila_planejamento,
    PLANNING_TIMEOUT,
)
from src.gw_planner.jobs import processar_planejamento


# ============================================================
# 🚀 CLI → Enfileira job de planejamento
# ============================================================

def enfileirar_planejamento(
    input_path: str,
    output_root: str = "output",
    config_path: str | None = None,
    fixed_path: str | None = None,
    seed: int | None = None,
    queue=None,
):
    queue = queue or fila_planejamento()
    run_id = str(uuid.uuid4())

    job = queue.enqueue(
        processar_planejamento,
        input_path,
        output_root,
        config_path,
        fixed_path,
        run_id,
        seed,
        job_id=run_id,
        job_timeout=PLANNING_TIMEOUT,
    )

    logger.info(
        f"🚀 Job enfileirado com sucesso | "
        f"job_id={job.id} | "
        f"arquivo={input_path}"
    )
    return job


def main():
    parser = argparse.ArgumentParser(description="Enfileirar job de planejamento de gateways")

    parser.add_argument("arquivo", help="Caminho do arquivo XLSX/CSV de postes")
    parser.add_argument("--output", default="output", help="Diretório raiz de saída")
    parser.add_argument("--config", help="Arquivo JSON de configuração")
    parser.add_argument("--fixos", help="XLSX/CSV com gateways pré-existentes")
    parser.add_argument("--seed", type=int)

    args = parser.parse_args()

    enfileirar_planejamento(
        args.arquivo,
        output_root=args.output,
        config_path=args.config,
        fixed_path=args.fixos,
        seed=args.seed,
    )


if __name__ == "__main__":
    main()
