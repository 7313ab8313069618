#gw_planner/src/gw_planner/infrastructure/spreadsheet_reader.py

import os
from typing import Any, Dict, List

import pandas as pd
from loguru import logger

from src.gw_planner.domain.errors import InputError

# cabeçalhos alternativos encontrados nas planilhas de campo
_COLUNAS = {
    "id": "id",
    "poste": "id",
    "post_id": "id",
    "lat": "lat",
    "latitude": "lat",
    "lng": "lng",
    "lon": "lng",
    "long": "lng",
    "longitude": "lng",
}


def read_rows(path: str, max_rows: int = 100000) -> List[Dict[str, Any]]:
    """
    Lê a primeira aba de um XLSX (ou um CSV) e devolve linhas {id, lat, lng}.
    Coordenadas são lidas como texto para preservar vírgula decimal.
    """
    if not os.path.exists(path):
        raise InputError(f"Arquivo não encontrado: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext == ".csv":
        df = pd.read_csv(path, dtype=str, nrows=max_rows, sep=None, engine="python")
    elif ext in (".xlsx", ".xls"):
        df = pd.read_excel(path, sheet_name=0, dtype=str, nrows=max_rows)
    else:
        raise InputError(f"Formato não suportado: {ext} (use .xlsx ou .csv)")

    df = df.rename(columns=lambda c: _COLUNAS.get(str(c).strip().lower(), str(c).strip().lower()))

    faltando = [c for c in ("id", "lat", "lng") if c not in df.columns]
    if faltando:
        raise InputError(f"Colunas obrigatórias ausentes em {path}: {', '.join(faltando)}")

    df = df[["id", "lat", "lng"]].astype(object)
    df = df.where(df.notna(), None)
    linhas = df.to_dict(orient="records")

    logger.info(f"📥 {len(linhas)} linhas lidas de {path}")
    return linhas
