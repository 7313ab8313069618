#gw_planner/src/gw_planner/domain/config.py

import json
import math
import os
from dataclasses import dataclass, fields, asdict, replace
from pathlib import Path
from typing import Optional, Dict, Any, Union

from loguru import logger

from src.gw_planner.domain.errors import ConfigLoadError

CONFIG_ENV_VAR = "GW_PLANNER_CONFIG"


def _distancia_finita(valor: Any) -> bool:
    # JSON aceita NaN e Infinity
    if isinstance(valor, bool) or not isinstance(valor, (int, float)):
        return False
    return math.isfinite(valor)


@dataclass(frozen=True)
class PlannerConfig:
    """
    Parâmetros de qualidade da rede.

    Distâncias em metros. max_gateways=None deixa o k crescer livremente.
    """
    max_devices_per_gateway: int = 250
    max_hops: int = 15
    hop_distance: float = 150.0
    max_gateways: Optional[int] = None
    max_iterations: int = 10
    min_gateway_distance: float = 300.0
    max_relay_load: int = 300

    def validate(self) -> "PlannerConfig":
        for nome in ("max_devices_per_gateway", "max_hops", "max_iterations", "max_relay_load"):
            v = getattr(self, nome)
            if isinstance(v, bool) or not isinstance(v, int) or v <= 0:
                raise ConfigLoadError(f"{nome} deve ser inteiro > 0 (recebido {v!r})")

        if self.max_gateways is not None:
            if isinstance(self.max_gateways, bool) or not isinstance(self.max_gateways, int) or self.max_gateways <= 0:
                raise ConfigLoadError(f"max_gateways deve ser inteiro > 0 ou null (recebido {self.max_gateways!r})")

        if not _distancia_finita(self.hop_distance) or self.hop_distance <= 0:
            raise ConfigLoadError(f"hop_distance deve ser finito e > 0 (recebido {self.hop_distance!r})")
        if not _distancia_finita(self.min_gateway_distance) or self.min_gateway_distance < 0:
            raise ConfigLoadError(
                f"min_gateway_distance deve ser finito e >= 0 (recebido {self.min_gateway_distance!r})"
            )
        return self

    def with_overrides(self, **overrides) -> "PlannerConfig":
        valores = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **valores).validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# aliases camelCase aceitos no arquivo de configuração
_ALIASES = {
    "maxDevicesPerGateway": "max_devices_per_gateway",
    "maxHops": "max_hops",
    "hopDistance": "hop_distance",
    "maxGateways": "max_gateways",
    "maxIterations": "max_iterations",
    "minGatewayDistance": "min_gateway_distance",
    "maxRelayLoad": "max_relay_load",
}


def _from_mapping(data: Dict[str, Any]) -> PlannerConfig:
    if not isinstance(data, dict):
        raise ConfigLoadError(f"Configuração deve ser um objeto, recebido {type(data).__name__}")

    conhecidos = {f.name for f in fields(PlannerConfig)}
    valores = {}

    for chave, valor in data.items():
        nome = _ALIASES.get(chave, chave)
        if nome not in conhecidos:
            logger.warning(f"⚠️ Opção de configuração desconhecida ignorada: {chave}")
            continue
        valores[nome] = valor

    # inteiros vindos de JSON como 250.0 são aceitos
    for nome in ("max_devices_per_gateway", "max_hops", "max_iterations", "max_relay_load", "max_gateways"):
        v = valores.get(nome)
        if isinstance(v, float) and v.is_integer():
            valores[nome] = int(v)

    return PlannerConfig(**valores).validate()


def load_config(source: Union[None, str, Path, Dict[str, Any]] = None) -> PlannerConfig:
    """
    Carrega a configuração de um dict ou arquivo JSON.

    Qualquer falha (arquivo ausente, JSON inválido, valor fora de faixa)
    volta inteiramente para os defaults, com warning. Nunca levanta.
    """
    if source is None:
        source = os.getenv(CONFIG_ENV_VAR)
        if not source:
            logger.info("⚙️ Nenhuma configuração informada, usando defaults.")
            return PlannerConfig()

    try:
        if isinstance(source, dict):
            cfg = _from_mapping(source)
        else:
            path = Path(source)
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, ValueError) as e:
                # ValueError cobre JSONDecodeError e UnicodeDecodeError
                raise ConfigLoadError(f"Falha lendo {path}: {e}") from e
            cfg = _from_mapping(data)

    except (ConfigLoadError, TypeError) as e:
        logger.warning(f"⚠️ Configuração inválida ({e}), usando defaults.")
        return PlannerConfig()

    logger.info(f"⚙️ Configuração carregada: {cfg.to_dict()}")
    return cfg
