#gw_planner/src/gw_planner/domain/errors.py


class PlannerError(Exception):
    """Base de todos os erros do planejador de gateways."""


class InputError(PlannerError):
    """Entrada inválida (campos ausentes, conjunto vazio, coordenadas não numéricas)."""


class InvalidCoordinate(InputError):
    def __init__(self, value):
        self.value = value
        super().__init__(f"Coordenada inválida: {value!r}")


class SeedingExhausted(PlannerError):
    """k-means++ não encontrou candidatos separados o suficiente para o k atual."""

    def __init__(self, slot: int, k: int, min_distance_m: float):
        self.slot = slot
        self.k = k
        self.min_distance_m = min_distance_m
        super().__init__(
            f"Nenhum candidato elegível para o medoide {slot + 1}/{k} "
            f"(distância mínima entre gateways {min_distance_m:.0f} m)"
        )


class NoServiceableDevices(PlannerError):
    pass


class ConstraintViolation(PlannerError):
    """Cluster fora das restrições (capacidade, saltos, relay load, separação)."""

    def __init__(self, cluster_index: int, reason: str):
        self.cluster_index = cluster_index
        self.reason = reason
        # cluster_index < 0: violação global (ex.: postes sem gateway)
        super().__init__(f"Cluster {cluster_index + 1}: {reason}" if cluster_index >= 0 else reason)


class ValidatorUnitFailure(PlannerError):
    pass


class ConfigLoadError(PlannerError):
    pass
