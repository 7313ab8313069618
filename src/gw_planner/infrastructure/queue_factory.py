#gw_planner/src/gw_planner/infrastructure/queue_factory.py

import os

from redis import Redis
from rq import Queue

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")

# fila única: com um worker, os planejamentos rodam um de cada vez
PLANNING_QUEUE = os.getenv("GW_PLANNER_QUEUE", "gw_planning")

# redes com centenas de milhares de postes levam horas
PLANNING_TIMEOUT = int(os.getenv("GW_PLANNER_JOB_TIMEOUT", "36000"))

_redis = None


def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(REDIS_URL)
    return _redis


def fila_planejamento(connection=None) -> Queue:
    return Queue(
        name=PLANNING_QUEUE,
        connection=connection or get_redis(),
        default_timeout=PLANNING_TIMEOUT,
    )
