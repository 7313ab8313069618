#gw_planner/src/gw_planner/infrastructure/progress.py

from typing import Optional, Protocol

from loguru import logger


class ProgressSink(Protocol):
    def emit(self, message: str, progress: int) -> None:
        ...


class NullProgress:
    def emit(self, message: str, progress: int) -> None:
        pass


class LoggerProgress:
    def emit(self, message: str, progress: int) -> None:
        logger.info(f"📶 [{progress:3d}%] {message}")


class RQJobProgress:
    """Publica status e percentual no meta do job rq atual."""

    def __init__(self, job=None):
        if job is None:
            from rq import get_current_job
            job = get_current_job()
        self.job = job

    def emit(self, message: str, progress: int) -> None:
        if self.job is None:
            return
        self.job.meta["status_msg"] = message
        self.job.meta["progress"] = int(progress)
        self.job.save_meta()


def notify(sink: Optional[ProgressSink], message: str, progress: int) -> None:
    """Chamada única usada pelo núcleo. Falha do sink não altera o planejamento."""
    if sink is None:
        return
    progress = max(0, min(100, int(progress)))
    try:
        sink.emit(message, progress)
    except Exception as e:
        logger.warning(f"⚠️ Falha no envio de progresso: {e}")
