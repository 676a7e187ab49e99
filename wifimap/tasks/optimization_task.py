"""Celery tasks for running placement searches in a worker."""

from typing import Any, Dict, Optional
import logging

from celery import Task

from wifimap.tasks.celery_app import celery_app
from wifimap.schemas.geometry import RoomModel
from wifimap.schemas.optimization import (
    NetworkConfiguration, OptimizerConfiguration, RouterPlacementConstraints
)
from wifimap.schemas.router import DeviceSpec
from wifimap.services.optimization import PlacementOptimizer

logger = logging.getLogger(__name__)


class PlacementTask(Task):
    """Base task keeping one optimizer (and its cache) per worker process."""

    _optimizer = None

    @property
    def optimizer(self) -> PlacementOptimizer:
        """Lazy optimizer initialization."""
        if self._optimizer is None:
            self._optimizer = PlacementOptimizer()
        return self._optimizer

    def optimizer_for(self, configuration: Optional[Dict[str, Any]]) -> PlacementOptimizer:
        if not configuration:
            return self.optimizer
        # Custom configurations get their own optimizer but share the cache
        return PlacementOptimizer(
            configuration=OptimizerConfiguration.model_validate(configuration),
            cache=self.optimizer.cache,
        )

    def report_progress(self, stage: str, percent: int, **meta):
        """Publish progress when running under a worker."""
        if self.request.called_directly or self.request.is_eager:
            return
        self.update_state(state='PROGRESS', meta={'stage': stage, 'percent': percent, **meta})


@celery_app.task(bind=True, base=PlacementTask, name='wifimap.tasks.optimization_task.run_primary_placement_task')
def run_primary_placement_task(
    self,
    room: Dict[str, Any],
    constraints: Optional[Dict[str, Any]] = None,
    device_spec: Optional[Dict[str, Any]] = None,
    configuration: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Background task ranking router locations for a room.

    Arguments and return value are JSON dicts of the corresponding schemas.
    """
    room_model = RoomModel.model_validate(room)
    logger.info(f"Primary placement task started for room {room_model.id}")
    self.report_progress('evaluating', 0)

    result = self.optimizer_for(configuration).optimize_primary_placement(
        room_model,
        constraints=RouterPlacementConstraints.model_validate(constraints) if constraints else None,
        device_spec=DeviceSpec.model_validate(device_spec) if device_spec else None,
    )

    self.report_progress('completed', 100, recommendations=len(result.recommendations))
    return result.model_dump(mode='json')


@celery_app.task(bind=True, base=PlacementTask, name='wifimap.tasks.optimization_task.run_extender_placement_task')
def run_extender_placement_task(
    self,
    baseline: Dict[str, Any],
    room: Dict[str, Any],
    target_coverage: float = 0.95,
    extender_spec: Optional[Dict[str, Any]] = None,
    configuration: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Background task planning extenders for an existing network."""
    room_model = RoomModel.model_validate(room)
    network = NetworkConfiguration.model_validate(baseline)
    logger.info(
        f"Extender placement task started for room {room_model.id} "
        f"({len(network.routers)} routers, target {target_coverage:.0%})"
    )
    self.report_progress('analyzing', 0)

    strategy = self.optimizer_for(configuration).optimize_extender_placement(
        network,
        room_model,
        target_coverage=target_coverage,
        extender_spec=DeviceSpec.model_validate(extender_spec) if extender_spec else None,
    )

    self.report_progress('completed', 100, extenders=len(strategy.recommendations))
    return strategy.model_dump(mode='json')
