"""Execution use cases: open, assign, start and complete repair work."""

from __future__ import annotations

import logging

from workshop_lifecycle.core.clock import IClock
from workshop_lifecycle.core.context import ActorContext
from workshop_lifecycle.core.enums import EventType
from workshop_lifecycle.core.errors import EntityNotFound, ExecutionAlreadyExists
from workshop_lifecycle.core.interfaces import (
    IEventBus,
    IExecutionRepository,
    IOrderRepository,
)
from workshop_lifecycle.core.models import Execution
from workshop_lifecycle.core.result import Result
from workshop_lifecycle.domain import execution as execution_rules
from workshop_lifecycle.domain.events import make_event
from workshop_lifecycle.domain.transitions import validate_execution_role

from .boundary import run_use_case

logger = logging.getLogger(__name__)

_SOURCE = "executions"


class ExecutionService:
    def __init__(
        self,
        executions: IExecutionRepository,
        orders: IOrderRepository,
        bus: IEventBus,
        clock: IClock,
    ) -> None:
        self._executions = executions
        self._orders = orders
        self._bus = bus
        self._clock = clock

    async def create_for_order(
        self,
        order_id: str,
        actor: ActorContext,
        mechanic_id: str | None = None,
    ) -> Result[Execution]:
        return await run_use_case(
            "execution.create",
            self._create_for_order(order_id, actor, mechanic_id),
            order_id=order_id,
        )

    async def assign_mechanic(
        self, execution_id: str, mechanic_id: str, actor: ActorContext,
    ) -> Result[Execution]:
        return await run_use_case(
            "execution.assign_mechanic",
            self._assign(execution_id, mechanic_id, actor),
            execution_id=execution_id,
        )

    async def start(self, execution_id: str, actor: ActorContext) -> Result[Execution]:
        return await run_use_case(
            "execution.start", self._start(execution_id, actor),
            execution_id=execution_id,
        )

    async def complete(
        self,
        execution_id: str,
        actor: ActorContext,
        notes: str | None = None,
    ) -> Result[Execution]:
        return await run_use_case(
            "execution.complete", self._complete(execution_id, actor, notes),
            execution_id=execution_id,
        )

    async def get_execution(self, execution_id: str) -> Result[Execution]:
        return await run_use_case(
            "execution.get", self._load(execution_id), execution_id=execution_id,
        )

    # -- Implementation ----------------------------------------------------

    async def _load(self, execution_id: str) -> Execution:
        execution = await self._executions.find_by_id(execution_id)
        if execution is None:
            raise EntityNotFound("Execution", execution_id)
        return execution

    async def _create_for_order(
        self, order_id: str, actor: ActorContext, mechanic_id: str | None,
    ) -> Execution:
        validate_execution_role(actor, "open executions")
        order = await self._orders.find_by_id(order_id)
        if order is None:
            raise EntityNotFound("Order", order_id)
        if await self._executions.find_by_order_id(order_id) is not None:
            raise ExecutionAlreadyExists(order_id)

        execution = execution_rules.open_execution(order, self._clock.now(), mechanic_id)
        stored = await self._executions.create(execution)
        logger.info("Execution opened: id=%s order=%s", stored.id, order_id)
        await self._publish(EventType.EXECUTION_CREATED, stored)
        return stored

    async def _assign(
        self, execution_id: str, mechanic_id: str, actor: ActorContext,
    ) -> Execution:
        validate_execution_role(actor, "assign mechanics")
        execution = await self._load(execution_id)
        updated = execution_rules.assign_mechanic(execution, mechanic_id, self._clock.now())
        stored = await self._executions.update(updated)
        logger.info("Execution %s assigned to mechanic %s", execution_id, mechanic_id)
        return stored

    async def _start(self, execution_id: str, actor: ActorContext) -> Execution:
        validate_execution_role(actor, "start executions")
        execution = await self._load(execution_id)
        stored = await self._executions.update(
            execution_rules.start(execution, self._clock.now())
        )
        logger.info("Execution started: id=%s", execution_id)
        await self._publish(
            EventType.EXECUTION_STATUS_CHANGED, stored,
            previous_status=execution.status,
        )
        return stored

    async def _complete(
        self, execution_id: str, actor: ActorContext, notes: str | None,
    ) -> Execution:
        validate_execution_role(actor, "complete executions")
        execution = await self._load(execution_id)
        stored = await self._executions.update(
            execution_rules.complete(execution, self._clock.now(), notes)
        )
        logger.info("Execution completed: id=%s", execution_id)
        await self._publish(
            EventType.EXECUTION_STATUS_CHANGED, stored,
            previous_status=execution.status,
        )
        await self._publish(EventType.EXECUTION_COMPLETED, stored)
        return stored

    async def _publish(self, event_type: EventType, execution: Execution, **extra) -> None:
        await self._bus.publish(make_event(
            event_type,
            execution.id,
            version=execution.version,
            timestamp=execution.updated_at,
            source=_SOURCE,
            order_id=execution.order_id,
            mechanic_id=execution.mechanic_id,
            status=execution.status,
            **extra,
        ))
