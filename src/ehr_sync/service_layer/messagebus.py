# pylint: disable=broad-except
"""Message bus for the EHR sync service following Cosmic Python pattern."""

from __future__ import annotations
import logging
from typing import List, Dict, Callable, Type, TYPE_CHECKING

from ehr_sync.domain.base import Command, Event, Message
from ehr_sync.domain.commands import PerformSync, PerformSyncAll, RegenerateNativeRecords
from ehr_sync.domain.events import NativeRecordsRegenerated, SyncCompleted
from ehr_sync.service_layer import handlers

if TYPE_CHECKING:
    from ehr_sync.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)


async def handle(
    message: Message,
    uow: AbstractUnitOfWork,
):
    """Handle message (command or event) with the appropriate handler."""
    results = []
    queue = [message]

    while queue:
        message = queue.pop(0)

        if isinstance(message, Event):
            await handle_event(message, queue, uow)
        elif isinstance(message, Command):
            cmd_result = await handle_command(message, queue, uow)
            results.append(cmd_result)
        else:
            raise Exception(f"{message} was not an Event or Command")

    return results


async def handle_event(
    event: Event,
    queue: List[Message],
    uow: AbstractUnitOfWork,
):
    """Handle event by calling all registered event handlers."""
    for handler in EVENT_HANDLERS[type(event)]:
        try:
            logger.debug(f"calling handler {handler.__name__} for event {event.name}")
            await handler(event, uow=uow)
            queue.extend(uow.collect_new_events())
        except Exception:
            logger.exception("Exception handling event %s", event)
            continue


async def handle_command(
    command: Command,
    queue: List[Message],
    uow: AbstractUnitOfWork,
):
    """Handle command by calling the registered command handler."""
    logger.info(f"handling command {command}")
    try:
        handler = COMMAND_HANDLERS[type(command)]
        result = await handler(command, uow=uow)
        new_events = uow.collect_new_events()
        logger.info(f"Collected {len(new_events)} events after command: {[e.name for e in new_events]}")
        queue.extend(new_events)
        return result
    except Exception:
        logger.exception("Exception handling command %s", command)
        raise


EVENT_HANDLERS = {
    SyncCompleted: [handlers.record_sync_audit],
    NativeRecordsRegenerated: [handlers.log_regeneration],
}  # type: Dict[Type[Event], List[Callable]]

COMMAND_HANDLERS = {
    PerformSync: handlers.perform_sync,
    PerformSyncAll: handlers.perform_sync_all,
    RegenerateNativeRecords: handlers.regenerate_native_records,
}  # type: Dict[Type[Command], Callable]
