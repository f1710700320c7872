"""Base types of the messages handled by the sync service's message bus."""

from dataclasses import dataclass
from typing import Union


@dataclass
class Command:
    """Request for the service to do something; exactly one handler."""

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass
class Event:
    """Something that happened; any number of handlers, failures are isolated."""

    @property
    def name(self) -> str:
        return type(self).__name__


Message = Union[Command, Event]
