"""In-process domain event bus."""

from workshop_lifecycle.bus.memory_bus import DeadLetter, InMemoryEventBus

__all__ = ["DeadLetter", "InMemoryEventBus"]
