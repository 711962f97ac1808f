"""
Engine registry: one RetryEngine per line/slot.

Owned by the composition root. Engines are created lazily with the
registry's shared settings and factory arguments.
"""

from typing import Any, Optional

import structlog

from tunnel_backoff.config import Settings
from tunnel_backoff.retry.engine import RetryEngine

logger = structlog.get_logger(__name__)


class EngineRegistry:
    """
    Maps slot identifiers to RetryEngine instances.

    Attributes:
        settings: Settings handed to every engine created here
    """

    def __init__(self, settings: Optional[Settings] = None, **engine_kwargs: Any):
        """
        Args:
            settings: Settings shared by all engines
            **engine_kwargs: Extra RetryEngine keyword arguments (clock, rng, ...)
        """
        self.settings = settings or Settings()
        self._engine_kwargs = engine_kwargs
        self._engines: dict[int, RetryEngine] = {}

    def get_or_create(self, slot_id: int, carrier_config: Optional[str] = None) -> RetryEngine:
        """
        Engine for ``slot_id``, created on first use.

        ``carrier_config`` only applies when the engine is created; use
        RetryEngine.on_configuration_changed() to replace it afterwards.
        """
        engine = self._engines.get(slot_id)
        if engine is None:
            engine = RetryEngine(
                self.settings,
                carrier_config=carrier_config,
                slot_id=slot_id,
                **self._engine_kwargs,
            )
            self._engines[slot_id] = engine
            logger.info("Engine created", slot_id=slot_id)
        return engine

    def get(self, slot_id: int) -> Optional[RetryEngine]:
        return self._engines.get(slot_id)

    def release(self, slot_id: int) -> Optional[RetryEngine]:
        """Detach and return the engine for ``slot_id``, if any."""
        engine = self._engines.pop(slot_id, None)
        if engine is not None:
            logger.info("Engine released", slot_id=slot_id)
        return engine

    def release_all(self) -> None:
        for slot_id in list(self._engines):
            self.release(slot_id)

    def __contains__(self, slot_id: object) -> bool:
        return slot_id in self._engines

    def __len__(self) -> int:
        return len(self._engines)
