from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Sequence

from ..core.constants import DEFAULT_ROTATION_INTERVAL_SECONDS
from .issuer import TokenIssuer
from .model import Token

logger = logging.getLogger(__name__)


class RotationWorker:
    """Background thread that rotates lapsed tokens on a fixed interval.

    `on_rotated` is called with the freshly issued tokens so a host display can
    re-render.
    """

    def __init__(
        self,
        issuer: TokenIssuer,
        *,
        interval_seconds: float = DEFAULT_ROTATION_INTERVAL_SECONDS,
        on_rotated: Optional[Callable[[Sequence[Token]], None]] = None,
    ):
        self._issuer = issuer
        self._interval = float(interval_seconds)
        self._on_rotated = on_rotated
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="token-rotation", daemon=True)
        self._thread.start()
        logger.info("Token rotation worker started (interval=%.1fs)", self._interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def tick(self) -> Sequence[Token]:
        issued = self._issuer.rotate_due()
        if issued and self._on_rotated is not None:
            self._on_rotated(issued)
        return issued

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.tick()
            except Exception:
                # Keep rotating other sessions on the next tick.
                logger.exception("Token rotation tick failed")
