"""Client detection: one scan over every registered target."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from figsetup.setup import config_store
from figsetup.setup.targets import IntegrationTarget, get_all_targets

logger = logging.getLogger("figsetup.registry")


@dataclass
class ScanResult:
    """State of one target at scan time. Never persisted; rebuilt on every scan."""

    target: IntegrationTarget
    detected: bool
    configured: bool
    token: str | None = None  # unmasked; only file-backed targets expose it


class ClientRegistry:
    """Enumerates known targets and reports presence and configuration in one pass."""

    def __init__(self, targets_factory: Callable[[], list[IntegrationTarget]] = get_all_targets) -> None:
        self._targets_factory = targets_factory

    def scan(self) -> list[ScanResult]:
        """Return one ScanResult per target, in registration order.

        Detection failures of any kind degrade to "not detected" rather than
        propagating.
        """
        return [self._scan_one(target) for target in self._targets_factory()]

    def _scan_one(self, target: IntegrationTarget) -> ScanResult:
        try:
            detected = target.detect()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Detection of %s failed, treating as absent: %s", target.name, exc)
            detected = False

        if not detected:
            return ScanResult(target=target, detected=False, configured=False)

        try:
            configured = target.is_configured()
            token = config_store.extract_token(target.read_entry()) if configured else None
        except Exception as exc:  # noqa: BLE001
            logger.warning("Configuration check of %s failed: %s", target.name, exc)
            configured, token = False, None
        return ScanResult(target=target, detected=True, configured=configured, token=token)
