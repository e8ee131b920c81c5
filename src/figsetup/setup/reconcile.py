"""Batch add/update/remove of the figma-console integration across targets.

Targets in a batch are processed one after another.  A failure on one target
is recorded in the batch report and never stops the others; the only
batch-wide failure is install-method resolution for ``add``, which happens
before any target is touched.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from figsetup.errors import ErrorCode, FigsetupError
from figsetup.setup.install_method import InstallChoice, InstallMethod, InstallMethodResolver
from figsetup.setup.registry import ClientRegistry, ScanResult
from figsetup.setup.targets import IntegrationTarget

logger = logging.getLogger("figsetup.reconcile")


@dataclass
class TargetOutcome:
    """Result of one mutation on one target."""

    target_id: str
    name: str
    success: bool
    message: str
    code: ErrorCode | None = None  # set on FigsetupError failures


@dataclass
class BatchReport:
    action: str
    outcomes: list[TargetOutcome] = field(default_factory=list)
    method: InstallMethod | None = None  # set for add batches

    @property
    def succeeded(self) -> list[TargetOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[TargetOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def all_ok(self) -> bool:
        return not self.failed


def _pending_add(selected: Sequence[ScanResult], include_configured: bool) -> list[ScanResult]:
    return [r for r in selected if r.detected and (include_configured or not r.configured)]


def existing_token(results: Sequence[ScanResult]) -> str | None:
    """Return the first token found in a scan, for reuse when adding to more clients."""
    for result in results:
        if result.token:
            return result.token
    return None


class ReconciliationEngine:
    """Applies add/update/remove batches over scan results."""

    def __init__(
        self,
        registry: ClientRegistry | None = None,
        resolver: InstallMethodResolver | None = None,
    ) -> None:
        self.registry = registry or ClientRegistry()
        self.resolver = resolver or InstallMethodResolver()

    def scan(self) -> list[ScanResult]:
        """Fresh scan. Results are never cached between batches."""
        return self.registry.scan()

    def add(
        self,
        selected: Sequence[ScanResult],
        token: str,
        choice: InstallChoice = InstallChoice.ON_DEMAND,
        target_dir: Path | str | None = None,
        include_configured: bool = False,
    ) -> BatchReport:
        """Register the integration with every detected, unconfigured target in *selected*.

        With ``include_configured`` existing entries are rewritten too (the
        setup wizard re-registers whatever the user ticked).  The install
        method is resolved once for the whole batch; a ProvisionError from
        that step propagates before any target is modified.
        """
        pending = _pending_add(selected, include_configured)
        if not pending:
            return BatchReport(action="add")
        method = self.resolver.resolve(choice, target_dir)
        return self.add_resolved(pending, token, method, include_configured)

    def add_resolved(
        self,
        selected: Sequence[ScanResult],
        token: str,
        method: InstallMethod,
        include_configured: bool = False,
    ) -> BatchReport:
        """Add with an already resolved install method (e.g. retrying targets that were busy)."""
        report = BatchReport(action="add", method=method)
        for result in _pending_add(selected, include_configured):
            report.outcomes.append(
                self._apply(result.target, "configured", lambda t: t.add(token, method))
            )
        return report

    def update(self, selected: Sequence[ScanResult], token: str) -> BatchReport:
        """Apply a new token to every configured target, keeping each one's install method."""
        report = BatchReport(action="update")
        for result in selected:
            if not result.configured:
                continue

            def _update(target: IntegrationTarget) -> None:
                method = self.resolver.infer(target.read_entry())
                target.update(token, method)

            report.outcomes.append(self._apply(result.target, "updated", _update))
        return report

    def remove(self, selected: Sequence[ScanResult]) -> BatchReport:
        """Remove the integration entry from every configured target in *selected*."""
        report = BatchReport(action="remove")
        for result in selected:
            if not result.configured:
                continue
            report.outcomes.append(self._apply(result.target, "removed", lambda t: t.remove()))
        return report

    def _apply(
        self,
        target: IntegrationTarget,
        verb: str,
        operation: Callable[[IntegrationTarget], None],
    ) -> TargetOutcome:
        try:
            operation(target)
        except FigsetupError as exc:
            logger.warning("%s failed: %s", target.name, exc.message)
            return TargetOutcome(target.id, target.name, False, f"{target.name} failed: {exc.message}", exc.code)
        except Exception as exc:  # noqa: BLE001
            logger.warning("%s failed: %s", target.name, exc, exc_info=True)
            return TargetOutcome(target.id, target.name, False, f"{target.name} failed: {exc}")
        logger.info("%s %s", target.name, verb)
        return TargetOutcome(target.id, target.name, True, f"{target.name} {verb}")
