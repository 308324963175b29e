"""
Approval Runner - Wire the session, engine and reporting for one run.

This module owns the run's terminal states: completed, cancelled, or
failed with the browser deliberately left open for inspection.

Example:
    >>> from portal_approver.config import load_config
    >>> runner = ApprovalRunner(load_config())
    >>> result = await runner.run(["1001", "1002"])
    >>> result.summary
    {'approved': 2, 'approved_two_phase': 0, 'not_found': 0, 'found_but_action_failed': 0}
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, TYPE_CHECKING
import logging

from portal_approver.browsers import BrowserSession
from portal_approver.engine import (
    ActorSwitchController,
    BatchReconciliationEngine,
    ChainBudget,
    InteractionMode,
    LocatorResolver,
    RequestResolver,
    StrategyChainExecutor,
)
from portal_approver.exceptions import BrowserLaunchError, RunCancelledError
from portal_approver.reporting import DiagnosticsCollector, RunLog
from portal_approver.utils.waiting import CancelToken

if TYPE_CHECKING:
    from playwright.async_api import Page
    from portal_approver.config.settings import Settings

logger = logging.getLogger(__name__)


class RunStatus(Enum):
    """Terminal state of a run."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class RunResult:
    """
    Result of an approval run.

    Attributes:
        run_id: Timestamp-based run identifier
        status: Terminal state
        run_log: Records written, complete or partial
        started_at: When the run started
        completed_at: When the run ended
        log_path: CSV run log location
        error: Failure description, if any
        diagnostics_path: Fatal-failure screenshot or note, if captured
        browser_left_open: The session was kept for manual inspection
    """
    run_id: str
    status: RunStatus
    run_log: RunLog
    started_at: datetime
    completed_at: Optional[datetime] = None
    log_path: Optional[Path] = None
    error: Optional[str] = None
    diagnostics_path: Optional[Path] = None
    browser_left_open: bool = False

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def summary(self) -> Dict[str, int]:
        return self.run_log.summary()

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()


class ApprovalRunner:
    """
    Run the batch approval against the configured portal.

    The runner owns the browser session for the whole run. On a fatal
    error it captures diagnostics naming the request and identity in
    progress and, when configured, leaves the browser open.
    """

    def __init__(
        self,
        settings: "Settings",
        session: Optional[BrowserSession] = None,
    ):
        """
        Initialize the runner.

        Args:
            settings: Loaded settings
            session: Browser session (created from settings if None)
        """
        self.settings = settings
        self.session = session or BrowserSession(settings.browser)
        self.engine: Optional[BatchReconciliationEngine] = None

    def build_engine(
        self,
        page: "Page",
        run_log: RunLog,
        diagnostics: DiagnosticsCollector,
        cancel: Optional[CancelToken] = None,
    ) -> BatchReconciliationEngine:
        """Assemble the engine components for ``page`` from settings."""
        approval = self.settings.approval
        mode = InteractionMode(approval.mode)

        locators = LocatorResolver.from_settings(page, self.settings.selectors)
        executor = StrategyChainExecutor(cancel=cancel)
        switcher = ActorSwitchController(
            page,
            locators,
            executor,
            diagnostics=diagnostics,
            identities=self.settings.visit_order().identities,
            settle_ms=approval.switch_settle_ms,
            cancel=cancel,
        )
        requests = RequestResolver(
            page,
            locators,
            executor,
            mode=mode,
            diagnostics=diagnostics,
            budget=ChainBudget(tries=approval.chain_tries, interval_ms=approval.chain_interval_ms),
            search_wait_ms=approval.search_wait_ms,
            poll_interval_ms=approval.poll_interval_ms,
            settle_delay_ms=approval.settle_delay_ms,
            cancel=cancel,
        )
        return BatchReconciliationEngine(
            switcher,
            requests,
            run_log,
            mode=mode,
            batch_size=approval.batch_size,
            retry_on_action_failure=approval.retry_on_action_failure,
            cancel=cancel,
        )

    async def run(self, ids: List[str], cancel: Optional[CancelToken] = None) -> RunResult:
        """
        Approve ``ids`` through the configured VisitOrder.

        Configuration errors are raised before the browser starts. Every
        failure after that is reported in the result.
        """
        visit_order = self.settings.visit_order()
        started_at = datetime.now()
        run_id = started_at.strftime("%Y%m%d_%H%M%S")

        output_dir = Path(self.settings.diagnostics.output_dir)
        run_log = RunLog(output_dir / f"run_{run_id}.csv")
        diagnostics = DiagnosticsCollector(
            output_dir / self.settings.diagnostics.errors_dir,
            run_id=run_id,
            full_page=self.settings.diagnostics.full_page,
        )
        result = RunResult(
            run_id=run_id,
            status=RunStatus.COMPLETED,
            run_log=run_log,
            started_at=started_at,
            log_path=run_log.path,
        )

        logger.info(f"Run {run_id}: {len(ids)} request(s), log at {run_log.path}")

        try:
            page = await self.session.start()
            await self.session.goto(
                self.settings.portal.home_url,
                retries=self.settings.portal.navigation_retries,
                cancel=cancel,
            )
            self.engine = self.build_engine(page, run_log, diagnostics, cancel)

            current = await self.engine.switcher.detect(visit_order.identities)
            logger.info(f"Portal is acting as {current or 'an unrecognized identity'}")

            await self.engine.run(ids, visit_order)
            await self.session.close()

        except RunCancelledError as e:
            logger.warning(f"Run cancelled: {e}")
            result.status = RunStatus.CANCELLED
            result.error = str(e)
            await self.session.close()

        except BrowserLaunchError as e:
            logger.error(f"Browser could not be started: {e}")
            result.status = RunStatus.FAILED
            result.error = str(e)

        except Exception as e:
            result.status = RunStatus.FAILED
            result.error = f"{type(e).__name__}: {e}"
            await self._handle_fatal(e, diagnostics, result)

        finally:
            result.completed_at = datetime.now()
            try:
                run_log.export_json(output_dir / f"run_{run_id}.json")
            except OSError as e:
                logger.warning(f"Could not write run summary: {e}")

        return result

    async def _handle_fatal(
        self,
        error: Exception,
        diagnostics: DiagnosticsCollector,
        result: RunResult,
    ) -> None:
        request_id = self.engine.current_id if self.engine else None
        identity = self.engine.current_identity if self.engine else None
        logger.error(
            f"Fatal error"
            + (f" at {request_id}" if request_id else "")
            + (f" as {identity}" if identity else "")
            + f": {error}"
        )

        page = self.session.page if self.session.is_started else None
        capture = await diagnostics.capture(
            page,
            tag="fatal",
            note=f"Run stopped after {len(result.run_log)} record(s).",
            request_id=request_id,
            identity=identity.label if identity else None,
            error=error,
        )
        result.diagnostics_path = capture.screenshot_path or capture.note_path

        if self.settings.browser.keep_open_on_failure and self.session.is_started:
            self.session.detach()
            result.browser_left_open = True
        else:
            await self.session.close()
