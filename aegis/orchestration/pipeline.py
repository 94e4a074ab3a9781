"""Request pipeline: GATHERING → RISK_CHECK → GATE → EXECUTE/SKIP → REPORT → DONE."""
from __future__ import annotations

import logging
import uuid
from typing import Any, Awaitable, Callable, Mapping, Sequence

from ..config import SafetyConfig
from ..errors import RequestValidationError
from ..gating.approval import ApprovalGate
from ..gating.consensus import ConsensusCoordinator, Voter
from ..interfaces.analysis import AnalysisProvider, WalletRiskProvider
from ..interfaces.reporter import ReportGenerator
from ..interfaces.swap import SwapProvider
from ..models import ActionProposal, Holding, PortfolioReport, TradeExplanation
from ..reporting.templates import (
    TemplateReporter,
    format_opportunities,
    format_portfolio_analysis,
    format_report,
    format_risk_alert,
    format_token_analysis,
    short_id,
)
from ..risk.ledger import PositionLedger
from .requests import (
    EXECUTION_KINDS,
    AnalyzeTokenRequest,
    RebalanceRequest,
    ReportRequest,
    ScanRequest,
    SwarmRequest,
    TradeRequest,
)
from .state import ExecutionPlan, ExecutionResult, OrchestrationState, Stage, apply_update

logger = logging.getLogger(__name__)

Update = Mapping[str, Any]
Transition = Callable[[OrchestrationState], Awaitable[tuple[Update, Stage]]]


class OrchestrationPipeline:
    """Runs one request through the risk-gated state machine.

    The pipeline holds only service handles and configuration; every run gets
    its own state, so concurrent runs never share anything but the
    collaborators. A failing collaborator degrades its stage instead of
    aborting, and every run finishes with a non-empty ``final_response``.
    """

    def __init__(
        self,
        *,
        analyst: AnalysisProvider,
        wallet_risk: WalletRiskProvider,
        gate: ApprovalGate,
        swap: SwapProvider,
        reporter: ReportGenerator | None = None,
        safety: SafetyConfig | None = None,
        consensus: ConsensusCoordinator | None = None,
        voters: Sequence[Voter] = (),
        ledger: PositionLedger | None = None,
    ) -> None:
        self._analyst = analyst
        self._wallet_risk = wallet_risk
        self._gate = gate
        self._swap = swap
        self._reporter = reporter or TemplateReporter()
        self._fallback_reporter = TemplateReporter()
        self._safety = safety or SafetyConfig()
        self._consensus = consensus
        self._voters = tuple(voters)
        self._ledger = ledger

        self._transitions: dict[Stage, Transition] = {
            Stage.GATHERING: self._gather,
            Stage.RISK_CHECK: self._risk_check,
            Stage.GATE: self._gate_stage,
            Stage.EXECUTE: self._execute,
            Stage.SKIP: self._skip,
            Stage.REPORT: self._report,
        }

    async def run(self, request: SwarmRequest, wallet_id: str) -> OrchestrationState:
        """Drive ``request`` from GATHERING to DONE and return the final state."""
        state = OrchestrationState(request=request, wallet_id=wallet_id)
        stage = Stage.GATHERING

        while stage is not Stage.DONE:
            state = apply_update(state, {"trace": stage.value})
            logger.debug("Pipeline %s · %s · %s", wallet_id, request.kind, stage.value)
            try:
                update, next_stage = await self._transitions[stage](state)
            except Exception as e:
                logger.exception("Stage %s failed for %s", stage.value, wallet_id)
                update, next_stage = self._on_failure(stage, state, e)
            state = apply_update(state, update)
            stage = next_stage

        state = apply_update(state, {"trace": Stage.DONE.value})
        logger.info(
            "Pipeline done — %s · %s · %s",
            wallet_id,
            request.kind,
            " → ".join(state.trace),
        )
        return state

    def _on_failure(
        self, stage: Stage, state: OrchestrationState, error: Exception
    ) -> tuple[Update, Stage]:
        if stage is Stage.GATHERING:
            return {}, Stage.RISK_CHECK
        if stage is Stage.RISK_CHECK:
            return {"risk_assessment": None, "is_safe": False}, Stage.GATE
        if stage is Stage.EXECUTE:
            return {"execution_result": ExecutionResult(success=False, error=str(error))}, Stage.REPORT
        if stage is Stage.REPORT:
            return {"final_response": self._fallback_text(state)}, Stage.DONE
        return (
            {"final_response": f"⛔ **Operation halted**\n{stage.value} failed: {error}"},
            Stage.REPORT,
        )

    # ------------------------------------------------------------------
    # GATHERING
    # ------------------------------------------------------------------

    async def _gather(self, state: OrchestrationState) -> tuple[Update, Stage]:
        request = state.request
        intel: dict[str, Any] = {}

        try:
            if isinstance(request, AnalyzeTokenRequest):
                analysis = await self._analyst.analyze_token(request.asset_id)
                if analysis is not None:
                    intel["token_analysis"] = analysis
            elif isinstance(request, TradeRequest):
                analysis = await self._analyst.analyze_token(request.analysis_asset)
                if analysis is not None:
                    intel["token_analysis"] = analysis
            elif isinstance(request, (RebalanceRequest, ReportRequest)):
                portfolio = await self._analyst.analyze_portfolio(state.wallet_id)
                if portfolio is not None:
                    intel["portfolio_analysis"] = portfolio
            elif isinstance(request, ScanRequest):
                intel["opportunities"] = tuple(await self._analyst.scan_opportunities())
        except Exception as e:
            logger.error("Analysis failed for %s (%s): %s", state.wallet_id, request.kind, e)

        return {"intel": intel}, Stage.RISK_CHECK

    # ------------------------------------------------------------------
    # RISK_CHECK
    # ------------------------------------------------------------------

    async def _risk_check(self, state: OrchestrationState) -> tuple[Update, Stage]:
        try:
            assessment = await self._wallet_risk.assess_wallet(state.wallet_id)
        except Exception as e:
            logger.error("Wallet risk unavailable for %s: %s", state.wallet_id, e)
            return {"risk_assessment": None, "is_safe": False}, Stage.GATE

        is_safe = assessment.overall_score >= self._safety.min_wallet_score
        token = state.intel.get("token_analysis")
        if token is not None and token.risk_score >= self._safety.max_asset_risk:
            is_safe = False

        if not is_safe:
            logger.warning(
                "Risk check failed — %s · wallet score %d · asset risk %s",
                state.wallet_id,
                assessment.overall_score,
                token.risk_score if token is not None else "n/a",
            )
        return {"risk_assessment": assessment, "is_safe": is_safe}, Stage.GATE

    # ------------------------------------------------------------------
    # GATE
    # ------------------------------------------------------------------

    async def _gate_stage(self, state: OrchestrationState) -> tuple[Update, Stage]:
        if not state.is_safe:
            text = format_risk_alert(
                state.risk_assessment,
                state.intel.get("token_analysis"),
                self._safety.max_asset_risk,
            )
            return {"final_response": text}, Stage.REPORT

        if state.request.kind not in EXECUTION_KINDS:
            return {}, Stage.SKIP

        proposal = self._build_proposal(state)
        update: dict[str, Any] = {}

        if self._consensus is not None and self._voters:
            result = await self._consensus.poll(proposal, self._voters, state)
            update["consensus"] = result
            if not result.approved:
                update["final_response"] = (
                    f"🗳️ **Consensus Rejected**\n"
                    f"Agents scored this trade {result.final_score:.2f} "
                    f"(needs {self._consensus.threshold:.2f}). Nothing was executed."
                )
                return update, Stage.REPORT

        if await self._gate.evaluate(proposal):
            update["pending_action_id"] = proposal.id
            update["final_response"] = (
                f"⏳ **Approval Required**\n"
                f"This trade is estimated at ${proposal.estimated_value:,.2f}, at or above "
                f"the ${self._gate.threshold:,.2f} approval threshold.\n"
                f"Action {proposal.id} is waiting for your sign-off; nothing was executed."
            )
            return update, Stage.REPORT

        return update, Stage.EXECUTE

    def _build_proposal(self, state: OrchestrationState) -> ActionProposal:
        request = _trade_request(state)
        value, known = self._estimate_value(state, request)
        description = (
            f"Swap {request.amount} base units ({request.mode}) "
            f"{short_id(request.input_asset)} → {short_id(request.output_asset)}"
        )
        if not known:
            description += " · value unknown"
        return ActionProposal(
            id=uuid.uuid4().hex,
            type="trade",
            estimated_value=value,
            description=description,
            payload={
                "walletId": state.wallet_id,
                "inputMint": request.input_asset,
                "outputMint": request.output_asset,
                "amount": str(request.amount),
                "mode": request.mode,
            },
        )

    def _estimate_value(self, state: OrchestrationState, request: TradeRequest) -> tuple[float, bool]:
        if request.estimated_value_usd is not None:
            return request.estimated_value_usd, True

        asset = request.priced_asset
        decimals = request.amount_decimals
        price: float | None = None

        if self._ledger is not None:
            for position in self._ledger.positions(state.wallet_id):
                if position.asset_id != asset:
                    continue
                if decimals is None:
                    decimals = position.decimals
                if position.current_price > 0:
                    price = position.current_price
                break

        token = state.intel.get("token_analysis")
        if price is None and token is not None and token.asset_id == asset and token.price > 0:
            price = token.price

        if price is None or decimals is None:
            logger.warning(
                "No %s for %s; treating trade as requiring approval",
                "price" if price is None else "decimals",
                asset,
            )
            return self._gate.threshold, False

        return request.amount / 10**decimals * price, True

    # ------------------------------------------------------------------
    # EXECUTE / SKIP
    # ------------------------------------------------------------------

    async def _execute(self, state: OrchestrationState) -> tuple[Update, Stage]:
        request = _trade_request(state)
        try:
            quote = await self._swap.quote(
                request.input_asset, request.output_asset, request.amount, request.mode
            )
            transaction = await self._swap.build(quote, state.wallet_id)
        except Exception as e:
            logger.error("Execution failed for %s: %s", state.wallet_id, e)
            return (
                {"execution_result": ExecutionResult(success=False, error=str(e))},
                Stage.REPORT,
            )

        logger.info(
            "Transaction prepared — %s · %s → %s · out %d",
            state.wallet_id,
            short_id(quote.input_asset),
            short_id(quote.output_asset),
            quote.output_amount,
        )
        return (
            {
                "execution_plan": ExecutionPlan(quote=quote, transaction=transaction),
                "execution_result": ExecutionResult(success=True),
            },
            Stage.REPORT,
        )

    async def _skip(self, state: OrchestrationState) -> tuple[Update, Stage]:
        return {}, Stage.REPORT

    # ------------------------------------------------------------------
    # REPORT
    # ------------------------------------------------------------------

    async def _report(self, state: OrchestrationState) -> tuple[Update, Stage]:
        if state.final_response:
            return {}, Stage.DONE

        try:
            text = await self._synthesize(state, self._reporter)
        except Exception as e:
            logger.error("Report generation failed, using templates: %s", e)
            text = await self._synthesize(state, self._fallback_reporter)

        return {"final_response": text or "Task completed."}, Stage.DONE

    async def _synthesize(self, state: OrchestrationState, reporter: ReportGenerator) -> str:
        request = state.request
        result = state.execution_result

        if result is not None and not result.success:
            return f"❌ **Execution Failed**\n{result.error}\nNo transaction was prepared."

        if isinstance(request, TradeRequest) and state.execution_plan is not None:
            plan = state.execution_plan
            votes = state.consensus.votes if state.consensus is not None else ()
            explanation = await reporter.explain_trade(
                TradeExplanation(
                    action="swap",
                    input_token=plan.quote.input_asset,
                    output_token=plan.quote.output_asset,
                    amount=plan.quote.input_amount,
                    reason="User request",
                    confidence=1.0,
                    agent_votes=votes,
                )
            )
            tx = plan.transaction
            return (
                f"{explanation}\n\n"
                f"📝 **Transaction Prepared**\n"
                f"Reference: {tx.serialized_transaction[:16]}\n"
                f"Expected output: {plan.quote.output_amount} · "
                f"price impact {plan.quote.price_impact:.2f}%\n"
                f"Estimated fee: {tx.estimated_fee} lamports\n"
                f"Sign to execute before {tx.expires_at:%Y-%m-%d %H:%M:%S} UTC."
            )

        if isinstance(request, AnalyzeTokenRequest):
            analysis = state.intel.get("token_analysis")
            if analysis is None:
                return f"Analysis unavailable for {request.asset_id}."
            return format_token_analysis(analysis)

        portfolio = state.intel.get("portfolio_analysis")
        if isinstance(request, ReportRequest):
            if portfolio is None:
                return "Portfolio analysis unavailable; no report was generated."
            report = await reporter.generate_report(_portfolio_report(request.period, portfolio))
            return format_report(report)

        if isinstance(request, RebalanceRequest):
            if portfolio is None:
                return "Portfolio analysis unavailable; no rebalance suggestions."
            return format_portfolio_analysis(portfolio)

        if isinstance(request, ScanRequest):
            return format_opportunities(state.intel.get("opportunities", ()))

        return "Task completed."

    def _fallback_text(self, state: OrchestrationState) -> str:
        if state.execution_result is not None and not state.execution_result.success:
            return f"❌ **Execution Failed**\n{state.execution_result.error}"
        return f"Request '{state.request.kind}' finished, but the report could not be generated."


def _trade_request(state: OrchestrationState) -> TradeRequest:
    if not isinstance(state.request, TradeRequest):
        raise RequestValidationError(
            f"'{state.request.kind}' requests cannot be executed"
        )
    return state.request


def _portfolio_report(period: str, portfolio: Any) -> PortfolioReport:
    holdings: list[Holding] = sorted(portfolio.holdings, key=lambda h: h.pnl_percentage, reverse=True)
    return PortfolioReport(
        period=period,
        start_value=portfolio.total_value - sum(h.pnl for h in holdings),
        end_value=portfolio.total_value,
        top_performers=tuple(holdings[:3]),
        bottom_performers=tuple(reversed(holdings[-3:])) if len(holdings) > 3 else (),
        insights=portfolio.suggestions,
    )
