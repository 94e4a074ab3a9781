"""Plain-text renderings of engine results, and a template-based reporter."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from ..models import (
    Opportunity,
    PortfolioAnalysis,
    PortfolioReport,
    Report,
    ReportSection,
    RiskAssessment,
    TokenAnalysis,
    TradeExplanation,
)


def short_id(value: str) -> str:
    if len(value) > 16:
        return f"{value[:6]}...{value[-4:]}"
    return value


def format_risk_alert(
    assessment: RiskAssessment | None,
    token: TokenAnalysis | None = None,
    max_asset_risk: float | None = None,
) -> str:
    lines = ["⚠️ **Risk Alert**", "The risk check halted this operation."]
    if assessment is None:
        lines.append("Wallet risk could not be assessed, so nothing was executed.")
    else:
        lines.append(f"Your portfolio risk score is {assessment.overall_score}/100.")
        if assessment.warnings:
            lines.append("Warnings: " + "; ".join(assessment.warnings))
        if assessment.recommendations:
            lines.append("Recommendations: " + ", ".join(assessment.recommendations))
    if token is not None and max_asset_risk is not None and token.risk_score >= max_asset_risk:
        lines.append(
            f"{token.symbol} risk score is {token.risk_score:g}/10 "
            f"(limit below {max_asset_risk:g})."
        )
    return "\n".join(lines)


def format_token_analysis(a: TokenAnalysis) -> str:
    signals = "\n".join(f"- {s.message}" for s in a.signals) or "- No signals"
    return (
        f"📊 **Analysis: {a.symbol}**\n"
        f"Price: ${a.price:,.6g} ({a.price_change_24h:+.2f}% 24h)\n"
        f"Liquidity: ${a.liquidity:,.0f} · Volume 24h: ${a.volume_24h:,.0f}\n"
        f"Recommendation: {a.recommendation.upper()}\n"
        f"Risk Score: {a.risk_score:g}/10\n"
        f"\n"
        f"Signals:\n{signals}"
    )


def format_portfolio_analysis(p: PortfolioAnalysis) -> str:
    holdings = "\n".join(
        f"- {h.symbol}: ${h.value:,.2f} ({h.percentage:.1f}%) · P&L {h.pnl_percentage:+.2f}%"
        for h in p.holdings
    ) or "- No holdings"
    suggestions = "\n".join(f"- {s}" for s in p.suggestions) or "- Portfolio is within limits"
    return (
        f"📋 **Portfolio** — ${p.total_value:,.2f}\n"
        f"Diversification: {p.diversification_score:.0f}/100 · Risk: {p.risk_score:.0f}/100\n"
        f"\n"
        f"Holdings:\n{holdings}\n"
        f"\n"
        f"Suggestions:\n{suggestions}"
    )


def format_opportunities(opportunities: Iterable[Opportunity]) -> str:
    items = list(opportunities)
    if not items:
        return "🔍 No opportunities found right now."
    lines = [f"🔍 **{len(items)} opportunities**"]
    for o in items:
        lines.append(
            f"- {o.asset} · {o.type} · {o.risk_level} risk · "
            f"confidence {o.confidence:.0%}: {o.description}"
        )
    return "\n".join(lines)


def format_report(report: Report) -> str:
    parts = [f"## {report.title}", report.summary]
    for section in report.sections:
        if section.content and section.content != report.summary:
            parts.append(f"### {section.heading}\n{section.content}")
    return "\n\n".join(p for p in parts if p)


class TemplateReporter:
    """Deterministic reporter used when no language model is configured."""

    async def explain_trade(self, trade: TradeExplanation) -> str:
        votes = ""
        if trade.agent_votes:
            yes = sum(1 for v in trade.agent_votes if v.vote)
            votes = f"\nAgents in favour: {yes}/{len(trade.agent_votes)}"
        return (
            f"🔁 **{trade.action.upper()}** {trade.amount} units of "
            f"{short_id(trade.input_token)} → {short_id(trade.output_token)}\n"
            f"Reason: {trade.reason} · Confidence {trade.confidence:.0%}"
            f"{votes}"
        )

    async def generate_report(self, portfolio: PortfolioReport) -> Report:
        change = portfolio.end_value - portfolio.start_value
        pct = change / portfolio.start_value * 100 if portfolio.start_value else 0.0
        summary = (
            f"Portfolio value ${portfolio.end_value:,.2f} "
            f"({change:+,.2f} / {pct:+.2f}% over the period)."
        )

        sections: list[ReportSection] = []
        if portfolio.top_performers:
            sections.append(
                ReportSection(
                    heading="Top performers",
                    content="\n".join(
                        f"- {h.symbol}: {h.pnl_percentage:+.2f}%" for h in portfolio.top_performers
                    ),
                )
            )
        if portfolio.bottom_performers:
            sections.append(
                ReportSection(
                    heading="Bottom performers",
                    content="\n".join(
                        f"- {h.symbol}: {h.pnl_percentage:+.2f}%" for h in portfolio.bottom_performers
                    ),
                )
            )
        if portfolio.insights:
            sections.append(
                ReportSection(
                    heading="Insights",
                    content="\n".join(f"- {i}" for i in portfolio.insights),
                )
            )

        return Report(
            title=f"{portfolio.period} Portfolio Report",
            summary=summary,
            sections=tuple(sections),
            generated_at=datetime.now(timezone.utc),
        )
