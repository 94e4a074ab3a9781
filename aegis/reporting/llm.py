"""Language-model reporter against an OpenAI-compatible chat endpoint."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

from ..config import LLMConfig
from ..errors import DataUnavailableError, ProviderValidationError
from ..models import PortfolioReport, Report, ReportSection, TradeExplanation
from ..providers.http import request_json

logger = logging.getLogger(__name__)

EXPLAIN_SYSTEM_PROMPT = (
    "You explain automated crypto trades to the wallet owner in two or three "
    "plain sentences. Never give financial advice beyond the data provided."
)

REPORT_SYSTEM_PROMPT = (
    "You write short portfolio reports. Reply with a JSON object with keys "
    '"title", "summary" and "sections" (a list of {"heading", "content"}). '
    "No prose outside the JSON."
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


def parse_report(raw: str, default_title: str = "Portfolio Report") -> Report:
    """Turn generator output into a Report.

    Anything that is not a well-formed report object is kept verbatim as the
    summary and the content of a single section.
    """
    text = raw.strip()
    try:
        data = json.loads(_FENCE_RE.sub("", text))
        if not isinstance(data, dict) or not isinstance(data.get("summary"), str):
            raise ProviderValidationError("report JSON lacks a summary")
        sections = tuple(
            ReportSection(heading=str(s["heading"]), content=str(s["content"]))
            for s in data.get("sections", [])
        )
        return Report(
            title=str(data.get("title") or default_title),
            summary=data["summary"],
            sections=sections,
            generated_at=datetime.now(timezone.utc),
        )
    except (ValueError, KeyError, TypeError, ProviderValidationError) as e:
        logger.warning("Report output was not structured (%s); using raw text", e)
        return Report(
            title=default_title,
            summary=text,
            sections=(ReportSection(heading=default_title, content=text),),
            generated_at=datetime.now(timezone.utc),
        )


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, int) and not isinstance(value, bool) and abs(value) > 2**53:
        return str(value)
    return value


class LLMReporter:
    """Generates explanations and reports with a chat-completions model."""

    def __init__(self, config: LLMConfig) -> None:
        self.endpoint = config.endpoint
        self.api_key = config.api_key
        self.model = config.model
        self.timeout = config.timeout

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        data = await request_json(
            "POST",
            self.endpoint,
            json={
                "model": self.model,
                "temperature": 0.3,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            },
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise DataUnavailableError(f"Unexpected completion payload: {e}") from e
        if not isinstance(content, str) or not content.strip():
            raise DataUnavailableError("Model returned an empty completion")
        return content.strip()

    async def explain_trade(self, trade: TradeExplanation) -> str:
        payload = json.dumps(_jsonable(asdict(trade)))
        return await self._complete(EXPLAIN_SYSTEM_PROMPT, f"Trade:\n{payload}")

    async def generate_report(self, portfolio: PortfolioReport) -> Report:
        payload = json.dumps(_jsonable(asdict(portfolio)))
        raw = await self._complete(REPORT_SYSTEM_PROMPT, f"Portfolio data:\n{payload}")
        return parse_report(raw, default_title=f"{portfolio.period} Portfolio Report")
