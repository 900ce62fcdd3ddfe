"""
Stock research via Gemini.

One prompt per ticker asks the model for a JSON report on recent price
action and company news. Answers that cannot be parsed degrade to a fixed
placeholder result; failures of the API call itself propagate.
"""

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List, Optional

from google import genai
from google.genai import types
from pydantic import ValidationError as ModelValidationError

from stock_digest.config import Settings
from stock_digest.models import StockResearchResult


RESEARCH_TEMPERATURE = 0.3

# Upper bound on concurrent provider calls for one watchlist
MAX_RESEARCH_WORKERS = 8

SYSTEM_INSTRUCTION = (
    "You are a financial research assistant that provides concise, factual "
    "stock analysis. Always respond with valid JSON only, no markdown code blocks."
)

CODE_FENCE_RE = re.compile(r"```(?:json)?\n?|\n?```")


def get_gemini_client(settings: Settings) -> genai.Client:
    """Create and return a Gemini client using google-genai."""
    return genai.Client(api_key=settings.gemini_api_key)


def describe_period(since: Optional[datetime]) -> str:
    """Phrase the research window, e.g. 'since 2024-05-01' or 'in the past week'."""
    if since is None:
        return "in the past week"
    return f"since {since.date().isoformat()}"


def build_research_prompt(ticker: str, since: Optional[datetime]) -> str:
    time_period = describe_period(since)
    return (
        f"You are a no-BS financial analyst. Research {ticker} and provide a concise, "
        f"actionable summary of everything important that happened {time_period}.\n\n"
        f"Cut through the noise. I don't want fluff or speculation - just facts and "
        f"significant developments.\n\n"
        f"Cover these areas if there's anything noteworthy:\n\n"
        f"1. Price Action: Current share price, % change today, week-to-date, and month-to-date\n"
        f"2. Key Events: Earnings, guidance changes, product launches, partnerships, regulatory news\n"
        f"3. Insider Activity: Any significant insider buys or sells (include names and amounts if material)\n"
        f"4. Analyst Actions: Upgrades, downgrades, price target changes (only significant ones)\n"
        f"5. Competitive Dynamics: Market share shifts, competitor moves affecting this company\n"
        f"6. Upcoming Catalysts: Earnings dates, FDA decisions, product releases, etc.\n\n"
        f"Format your response as JSON with this structure:\n"
        f"{{\n"
        f'  "ticker": "{ticker}",\n'
        f'  "companyName": "Full company name",\n'
        f'  "currentPrice": "$XXX.XX",\n'
        f'  "priceChange": {{\n'
        f'    "day": "+X.X%",\n'
        f'    "week": "+X.X%",\n'
        f'    "month": "+X.X%"\n'
        f"  }},\n"
        f'  "sentiment": "bullish" | "bearish" | "neutral",\n'
        f'  "keyEvents": ["Event 1", "Event 2"],\n'
        f'  "competitiveDynamics": "Brief summary or \'No significant changes\'",\n'
        f'  "insiderActivity": "Brief summary or \'No significant activity\'",\n'
        f'  "analystActions": "Brief summary or \'No significant actions\'",\n'
        f'  "upcomingCatalysts": "Brief summary or \'None imminent\'",\n'
        f'  "summary": "2-3 sentence bottom line summary"\n'
        f"}}\n\n"
        f"Be direct. Be useful. Skip anything that doesn't matter."
    )


def strip_code_fences(content: str) -> str:
    return CODE_FENCE_RE.sub("", content).strip()


def parse_research_response(ticker: str, content: Optional[str]) -> StockResearchResult:
    """
    Turn the model's raw answer into a ``StockResearchResult``.

    Markdown code fences are removed first. Anything that is not a JSON
    object matching the result shape yields ``StockResearchResult.fallback``.
    """
    if not content or not content.strip():
        logging.warning("Empty research response for %s; using placeholder result.", ticker)
        return StockResearchResult.fallback(ticker)

    cleaned = strip_code_fences(content)
    try:
        payload = json.loads(cleaned)
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        payload.setdefault("ticker", ticker)
        return StockResearchResult.model_validate(payload)
    except (ValueError, TypeError, ModelValidationError) as exc:
        logging.warning(
            "Could not parse research response for %s (%s); using placeholder result.",
            ticker,
            exc,
        )
        return StockResearchResult.fallback(ticker)


class ResearchClient:
    """Single-call research against the Gemini API."""

    def __init__(self, client: genai.Client, model: str):
        self._client = client
        self._model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResearchClient":
        return cls(get_gemini_client(settings), settings.gemini_model)

    def research(self, ticker: str, since: Optional[datetime]) -> StockResearchResult:
        """Research one ticker. Errors from the API call are re-raised."""
        prompt = build_research_prompt(ticker, since)
        logging.info("Calling Gemini (%s) for ticker %s.", self._model, ticker)
        try:
            response = self._client.models.generate_content(
                model=self._model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=SYSTEM_INSTRUCTION,
                    temperature=RESEARCH_TEMPERATURE,
                ),
            )
        except Exception as exc:
            logging.error("Error calling Gemini for %s: %s", ticker, exc, exc_info=True)
            raise

        content = getattr(response, "text", None)
        return parse_research_response(ticker, content)

    def research_multiple(
        self, tickers: List[str], since: Optional[datetime]
    ) -> List[StockResearchResult]:
        """
        Research every ticker concurrently and return results in input order.

        If any single call raises, that exception propagates and the batch
        produces no results.
        """
        if not tickers:
            return []

        with ThreadPoolExecutor(max_workers=min(len(tickers), MAX_RESEARCH_WORKERS)) as executor:
            futures = [executor.submit(self.research, ticker, since) for ticker in tickers]
            return [future.result() for future in futures]
