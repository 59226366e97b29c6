"""LLM-backed outline generator (external text collaborator)."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

from langchain_openai import ChatOpenAI

from config import DeckConfig
from models import Outline

logger = logging.getLogger(__name__)

OUTLINE_PROMPT = """You are drafting a slide outline for the request below.

Request: {prompt}

Research context (vetted sources only):
{context}

Return a JSON object with:
- "title": deck title
- "slides": list of {{"title", "body", "bullets" (3-6 short strings), "keyword",
  "chartSpec" (optional: {{"type", "title", "labels", "values"}} or {{"sourceUrl"}})}}
- "sources": list of URLs you relied on, taken from the research context

Use only numbers that appear in the research context. Do not invent statistics.
"""


def extract_json(text: str) -> Dict[str, Any]:
    """Parse the first JSON object in ``text``; raise ``ValueError`` otherwise."""
    text = (text or "").strip()
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("No JSON object found in outline response")
    try:
        return json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid outline JSON: {exc}") from exc


class LLMOutlineGenerator:
    def __init__(
        self,
        openai_api_key: str,
        model_name: Optional[str] = None,
        temperature: float = DeckConfig.MODEL_TEMPERATURE,
        llm: Any = None,
    ):
        if llm is not None:
            self.llm = llm
            return
        llm_params = {
            "api_key": openai_api_key,
            "model": model_name or DeckConfig.DEFAULT_MODEL,
            "temperature": temperature,
            "response_format": DeckConfig.RESPONSE_FORMAT,
        }
        organization = os.getenv("OPENAI_ORGANIZATION")
        if organization:
            llm_params["openai_organization"] = organization
        self.llm = ChatOpenAI(**llm_params)

    def generate(self, prompt: str, research_context: str) -> Outline:
        message = OUTLINE_PROMPT.format(prompt=prompt, context=research_context or "(none)")
        response = self.llm.invoke(message)
        payload = extract_json(getattr(response, "content", response))
        outline = Outline.model_validate(payload)
        logger.info("Outline received: %d slide(s), %d source(s)", len(outline.slides), len(outline.sources))
        return outline
