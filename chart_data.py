"""Remote tabular fetch: CSV/JSON endpoints into label/value rows."""

from __future__ import annotations

import csv
import io
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import requests

from config import DeckConfig

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".bmp")
_LABEL_KEYS = ("label", "name", "category", "x")
_VALUE_KEYS = ("value", "y", "count", "v")


def is_image_url(url: str) -> bool:
    try:
        path = urlsplit(url or "").path.lower()
    except ValueError:
        return False
    return path.endswith(IMAGE_EXTENSIONS)


def resolve_data_url(raw_chart: Optional[Dict[str, Any]]) -> str:
    """Explicit ``sourceUrl`` wins; a chart URL counts only when it is not an image."""
    if not raw_chart:
        return ""
    explicit = raw_chart.get("sourceUrl") or raw_chart.get("source_url")
    if isinstance(explicit, str) and explicit.strip():
        return explicit.strip()
    chart_url = raw_chart.get("chartUrl") or raw_chart.get("url")
    if isinstance(chart_url, str) and chart_url.strip() and not is_image_url(chart_url):
        return chart_url.strip()
    return ""


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = value.replace("$", "").replace("%", "").replace(",", "").strip()
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


def _finish(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    kept = [row for row in rows if row["label"] and row["value"] >= 0]
    if len(kept) < 2:
        return []
    return kept[: DeckConfig.MAX_TABULAR_ROWS]


def parse_csv_rows(text: str) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for record in csv.reader(io.StringIO(text or "")):
        if len(record) < 2:
            continue
        label = record[0].strip()
        value = _number(record[1])
        if value is None:
            # header rows and junk lines
            continue
        rows.append({"label": label, "value": value})
    return _finish(rows)


def parse_json_rows(payload: Any) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    if isinstance(payload, list):
        for item in payload:
            if not isinstance(item, dict):
                continue
            label = next((item[k] for k in _LABEL_KEYS if item.get(k) not in (None, "")), None)
            value = next((_number(item[k]) for k in _VALUE_KEYS if k in item), None)
            if label is None or value is None:
                continue
            rows.append({"label": str(label).strip(), "value": value})
        return _finish(rows)
    if not isinstance(payload, dict):
        return []
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    labels = data.get("labels")
    datasets = data.get("datasets")
    if isinstance(labels, list) and isinstance(datasets, list) and datasets:
        first = datasets[0] if isinstance(datasets[0], dict) else {}
        values = first.get("data")
        if not isinstance(values, (list, tuple)):
            return []
        for label, raw in zip(labels, values):
            value = _number(raw)
            if value is not None:
                rows.append({"label": str(label).strip(), "value": value})
        return _finish(rows)
    for label, raw in data.items():
        value = _number(raw)
        if value is not None:
            rows.append({"label": str(label).strip(), "value": value})
    return _finish(rows)


def fetch_rows(
    url: str,
    session: Optional[requests.Session] = None,
    timeout: float = DeckConfig.TABULAR_TIMEOUT_SECONDS,
) -> List[Dict[str, Any]]:
    """GET ``url`` and parse it as CSV or JSON; every failure returns ``[]``."""
    if not url:
        return []
    getter = session.get if session is not None else requests.get
    try:
        resp = getter(url, timeout=timeout, headers={"User-Agent": DeckConfig.USER_AGENT})
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.info("Tabular fetch failed for %s: %s", url, exc)
        return []
    content_type = (resp.headers.get("content-type") or "").lower()
    try:
        if "csv" in content_type or urlsplit(url).path.lower().endswith(".csv"):
            return parse_csv_rows(resp.text)
        try:
            payload = resp.json()
        except ValueError:
            logger.debug("Tabular payload at %s is neither CSV nor JSON", url)
            return []
        return parse_json_rows(payload)
    except (TypeError, ValueError, AttributeError, KeyError, IndexError, csv.Error) as exc:
        logger.info("Tabular payload at %s could not be parsed: %s", url, exc)
        return []
