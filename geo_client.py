"""Geo inference adapter: news text -> address and WGS84 coordinates.

Two engines are supported, selected with GEO_PROVIDER:

- ``gemini`` (default): Gemini through its OpenAI-compatible endpoint, using the
  OpenAI SDK with ``response_format={"type": "json_object"}``.
- ``claude``: Anthropic Messages API with a JSON-only instruction.

Both send exactly one request per item and hand the raw reply to
``parse_geo_response``, which accepts nothing but a bare JSON object with
``address``, ``lat`` and ``lng``.
"""

from __future__ import annotations

import json
import logging
import math
import os
import re
from json import JSONDecodeError
from typing import Any, Protocol

import anthropic
import openai
from openai import OpenAI

from errors import EnrichmentFailure, MalformedResponse
from models import GeoResult

# Defaults; the GEMINI_* and CLAUDE_MODEL env vars override them when an engine is built.
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_GEMINI_TEMPERATURE = 1.0
DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5"
CLAUDE_MAX_TOKENS = 256

LOGGER = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")

_GEO_KEYS: frozenset[str] = frozenset({"address", "lat", "lng"})

_UNKNOWN_ALIASES: frozenset[str] = frozenset({"未知", "unknown"})

GEO_SYSTEM_PROMPT = """你是一名地理空间情报分析师。请从新闻文本中找出最核心的事件发生地，并给出其经纬度。

定位规则：
1. 精度优先级：具体建筑/街道 > 具体机构或公司 > 城市 > 国家。
2. 涉及多国外交或冲突等多地事件时，定位到新闻主体机构所在地，或事件第一发生现场。
3. 坐标必须使用 WGS84 坐标系，以 lat、lng 表示。
4. address 字段尽量保留原文中的地名写法，或翻译为清晰的中文。

文中没有直接地点时，按以下顺序推断：
a. 金融行情/合约：定位到该品种主要交易所的总部所在城市（如：沪铜、沪金 -> 上海；布伦特原油 -> 伦敦；美股 -> 纽约）。
b. 政策/政令/监管公告：定位到发布该政策的最高行政或监管机关所在地。
c. 企业动态：定位到该企业的全球或区域总部。
d. 以上均无法推断（如纯理论探讨、观点评论）时，返回 {"address": "未知", "lat": 0, "lng": 0}。

输出要求：只返回一个 JSON 对象，且只包含 address、lat、lng 三个字段，例如 {"address": "上海期货交易所", "lat": 31.2304, "lng": 121.4737}。
不得包含 Markdown 代码块、前后缀说明或其他任何文字。"""


class GeoInferencer(Protocol):
    """Capability interface: one inference call per item text."""

    def infer(self, text: str) -> GeoResult: ...


def strip_markup(raw: str) -> str:
    """Remove markup tags with a simple tag pass (not an HTML parser)."""
    return _TAG_RE.sub("", raw).strip()


def build_user_prompt(text: str) -> str:
    return (
        "请分析下面这条新闻：谁在发声？在哪里发声？涉及哪些具体地点？"
        "然后只输出 JSON。\n\n"
        f"{strip_markup(text)}"
    )


class GeminiGeoInferencer:
    """Gemini via the OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        temperature: float | None = None,
    ) -> None:
        api_key = api_key or os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY environment variable is required")
        if temperature is None:
            temperature = float(os.getenv("GEMINI_TEMPERATURE", str(DEFAULT_GEMINI_TEMPERATURE)))
        self._client = OpenAI(
            api_key=api_key,
            base_url=base_url or os.getenv("GEMINI_BASE_URL", DEFAULT_GEMINI_BASE_URL),
        )
        self._model = model or os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL)
        self._temperature = temperature

    def infer(self, text: str) -> GeoResult:
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                temperature=self._temperature,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": GEO_SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(text)},
                ],
            )
        except openai.OpenAIError as exc:
            raise EnrichmentFailure(f"Gemini request failed: {exc}") from exc

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            raise MalformedResponse("Unexpected Gemini response shape") from exc
        return parse_geo_response(content)


class ClaudeGeoInferencer:
    """Claude via the Anthropic Messages API."""

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise RuntimeError("ANTHROPIC_API_KEY environment variable is required")
        self._client = anthropic.Anthropic(api_key=api_key)
        self._model = model or os.getenv("CLAUDE_MODEL", DEFAULT_CLAUDE_MODEL)

    def infer(self, text: str) -> GeoResult:
        LOGGER.debug("Calling Claude model=%s max_tokens=%s", self._model, CLAUDE_MAX_TOKENS)
        try:
            response = self._client.messages.create(
                model=self._model,
                max_tokens=CLAUDE_MAX_TOKENS,
                system=GEO_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_user_prompt(text)}],
            )
        except anthropic.AnthropicError as exc:
            raise EnrichmentFailure(f"Claude request failed: {exc}") from exc

        try:
            content = response.content[0].text
        except (AttributeError, IndexError, TypeError) as exc:
            raise MalformedResponse("Unexpected Claude response shape") from exc
        return parse_geo_response(content)


def build_inferencer(provider: str | None = None) -> GeoInferencer:
    """Construct the engine named by ``provider`` or GEO_PROVIDER (default gemini)."""
    name = (provider or os.getenv("GEO_PROVIDER", "gemini")).strip().lower()
    if name == "gemini":
        return GeminiGeoInferencer()
    if name == "claude":
        return ClaudeGeoInferencer()
    raise RuntimeError(f"Unknown GEO_PROVIDER: {name!r} (expected 'gemini' or 'claude')")


def parse_geo_response(content: str | None) -> GeoResult:
    """Strictly parse one inference reply into a GeoResult.

    The reply must be a bare JSON object; prose or markdown fencing around it is
    rejected rather than repaired. The unknown address (or its English alias)
    always maps to the exact sentinel, whatever coordinates came with it.

    Raises:
        MalformedResponse: empty reply, invalid JSON, missing or mistyped fields,
            or coordinates outside the WGS84 range.
    """
    if not content or not content.strip():
        raise MalformedResponse("Inference engine returned an empty response")

    try:
        data = json.loads(content)
    except JSONDecodeError as exc:
        raise MalformedResponse(f"Response is not a bare JSON object: {content[:200]!r}") from exc

    if not isinstance(data, dict):
        raise MalformedResponse("Expected a JSON object from the inference engine")

    missing = _GEO_KEYS - data.keys()
    if missing:
        raise MalformedResponse(f"Geo response missing keys: {sorted(missing)}")

    address = data["address"]
    if not isinstance(address, str) or not address.strip():
        raise MalformedResponse(f"Geo response address is not a non-empty string: {address!r}")
    address = address.strip()

    if address.lower() in _UNKNOWN_ALIASES:
        return GeoResult.unknown()

    return GeoResult(
        address=address,
        lat=_as_coordinate(data["lat"], "lat", 90.0),
        lng=_as_coordinate(data["lng"], "lng", 180.0),
    )


def _as_coordinate(value: Any, name: str, bound: float) -> float:
    # bool is an int subclass; true/false are never valid coordinates.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponse(f"Geo response {name} is not a number: {value!r}")
    number = float(value)
    if not math.isfinite(number) or abs(number) > bound:
        raise MalformedResponse(f"Geo response {name} out of range: {number}")
    return number
