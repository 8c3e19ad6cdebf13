"""Response shaping helpers for MCP tools."""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from typing import Any

from rebalancer.lib.formatters import FINANCIAL_DISCLAIMER


def convert_data(data: Any) -> Any:
    if is_dataclass(data) and not isinstance(data, type):
        return asdict(data)
    if isinstance(data, (list, tuple)):
        return [convert_data(item) for item in data]
    if isinstance(data, dict):
        return {key: convert_data(value) for key, value in data.items()}
    return data


def payload_response(payload: dict[str, Any]) -> str:
    """Serialize a service payload, attaching the disclaimer to successful ones."""
    body = convert_data(payload)
    if body.get("ok"):
        body["disclaimer"] = FINANCIAL_DISCLAIMER
    return json.dumps(body, ensure_ascii=True)
