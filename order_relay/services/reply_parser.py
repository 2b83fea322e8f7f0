import json
import re
from typing import Any

JSON_BLOCK_PATTERN = re.compile(r"```json\r?\n(.*?)\r?\n```", re.DOTALL)


class ReplyShapeError(ValueError):
    """The model answered, but not with a parseable ```json block."""


def _reject_constant(token: str) -> Any:
    # NaN/Infinity are not JSON; json.loads would accept them by default.
    raise ValueError(f"Non-standard JSON constant {token}")


def find_json_block(reply_text: str) -> str | None:
    match = JSON_BLOCK_PATTERN.search(reply_text or "")
    if match is None:
        return None
    return match.group(1)


def parse_reply(reply_text: str) -> Any:
    block = find_json_block(reply_text)
    if block is None:
        raise ReplyShapeError("No ```json block found in the reply.")
    try:
        return json.loads(block, parse_constant=_reject_constant)
    except ValueError as exc:
        raise ReplyShapeError(f"Invalid JSON in the reply block: {exc}") from exc
