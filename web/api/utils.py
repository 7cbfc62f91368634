"""Shared web utilities: page rendering, member images, bracket-style query parsing."""
from __future__ import annotations

import random
import re
from pathlib import Path
from typing import Any, Iterable, Optional

from fastapi import Request
from fastapi.templating import Jinja2Templates

from web.sessions import ANONYMOUS

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

MEMBER_IMAGES = ("3.0CSL.jpg", "e92.jpg", "f80.jpg")


def render(request: Request, template_name: str, ctx: Optional[dict] = None, status_code: int = 200):
    """TemplateResponse wrapper injecting the current session."""
    base_ctx = {"session": getattr(request.state, "session", None) or ANONYMOUS}
    return templates.TemplateResponse(request, template_name, {**base_ctx, **(ctx or {})}, status_code=status_code)


def pick_member_image(rng=random) -> str:
    return rng.choice(MEMBER_IMAGES)


_KEY_RE = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
_PART_RE = re.compile(r"\[([^\[\]]*)\]")


def parse_nested_query(items: Iterable[tuple[str, str]]) -> dict[str, Any]:
    """Parse query pairs the way extended query-string parsers do.

    user=bob           -> {"user": "bob"}
    user[$ne]=bob      -> {"user": {"$ne": "bob"}}
    user=a&user=b      -> {"user": ["a", "b"]}
    user[]=a           -> {"user": ["a"]}
    """
    out: dict[str, Any] = {}
    for key, value in items:
        m = _KEY_RE.match(key)
        parts = [m.group(1), *_PART_RE.findall(m.group(2))] if m else [key]
        append = len(parts) > 1 and parts[-1] == ""
        if append:
            parts.pop()
        node = out
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        _assign(node, parts[-1], value, append)
    return out


def _assign(node: dict, key: str, value: str, append: bool) -> None:
    current = node.get(key)
    if current is None:
        node[key] = [value] if append else value
    elif isinstance(current, list):
        current.append(value)
    else:
        node[key] = [current, value]
