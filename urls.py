"""URL helpers: per-user slugs and deep-link query strings."""

import re
from typing import Optional
from urllib.parse import urlencode

TASK_ACTIONS = ("edit", "delete", "view")
PROFILE_ACTIONS = ("editing", "changePassword")


def _slugify(text: str) -> str:
    text = re.sub(r"[^\w\s-]", "", text.lower().strip(), flags=re.ASCII)
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


def get_user_slug(name: Optional[str], email: Optional[str]) -> str:
    """Map a name/email pair to a URL-safe username.

    "John Doe" + "john.doe@example.com" -> "john-doe-johndoe". The email
    suffix keeps two users with the same name apart.
    """
    base = _slugify(name) if name else ""
    local_part = email.split("@")[0] if email else ""

    if not base and email:
        base = re.sub(r"[^\w-]", "-", (local_part or "user").lower(), flags=re.ASCII)
        base = re.sub(r"-+", "-", base).strip("-")

    if email and base:
        suffix = re.sub(r"[^\w]", "", local_part.lower(), flags=re.ASCII)[:10]
        if suffix:
            return f"{base}-{suffix}"

    return base or "user"


def _query(params: dict) -> str:
    params = {k: v for k, v in params.items() if v}
    return f"?{urlencode(params)}" if params else ""


def task_query_params(task_id: Optional[str] = None, action: Optional[str] = None) -> str:
    if action is not None and action not in TASK_ACTIONS:
        raise ValueError(f"unknown task action: {action}")
    return _query({"taskId": task_id, "action": action})


def profile_query_params(action: Optional[str] = None, field: Optional[str] = None) -> str:
    if action is not None and action not in PROFILE_ACTIONS:
        raise ValueError(f"unknown profile action: {action}")
    return _query({"action": action, "field": field})


def task_links(slug: str, task_id: str) -> dict:
    return {action: f"/tasks/{slug}{task_query_params(task_id, action)}" for action in TASK_ACTIONS}
