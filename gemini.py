"""Gemini prompts and the SDK call that sends them.

The model does the actual understanding; this module only templates the
prompt, strips markdown fences and fills in defaults on the way back.
"""

import json
import logging
import os
import re
import time
from datetime import date
from typing import Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

logger = logging.getLogger(__name__)

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_TIMEOUT = 30  # seconds

FALLBACK_INSIGHT = "Keep up the great work! Stay focused on your goals."
MISSING_DUE_DATE_WARNING = "No due date detected in your input. Due date is required to create a task."

_FENCE_RE = re.compile(r"```(?:json)?\n?|\n?```")


class GeminiError(Exception):
    pass


class ParseError(GeminiError):
    """The model answered, but not with JSON."""

    def __init__(self, raw: str):
        super().__init__("Failed to parse AI response")
        self.raw = raw


def api_key() -> Optional[str]:
    return os.getenv("GEMINI_API_KEY") or None


async def generate_text(prompt: str) -> str:
    key = api_key()
    if not key:
        raise GeminiError("Gemini API key is not configured")
    client = genai.Client(
        api_key=key,
        http_options=genai_types.HttpOptions(timeout=GEMINI_TIMEOUT * 1000),
    )
    try:
        response = await client.aio.models.generate_content(model=GEMINI_MODEL, contents=prompt)
    except genai_errors.APIError as e:
        logger.warning("Gemini returned HTTP %s: %s", e.code, e.message)
        raise GeminiError(f"Gemini returned HTTP {e.code}")
    if not response.text:
        raise GeminiError("Gemini returned no text")
    return response.text


def task_prompt(user_input: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"""You are a task parser. Extract task information from the following natural language input and return a JSON object with these fields:
- title (string): The main task title (required)
- description (string): Additional details about the task (optional, empty string if none)
- due_date (string): The due date in YYYY-MM-DD format (optional, empty string if not mentioned)
- status (string): One of "pending", "inprogress", or "completed" (default to "pending")
- subtasks (array of objects): If subtasks are mentioned or implied (like steps, checklist items, or multiple actions), extract them. Each subtask has:
  - id (string): A unique ID like "subtask_1", "subtask_2", etc.
  - title (string): The subtask description
  - completed (boolean): Always false for new subtasks
  - due_date (string, optional): YYYY-MM-DD format if a specific date is mentioned for this subtask
  - due_time (string, optional): HH:MM format if a specific time is mentioned for this subtask

Current date: {today.isoformat()}

Rules:
1. If a relative date is mentioned (like "tomorrow", "next week", "Friday"), calculate the actual date
2. If only a day name is mentioned (like "Monday"), assume it's the next occurrence of that day
3. If time is mentioned for subtasks, include it in due_time field (HH:MM format, 24-hour)
4. Keep titles concise and clear
5. Detect subtasks from:
   - Numbered lists (1. do this 2. do that)
   - Bullet points (- first step - second step)
   - Keywords like "first", "then", "after that", "finally"
   - Multiple verbs indicating separate actions
   - Phrases like "including", "such as", "need to"
6. If input is just one simple task, subtasks array should be empty
7. Only return valid JSON, nothing else

Examples:
Input: "Buy groceries tomorrow: milk, bread, eggs"
Output: {{"title": "Buy groceries", "description": "", "due_date": "<tomorrow>", "status": "pending", "subtasks": [{{"id": "subtask_1", "title": "Buy milk", "completed": false}}, {{"id": "subtask_2", "title": "Buy bread", "completed": false}}, {{"id": "subtask_3", "title": "Buy eggs", "completed": false}}]}}

Input: "Submit tax documents by October 25"
Output: {{"title": "Submit tax documents", "description": "", "due_date": "<October 25>", "status": "pending", "subtasks": []}}

Now parse this input:
Input: {json.dumps(user_input)}

Return only the JSON object, no markdown formatting or extra text."""


def insight_prompt(stats: dict) -> str:
    return f"""You are a helpful productivity assistant. Based on the following task statistics, generate a short, motivational, and personalized insight (1-2 sentences, max 150 characters). Be encouraging and specific.

Statistics:
- Total tasks: {stats["total_tasks"]}
- Completed tasks: {stats["completed_count"]}
- Tasks completed today: {stats["today_completed"]}
- Pending tasks: {stats["pending_count"]}
- In progress tasks: {stats["in_progress_count"]}
- Overdue tasks: {stats["overdue_count"]}
- Completion rate: {stats["completion_rate"]}%
- Average tasks per day (last 7 days): {stats["avg_per_day"]}
- Most active time: {stats["most_active_time"]}

Rules:
1. Keep it short and positive (1-2 sentences)
2. Mention specific numbers if impressive
3. Acknowledge their most active time if significant
4. If they completed tasks today, celebrate it
5. If they have overdue tasks, gently motivate them
6. If completion rate is high, praise them
7. Be warm and encouraging, not robotic
8. Maximum 150 characters

Generate only the insight message, nothing else."""


def clean_json_text(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def parse_task_json(text: str) -> dict:
    cleaned = clean_json_text(text)
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        raise ParseError(text)
    if not isinstance(parsed, dict):
        raise ParseError(text)
    return parsed


def normalize_task(parsed: dict) -> dict:
    """Fill defaults and coerce subtasks into the stored shape."""
    stamp = int(time.time() * 1000)
    subtasks = []
    raw_subtasks = parsed.get("subtasks") or []
    if isinstance(raw_subtasks, list):
        for index, st in enumerate(raw_subtasks):
            if not isinstance(st, dict):
                continue
            subtask = {
                "id": str(st.get("id") or f"subtask_{stamp}_{index}"),
                "title": st.get("title") or "Untitled subtask",
                "completed": st.get("completed") is True,
            }
            due_date = st.get("due_date") or st.get("dueDate")
            due_time = st.get("due_time") or st.get("dueTime") or st.get("time")
            if due_date:
                subtask["due_date"] = due_date
            if due_time:
                subtask["due_time"] = due_time
            subtasks.append(subtask)

    status = parsed.get("status")
    if status not in ("pending", "inprogress", "completed"):
        status = "pending"

    return {
        "title": str(parsed.get("title") or "").strip(),
        "description": parsed.get("description") or "",
        "due_date": parsed.get("due_date") or parsed.get("dueDate") or "",
        "status": status,
        "subtasks": subtasks,
    }


def missing_field_warnings(task: dict) -> list:
    warnings = []
    if not task.get("due_date", "").strip():
        warnings.append(MISSING_DUE_DATE_WARNING)
    return warnings
