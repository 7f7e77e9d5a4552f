"""Task analysis through an OpenAI-compatible chat completions API.

Suggests a category and priority for new tasks and writes short
productivity insights for the statistics overview. Without an API key the
analyzer is disabled and callers keep their defaults.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from openai import OpenAI

from ..config import Settings
from ..models import DEFAULT_CATEGORY, Task, TaskPriority

logger = logging.getLogger(__name__)

CATEGORIES = (
    "work", "personal", "shopping", "health", "learning",
    "finance", "home", "social", "travel", DEFAULT_CATEGORY,
)
MAX_INSIGHT_TASKS = 10

_FENCE_RE = re.compile(r"```(?:json)?\s*|\s*```")

ANALYSIS_SYSTEM_PROMPT = (
    "You are a task analysis assistant. Always respond with valid JSON only. "
    "Do not include any additional text."
)
INSIGHTS_SYSTEM_PROMPT = (
    "You are a productivity coach. Provide concise, helpful insights. "
    "Respond with plain text only, no markdown."
)


@dataclass(frozen=True)
class TaskAnalysis:
    category: str
    priority: TaskPriority


DEFAULT_ANALYSIS = TaskAnalysis(category=DEFAULT_CATEGORY, priority=TaskPriority.MEDIUM)


def parse_analysis(content: str) -> TaskAnalysis:
    """Read ``{"category": ..., "priority": ...}`` out of a model reply.

    Markdown code fences are ignored. Unknown priorities become medium and a
    missing or oversized category becomes the default.

    Raises:
        ValueError: If the reply is not a JSON object
    """
    data = json.loads(_FENCE_RE.sub("", content).strip())
    if not isinstance(data, dict):
        raise ValueError("Analysis reply is not a JSON object")

    category = str(data.get("category") or "").strip().lower()
    if not category or len(category) > 50:
        category = DEFAULT_CATEGORY
    try:
        priority = TaskPriority(str(data.get("priority", "")).strip().lower())
    except ValueError:
        priority = TaskPriority.MEDIUM
    return TaskAnalysis(category=category, priority=priority)


class TaskAnalyzer:
    """Wraps a chat completions client; ``client=None`` disables it."""

    def __init__(self, client: Optional[OpenAI] = None, model: str = "gpt-3.5-turbo"):
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "TaskAnalyzer":
        if not settings.openai_api_key:
            return cls(None, settings.openai_model)
        client = OpenAI(api_key=settings.openai_api_key, base_url=settings.openai_base_url)
        return cls(client, settings.openai_model)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _complete(self, system_prompt: str, prompt: str, max_tokens: int, temperature: float) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        content = response.choices[0].message.content
        if not content:
            raise ValueError("Empty response from analysis service")
        return content

    def analyze_task(self, title: str, description: str = "") -> Optional[TaskAnalysis]:
        """Suggest a category and priority.

        Returns:
            The suggestion, or None when disabled or the call fails
        """
        if not self.enabled:
            return None

        prompt = (
            'Analyze this task and respond with ONLY a JSON object containing "category" and "priority".\n'
            f"Title: {title}\n"
            f"Description: {description}\n"
            f"Categories: {', '.join(CATEGORIES)}\n"
            "Priority: low, medium, high (based on urgency and importance)\n"
            'Example response: {"category": "work", "priority": "high"}'
        )
        try:
            return parse_analysis(self._complete(ANALYSIS_SYSTEM_PROMPT, prompt, 150, 0.3))
        except Exception as e:
            logger.warning(f"Task analysis failed, using defaults: {e}")
            return None

    def generate_insights(self, tasks: Iterable[Task]) -> str:
        """A few sentences of advice about the given tasks; empty when disabled."""
        if not self.enabled:
            return ""
        summary = [
            {
                "title": task.title,
                "category": task.category,
                "priority": task.priority.value,
                "completed": task.completed,
                "dueDate": task.due_date.isoformat() if task.due_date else None,
            }
            for task in list(tasks)[:MAX_INSIGHT_TASKS]
        ]
        if not summary:
            return "No tasks available for analysis."

        prompt = (
            "Analyze these tasks and provide brief, helpful productivity insights (max 3 sentences):\n"
            f"{json.dumps(summary, indent=2)}\n"
            "Focus on patterns in categories or priorities, overdue or due soon tasks, "
            "and time management. Keep the response concise and actionable."
        )
        try:
            return self._complete(INSIGHTS_SYSTEM_PROMPT, prompt, 200, 0.7).strip()
        except Exception as e:
            logger.warning(f"Insights generation failed: {e}")
            return "Unable to generate insights at this time."
