from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Callable, Iterable, List, Literal, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ExclusionRuleType = Literal["regex", "contains", "not_contains"]
RULE_TYPES = ("regex", "contains", "not_contains")

T = TypeVar("T")


class ExclusionRule(BaseModel):
    id: str
    type: ExclusionRuleType
    pattern: str


def generate_rule_id() -> str:
    return f"rule_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"


def is_table_excluded(table_key: str, rules: Iterable[ExclusionRule]) -> bool:
    for rule in rules:
        if rule.type == "regex":
            try:
                if re.search(rule.pattern, table_key):
                    return True
            except re.error:
                logger.debug(f"Skipping invalid regex rule {rule.id}: {rule.pattern!r}")
        elif rule.type == "contains":
            if rule.pattern in table_key:
                return True
        elif rule.type == "not_contains":
            if rule.pattern not in table_key:
                return True
    return False


def filter_tables(items: List[T], rules: List[ExclusionRule], key: Callable[[T], str] = str) -> List[T]:
    if not rules:
        return items
    return [item for item in items if not is_table_excluded(key(item), rules)]


def rule_description(rule: ExclusionRule) -> str:
    if rule.type == "regex":
        return f"Regex: {rule.pattern}"
    if rule.type == "contains":
        return f"Contains: {rule.pattern}"
    return f"Does not contain: {rule.pattern}"
