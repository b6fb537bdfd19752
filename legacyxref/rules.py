"""Ordered rule tables

Heuristic classification in this package is expressed as ordered lists of
(predicate, result) pairs. Tables are evaluated top-down and the first
matching rule wins, so precedence is visible in the table itself.
"""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Rule:
    """One entry of a rule table"""
    predicate: Callable[..., bool]
    result: Any
    name: str = ""


class RuleTable:
    """First-match-wins evaluation over an ordered list of rules"""

    def __init__(self, rules: Iterable[Rule], default: Any = None):
        self.rules: List[Rule] = list(rules)
        self.default = default

    def first_match(self, *args, **kwargs) -> Optional[Rule]:
        for rule in self.rules:
            if rule.predicate(*args, **kwargs):
                return rule
        return None

    def evaluate(self, *args, **kwargs) -> Any:
        rule = self.first_match(*args, **kwargs)
        return rule.result if rule else self.default

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)


def contains_any(keywords: Sequence[str]) -> Callable[[str], bool]:
    """Predicate: the (upper-case) text contains one of the keywords"""
    keywords = tuple(k.upper() for k in keywords)

    def predicate(text: str) -> bool:
        upper = text.upper()
        return any(k in upper for k in keywords)

    return predicate


def keyword_table(entries: Sequence[Tuple[Sequence[str], Any]], default: Any = None) -> RuleTable:
    """Build a RuleTable from (keywords, result) pairs"""
    return RuleTable(
        (Rule(contains_any(keywords), result, name="|".join(keywords)) for keywords, result in entries),
        default=default,
    )
