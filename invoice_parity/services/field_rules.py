"""
Special Field Rule Engine

Evaluates special fields located on both the reference and the migrated page:
- MustDiffer: the amount at a token index must change
- MustMatchWhole: the whole line must stay identical
- Custom: a named predicate decides

Fields located on only one side produce no verdict. Every Y covered by a
field located on both sides is claimed so line diffing skips it.
"""

import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from invoice_parity.core.logging import get_logger
from invoice_parity.models.comparison import FieldVerdict, VerdictResult
from invoice_parity.models.document import FieldMatch, Page, Token
from invoice_parity.models.rules import Custom, MustDiffer, MustMatchWhole, SpecialFieldDefinition

logger = get_logger(__name__)

NOT_AVAILABLE = "N/A"

_AMOUNT_NOISE = re.compile(r"[€$£\s,.]")
_WHITESPACE = re.compile(r"\s+")
_DAY_COUNT = re.compile(r"(\d+)\s+dagen")

Predicate = Callable[[Sequence[Token], Sequence[Token]], bool]


def normalize_amount(value: Optional[str]) -> str:
    """Strip currency symbols, separators, and whitespace from an amount."""
    return _AMOUNT_NOISE.sub("", value or "")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def join_tokens(tokens: Iterable[Token]) -> str:
    return " ".join(t.text for t in tokens)


def fixed_recurring_cost(old_tokens: Sequence[Token], new_tokens: Sequence[Token]) -> bool:
    """
    Fixed delivery cost rule.

    The day count ("30 dagen") must be identical when present on both sides
    and fails when present on only one. The rightmost amount must change.
    """
    if len(old_tokens) < 2 or len(new_tokens) < 2:
        return False

    old_days = _DAY_COUNT.search(join_tokens(old_tokens))
    new_days = _DAY_COUNT.search(join_tokens(new_tokens))
    if old_days and new_days:
        if old_days.group(1) != new_days.group(1):
            return False
    elif old_days or new_days:
        return False

    return normalize_amount(old_tokens[-1].text) != normalize_amount(new_tokens[-1].text)


DEFAULT_PREDICATES: Dict[str, Predicate] = {
    "fixed_recurring_cost": fixed_recurring_cost,
}


class FieldRuleEngine:
    """
    Evaluates special field policies between two pages.

    Attributes:
        predicates: Named predicates available to Custom policies
    """

    def __init__(
        self,
        definitions: Sequence[SpecialFieldDefinition] = (),
        predicates: Optional[Dict[str, Predicate]] = None
    ):
        self.predicates = dict(DEFAULT_PREDICATES if predicates is None else predicates)

        unknown = sorted({
            d.policy.predicate_id for d in definitions
            if isinstance(d.policy, Custom) and d.policy.predicate_id not in self.predicates
        })
        if unknown:
            raise ValueError(f"Unknown custom predicates: {', '.join(unknown)}")

    def evaluate_page(self, old_page: Page, new_page: Page) -> Tuple[List[FieldVerdict], Set[float]]:
        """
        Evaluate every field located on both pages.

        Args:
            old_page: Page from the reference document
            new_page: Page at the same index in the migrated document

        Returns:
            Tuple of (verdicts, claimed Y coordinates)
        """
        verdicts = []
        claimed: Set[float] = set()

        for old_match in old_page.field_matches:
            new_match = new_page.find_match(old_match.label)
            if new_match is None:
                continue

            claimed.update(old_match.y_values)
            claimed.update(new_match.y_values)

            verdict = self.evaluate(old_match, new_match, old_page.number)
            if verdict is not None:
                verdicts.append(verdict)

        return verdicts, claimed

    def evaluate(self, old_match: FieldMatch, new_match: FieldMatch, page_number: int) -> Optional[FieldVerdict]:
        """
        Evaluate one field located on both sides.

        Args:
            old_match: Field tokens in the reference document
            new_match: Field tokens in the migrated document
            page_number: 1-based page number, used in the verdict key

        Returns:
            The verdict, or None when a MustDiffer index is missing on both sides
        """
        definition = old_match.definition
        policy = definition.policy

        if isinstance(policy, Custom):
            passed = self.predicates[policy.predicate_id](old_match.tokens, new_match.tokens)
            old_value, new_value = old_match.text, new_match.text
        elif isinstance(policy, MustMatchWhole):
            old_value, new_value = old_match.text, new_match.text
            passed = collapse_whitespace(old_value) == collapse_whitespace(new_value)
        elif isinstance(policy, MustDiffer):
            old_value = self._token_at(old_match, policy.index)
            new_value = self._token_at(new_match, policy.index)
            old_amount, new_amount = normalize_amount(old_value), normalize_amount(new_value)
            if not old_amount and not new_amount:
                logger.warning(
                    "special_field_value_missing",
                    label=definition.label,
                    index=policy.index,
                    page=page_number
                )
                return None
            passed = old_amount != new_amount
        else:
            raise TypeError(f"Unsupported field policy: {policy!r}")

        return FieldVerdict(
            key=f"{definition.label} (Page {page_number})",
            old_value=old_value or NOT_AVAILABLE,
            new_value=new_value or NOT_AVAILABLE,
            result=VerdictResult.PASS if passed else VerdictResult.FAIL,
            group=definition.group,
        )

    @staticmethod
    def _token_at(match: FieldMatch, index: int) -> Optional[str]:
        if index < len(match.tokens):
            return match.tokens[index].text
        return None
