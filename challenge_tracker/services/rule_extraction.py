"""Heuristic extraction of prop-firm trading rules from scraped data.

Listing sites expose rule data either as loosely typed JSON on the challenge
objects or as free text on the firm overview page. Nothing here has a fixed
grammar, so every extractor returns an ``Extraction`` that says whether a
value was actually found. ``Extraction(False, parsed=True)`` means the page
states the rule is off; ``Extraction()`` means nothing usable was found.
"""
import math
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_STEP_RE = re.compile(r"(\d+)")
_NOT_DIGIT_RE = re.compile(r"[^0-9.]")
_DENY_RE = re.compile(r"\bnot\s+allow|\bprohibit|\bforbid|\brestrict|\bmust\s+not")
_ALLOW_RE = re.compile(r"\ballowed|\bpermitted|\byes\b|\bno\s+restriction")
_NONE_RE = re.compile(r"\bnone\b", re.IGNORECASE)
_MULTI_ACCOUNT_RE = re.compile(r"multiple\s+accounts?|multi[\s-]account", re.IGNORECASE)
_TRAILING_RE = re.compile(r"trail", re.IGNORECASE)
_STATIC_RE = re.compile(r"balance|static|eod|equity", re.IGNORECASE)

_MT4_NAME_RE = re.compile(r"platform\s*4|metatrader\s*4|\bmt4\b", re.IGNORECASE)
_MT5_NAME_RE = re.compile(r"platform\s*5|metatrader\s*5|\bmt5\b", re.IGNORECASE)
_MT4_ICON_RE = re.compile(r"metatrader-4|mt4", re.IGNORECASE)
_MT5_ICON_RE = re.compile(r"metatrader-5|mt5", re.IGNORECASE)
_CTRADER_RE = re.compile(r"ctrader", re.IGNORECASE)

CONSISTENCY_WINDOW = 150


@dataclass(frozen=True)
class Extraction(Generic[T]):
    value: T | None = None
    parsed: bool = False

    @classmethod
    def of(cls, value: T) -> "Extraction[T]":
        return cls(value=value, parsed=True)

    def or_else(self, other: "Extraction[T]") -> "Extraction[T]":
        return self if self.parsed else other


UNPARSED: Extraction = Extraction()


def parse_percentage(value: Any) -> Extraction[float]:
    """Numeric percentage from ``"80%"``, ``0.8`` or ``80``; fractions are scaled to 0-100."""
    if value is None or isinstance(value, bool):
        return UNPARSED
    cleaned = _NOT_DIGIT_RE.sub("", str(value))
    try:
        number = float(cleaned)
    except ValueError:
        return UNPARSED
    if math.isnan(number):
        return UNPARSED
    return Extraction.of(float(round(number * 100)) if number < 1 else number)


def parse_drawdown_type(raw: Any) -> Extraction[str]:
    if isinstance(raw, bool):
        return Extraction.of("trailing" if raw else "static")
    if isinstance(raw, str):
        if _TRAILING_RE.search(raw):
            return Extraction.of("trailing")
        if _STATIC_RE.search(raw):
            return Extraction.of("static")
    return UNPARSED


def parse_flag(raw: Any) -> Extraction[bool]:
    if raw is None:
        return UNPARSED
    return Extraction.of(bool(raw))


def step_count(challenge: dict) -> int:
    match = _STEP_RE.search(str(challenge.get("steps") or ""))
    return int(match.group(1)) if match else 0


def _first(payload: dict, *keys: str) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def parse_financials(challenges: list[dict]) -> dict[str, Extraction]:
    """Rule figures of a firm, taken from its 2-step challenge when it has one."""
    fields = (
        "profit_split_pct", "max_daily_loss_pct", "max_total_loss_pct",
        "profit_target_p1", "profit_target_p2", "drawdown_type", "consistency_rule",
    )
    if not challenges:
        return {name: UNPARSED for name in fields}

    primary = next((c for c in challenges if step_count(c) == 2), challenges[0])
    return {
        "profit_split_pct": parse_percentage(_first(primary, "profitSplit", "splitPercentage")),
        "max_daily_loss_pct": parse_percentage(_first(primary, "maxDailyLoss", "phase1MaxDailyLoss")),
        "max_total_loss_pct": parse_percentage(_first(primary, "maxDrawdown", "phase1MaxDrawdown")),
        "profit_target_p1": parse_percentage(_first(primary, "phase1ProfitTarget", "profitTargetSum")),
        "profit_target_p2": parse_percentage(primary.get("phase2ProfitTarget")),
        "drawdown_type": parse_drawdown_type(_first(primary, "drawdownType", "drawdownModel", "ddType")),
        "consistency_rule": parse_flag(primary.get("consistencyRule")),
    }


def permission_from_context(text: str, keyword: str, size: int = 350) -> Extraction[bool]:
    lower = text.lower()
    idx = lower.find(keyword.lower())
    if idx == -1:
        return UNPARSED
    context = lower[idx: idx + size]
    if _DENY_RE.search(context):
        return Extraction.of(False)
    if _ALLOW_RE.search(context):
        return Extraction.of(True)
    return UNPARSED


def parse_consistency_text(text: str) -> Extraction[bool]:
    idx = text.lower().find("consistency rules")
    if idx == -1:
        return UNPARSED
    return Extraction.of(not _NONE_RE.search(text[idx: idx + CONSISTENCY_WINDOW]))


def parse_trading_rules(text: str) -> dict[str, Extraction]:
    body = text or ""
    return {
        "news_trading_allowed": permission_from_context(body, "News Trading", 400),
        "copy_trading_allowed": permission_from_context(body, "Copy Trading", 300),
        "ea_allowed": permission_from_context(body, "Expert Advisor").or_else(
            permission_from_context(body, "Automated Trading")
        ),
        "weekend_holding": permission_from_context(body, "Weekend", 250),
        "overnight_holding": permission_from_context(body, "Overnight", 250),
        "consistency_rule": parse_consistency_text(body),
        "multiple_accounts": Extraction.of(True) if _MULTI_ACCOUNT_RE.search(body) else UNPARSED,
    }


def merge_rules(financials: dict[str, Extraction], rules: dict[str, Extraction]) -> dict[str, Extraction]:
    """Combine both sources; API financials win over page text for shared fields."""
    merged = dict(rules)
    for name, extraction in financials.items():
        merged[name] = extraction.or_else(rules.get(name, UNPARSED))
    return merged


def parse_program_types(program_types: list[str] | None) -> dict[str, Any]:
    types = [t.lower().replace("_", " ") for t in (program_types or [])]
    has1 = any(re.search(r"\b1\s*step", t) for t in types)
    has2 = any(re.search(r"\b2\s*step", t) for t in types)
    has3 = any(re.search(r"\b3\s*step", t) for t in types)
    has_instant = any(re.search(r"\binstant", t) for t in types)

    if has3:
        phases = Extraction.of(3)
    elif has2:
        phases = Extraction.of(2)
    elif has1:
        phases = Extraction.of(1)
    elif has_instant:
        phases = Extraction.of(0)
    else:
        phases = UNPARSED

    labels = [
        label for flag, label in (
            (has1, "1-step"), (has2, "2-step"), (has3, "3-step"), (has_instant, "instant"),
        ) if flag
    ]
    return {"phases": phases, "program_types": ",".join(labels)}


def parse_platforms(platforms: list[dict] | None) -> dict[str, bool]:
    platforms = platforms or []
    names = [str(p.get("name") or "") for p in platforms]
    icons = [str((p.get("icon") or {}).get("name") or "") for p in platforms]
    return {
        "mt4": any(_MT4_NAME_RE.search(n) for n in names) or any(_MT4_ICON_RE.search(i) for i in icons),
        "mt5": any(_MT5_NAME_RE.search(n) for n in names) or any(_MT5_ICON_RE.search(i) for i in icons),
        "ctrader": any(_CTRADER_RE.search(n) for n in names),
    }
