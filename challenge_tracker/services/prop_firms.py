from dataclasses import dataclass, field

PHASES = ("Phase 1", "Phase 2", "Funded", "Master")
UNKNOWN_FIRM = "Unknown"


@dataclass(frozen=True)
class PhaseRule:
    name: str = ""
    target_pct: float = 0
    daily_dd_pct: float = 5
    max_dd_pct: float = 10


@dataclass(frozen=True)
class PropFirmConfig:
    id: str
    name: str
    phases: tuple[PhaseRule, ...] = field(default_factory=tuple)


DEFAULT_PHASE_RULE = PhaseRule()


def _standard_phases(p1: float, p2: float | None, daily: float, max_dd: float) -> tuple[PhaseRule, ...]:
    phases = [PhaseRule("Phase 1", p1, daily, max_dd)]
    if p2 is not None:
        phases.append(PhaseRule("Phase 2", p2, daily, max_dd))
    phases.append(PhaseRule("Funded", 0, daily, max_dd))
    return tuple(phases)


PROP_FIRMS: tuple[PropFirmConfig, ...] = (
    PropFirmConfig("1", "FTMO", _standard_phases(10, 5, 5, 10)),
    PropFirmConfig("2", "The 5%ers", _standard_phases(8, 5, 5, 10)),
    PropFirmConfig("3", "FundedHive", _standard_phases(8, 5, 5, 8)),
    PropFirmConfig("4", "FundedNext", _standard_phases(10, 5, 5, 10)),
    PropFirmConfig("5", "MyFundedFX", _standard_phases(8, 5, 5, 12)),
    PropFirmConfig("6", "E8 Funding", _standard_phases(8, None, 5, 8)),
    PropFirmConfig("7", "Alpha Capital", _standard_phases(8, 5, 5, 10)),
    PropFirmConfig("8", "SurgeTrader", (
        PhaseRule("Phase 1", 10, 5, 8),
        PhaseRule("Funded", 0, 4, 5),
    )),
    PropFirmConfig("9", "TrueForexFunds", _standard_phases(8, 5, 5, 10)),
    # no daily limit
    PropFirmConfig("10", "City Traders Imperium", _standard_phases(10, 5, 0, 10)),
)

# Substring of the broker server name -> prop firm
SERVER_MAPPINGS: tuple[tuple[str, str], ...] = (
    ("FTMO", "FTMO"),
    ("TheFive", "The 5%ers"),
    ("5ers", "The 5%ers"),
    ("FundedHive", "FundedHive"),
    ("FundedNext", "FundedNext"),
    ("MyFundedFX", "MyFundedFX"),
    ("TrueForex", "TrueForexFunds"),
    ("Topstep", "Topstep"),
    ("E8Fund", "E8 Funding"),
    ("E8Markets", "E8 Funding"),
    ("SurgeTrader", "SurgeTrader"),
    ("CityTraders", "City Traders Imperium"),
    ("Alpha", "Alpha Capital"),
)

_FIRMS_BY_NAME = {firm.name: firm for firm in PROP_FIRMS}


def get_prop_firm(name: str) -> PropFirmConfig | None:
    return _FIRMS_BY_NAME.get(name)


def get_phase_rules(prop_firm: str, phase: str) -> PhaseRule:
    firm = _FIRMS_BY_NAME.get(prop_firm)
    if not firm:
        return DEFAULT_PHASE_RULE
    for rule in firm.phases:
        if rule.name == phase:
            return rule
    return DEFAULT_PHASE_RULE


def guess_prop_firm(server: str) -> str:
    lower = (server or "").lower()
    for pattern, prop_firm in SERVER_MAPPINGS:
        if pattern.lower() in lower:
            return prop_firm
    return UNKNOWN_FIRM
