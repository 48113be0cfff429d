from fastapi import APIRouter, Query

from challenge_tracker.schemas.prop_firms import (
    ExtractedField,
    PhaseRuleResponse,
    PropFirmGuessResponse,
    PropFirmListResponse,
    PropFirmResponse,
    RuleExtractionRequest,
    RuleExtractionResponse,
)
from challenge_tracker.services import rule_extraction
from challenge_tracker.services.prop_firms import PROP_FIRMS, guess_prop_firm

router = APIRouter(prefix="/api/v1/prop-firms", tags=["prop-firms"])


@router.get("", response_model=PropFirmListResponse)
async def list_prop_firms():
    return PropFirmListResponse(
        prop_firms=[
            PropFirmResponse(
                id=firm.id,
                name=firm.name,
                phases=[
                    PhaseRuleResponse(
                        name=p.name,
                        target_pct=p.target_pct,
                        daily_dd_pct=p.daily_dd_pct,
                        max_dd_pct=p.max_dd_pct,
                    )
                    for p in firm.phases
                ],
            )
            for firm in PROP_FIRMS
        ],
        total=len(PROP_FIRMS),
    )


@router.get("/guess", response_model=PropFirmGuessResponse)
async def guess_firm(server: str = Query(min_length=1)):
    return PropFirmGuessResponse(server=server, prop_firm=guess_prop_firm(server))


@router.post("/extract-rules", response_model=RuleExtractionResponse)
async def extract_rules(body: RuleExtractionRequest):
    """
    Estrae le regole di trading da dati grezzi di scraping.
    I campi non riconosciuti vengono restituiti con parsed=false invece di un falso booleano.
    """
    financials = rule_extraction.parse_financials(body.challenges)
    rules = rule_extraction.parse_trading_rules(body.text)
    merged = rule_extraction.merge_rules(financials, rules)
    programs = rule_extraction.parse_program_types(body.program_types)
    merged["phases"] = programs["phases"]

    return RuleExtractionResponse(
        fields={
            name: ExtractedField(value=e.value, parsed=e.parsed)
            for name, e in merged.items()
        },
        program_types=programs["program_types"],
        platforms=rule_extraction.parse_platforms(body.platforms),
    )
