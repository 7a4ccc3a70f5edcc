# market_oracle/api/simulator.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from market_oracle.api.auth import optional_user_id, enforce_feature
from market_oracle.api.rate_limit import limiter
from market_oracle.api.responses import ok
from market_oracle.core.services.simulator_service import SCENARIOS, list_scenarios, simulate

router = APIRouter(prefix="/api/simulator", tags=["simulator"])

CUSTOM_SCENARIO_FEATURE = "ai_analysis_basic"


@router.get("")
@limiter.limit("20/hour")
async def simulator(
    request: Request,
    scenario: Optional[str] = None,
    custom: Optional[str] = None,
    user_id: Optional[str] = Depends(optional_user_id),
):
    """
    ?scenario=<preset id> or ?custom=<free text>; no parameters lists the presets.
    Custom scenarios are a premium feature.
    """
    if not scenario and not custom:
        return ok(
            available_scenarios=list_scenarios(),
            usage="?scenario=fed_rate_cut or ?custom=Your scenario",
        )

    if custom:
        if not user_id:
            raise HTTPException(status_code=401, detail="Authentication required")
        await enforce_feature(user_id, CUSTOM_SCENARIO_FEATURE)
        name, prompt = "Custom", custom.strip()[:500]
    else:
        template = SCENARIOS.get(scenario)
        if not template:
            raise HTTPException(status_code=400, detail="Unknown scenario")
        name, prompt = template["name"], template["prompt"]

    result = await simulate(prompt)
    if result is None:
        raise HTTPException(status_code=500, detail="Simulation failed")

    return ok(
        scenario_name=name,
        simulation=result,
        disclaimer="Simulated scenario. Not financial advice.",
    )
