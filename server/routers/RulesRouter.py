from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import RulesRenderRequest
from server.models.responses import RulesRenderResponse
from shared.models.rules import RuleSet, common_rules

router = APIRouter(prefix="/rules", tags=["rules"])


@router.post("/render")
async def render_rules(
    request: Request,
    body: RulesRenderRequest,
    _: None = Depends(verify_api_key),
) -> RulesRenderResponse:
    """Render posted path rules, the common preset, or the default-deny template when both are empty."""
    ruleset = common_rules() if body.preset == "common" else RuleSet(rules=tuple(body.rules))
    return RulesRenderResponse(rules=request.app.state.rule_compiler.render(ruleset))
