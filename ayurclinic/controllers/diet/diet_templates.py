from typing import Optional

from flask_openapi3 import APIBlueprint, Tag
from flask_jwt_extended import jwt_required
from pydantic import BaseModel, Field

from ...addons.diet_templates import get_current_season, get_diet_template
from ...addons.functions import jsonifyFormat

diet_tag = Tag(name="Diet", description="Ayurvedic diet templates")
diet_bp = APIBlueprint('diet', __name__, url_prefix='/api/diet', abp_tags=[diet_tag])


class DietTemplateQuery(BaseModel):
    constitution: Optional[str] = Field(None, description="VATA, PITTA, KAPHA or TRIDOSHA")
    season: Optional[str] = Field(None, description="Defaults to the current season")


@diet_bp.get('/templates', security=[{"jwt": []}])
@jwt_required()
def get_template(query: DietTemplateQuery):
    """Diet template for a constitution and season
    Unknown combinations fall back to the TRIDOSHA / SPRING plan.
    """
    constitution = (query.constitution or 'TRIDOSHA').upper()
    season = (query.season or get_current_season()).upper()

    return jsonifyFormat({
        'constitution': constitution,
        'season': season,
        'template': get_diet_template(constitution, season),
    }, 200)
