"""
Line Item Scaffold Generator

Suggests typical estimate line items for the extracted rooms. Scaffolds
carry descriptions, categories and cost codes only: pricing keys the model
returns are never copied over.
"""

import logging
from typing import Any, Dict, List, Sequence

from pydantic import ValidationError

from ...core.config import settings
from .llm_client import PlanLLMClient, PlanLLMError
from .schemas import ExtractedRoom, LineItemScaffold, is_number

logger = logging.getLogger(__name__)


COST_CODES: Dict[str, str] = {
    "723": "Paint",
    "734": "Wood Floor",
    "733": "Vinyl Floor",
    "737": "Carpet",
    "405": "Electrical",
    "404": "Plumbing",
    "728": "Tile",
    "402": "HVAC",
    "740": "Lighting",
    "716": "Cabinetry",
    "721": "Countertops",
    "739": "Plumbing Fixtures",
    "999": "General/Other",
}

LINE_ITEM_SYSTEM_PROMPT = """You are an expert construction estimator. Generate a scaffold of typical line items for the given rooms.

Return JSON:
{
  "items": [
    {
      "description": "Paint walls and ceiling",
      "category": "Paint",
      "cost_code": "723",
      "room_name": "Master Bedroom",
      "quantity": null,
      "unit": "ROOM",
      "notes": null
    }
  ]
}

COST CODES:
- 723: Paint
- 734: Wood Floor / 733: Vinyl Floor / 737: Carpet
- 405: Electrical
- 404: Plumbing
- 728: Tile
- 402: HVAC
- 740: Lighting
- 716: Cabinetry
- 721: Countertops
- 739: Plumbing Fixtures
- 999: General/Other

RULES:
- Include common items per room: paint, flooring, electrical, plumbing (where applicable)
- For bathrooms: include tile, fixtures, plumbing
- For kitchens: include cabinetry, countertops, appliances
- DO NOT include any pricing - leave cost fields null
- Quantities can be null if unknown
- Keep descriptions concise but clear
- Suggest 3-5 key items per room maximum
- DO NOT include unit costs, material costs, labor costs, or any pricing information"""


def _room_line(room: ExtractedRoom) -> str:
    room_type = room.type.value if room.type else "room"
    area = f", {room.area_sqft:g} sqft" if room.area_sqft else ""
    return f"- {room.name} ({room_type}{area})"


def _scaffold_from_item(item: Any) -> LineItemScaffold:
    quantity = item.get("quantity")
    cost_code = str(item.get("cost_code") or "999")
    return LineItemScaffold(
        description=item.get("description") or "",
        category=item.get("category") or "Other",
        cost_code=cost_code if cost_code in COST_CODES else "999",
        room_name=item.get("room_name") or "General",
        quantity=quantity if is_number(quantity) else None,
        unit=item.get("unit") or None,
        notes=item.get("notes") or None,
    )


async def generate_line_item_scaffold(
    rooms: Sequence[ExtractedRoom],
    client: PlanLLMClient,
) -> List[LineItemScaffold]:
    """
    Generate line item scaffolds for rooms.

    Returns:
        Validated scaffolds; [] when there are no rooms or the call fails
    """
    if not rooms:
        return []

    room_list = "\n".join(_room_line(room) for room in rooms)

    try:
        payload = await client.complete_json(
            model=settings.line_item_model,
            system_prompt=LINE_ITEM_SYSTEM_PROMPT,
            user_content=f"Generate line item scaffolds for these rooms:\n{room_list}",
            temperature=0.4,
        )
    except PlanLLMError as e:
        logger.warning(f"Line item scaffold generation failed, returning empty scaffold: {e}")
        return []

    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict):
        items = payload.get("items") or payload.get("lineItems") or []
    else:
        items = []

    scaffolds: List[LineItemScaffold] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            scaffolds.append(_scaffold_from_item(item))
        except ValidationError as e:
            logger.debug(f"Dropping invalid line item {item.get('description')!r}: {e.error_count()} error(s)")

    logger.info(f"Generated {len(scaffolds)} line item scaffolds for {len(rooms)} rooms")
    return scaffolds
