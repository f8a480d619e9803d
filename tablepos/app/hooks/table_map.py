import json
import logging
from datetime import datetime, timezone

from ..models import RestaurantTable

logger = logging.getLogger("tablepos.hooks")


def channel_for(restaurant_id: str) -> str:
    return f"rt:table_map:{restaurant_id}"


async def publish_table_state(redis, restaurant_id: str, table: RestaurantTable | None) -> bool:
    """Publish a table's status to the floor-map channel of its restaurant.

    Best effort: the database is the source of truth and terminals resync
    on reconnect, so a failed publish is logged and otherwise ignored.
    Returns whether a message was sent.
    """
    if redis is None or table is None:
        return False
    payload = {
        "table_id": table.id,
        "label": table.label,
        "status": table.status,
        "x": table.pos_x,
        "y": table.pos_y,
        "ts": datetime.now(timezone.utc).timestamp(),
    }
    try:
        await redis.publish(channel_for(restaurant_id), json.dumps(payload))
    except Exception as exc:
        logger.warning(
            "table_map.publish_failed table=%s error=%s",
            table.label,
            exc,
            extra={"restaurant": restaurant_id},
        )
        return False
    return True
