from __future__ import annotations

from fastapi import APIRouter, Depends

from ..logs import search_logs
from ..services.utils import parse_pagination
from .deps import API_PREFIX, require_admin

router = APIRouter()


@router.get(f"{API_PREFIX}/logs/search")
def api_logs_search(
    page: int = 1,
    size: int = 20,
    action: str | None = None,
    query: str | None = None,
    user: str | None = None,
    entity_id: str | None = None,
    result: str | None = None,
    ts_from: str | None = None,
    ts_to: str | None = None,
    admin: dict = Depends(require_admin),
):
    page, size, _ = parse_pagination(page, size, max_size=200)
    total, items = search_logs(query, action, ts_from, ts_to, page, size,
                               user=user, entity_id=entity_id, result=result)
    return {"total": total, "page": page, "size": size, "items": items}
