"""
Offset pagination for admin list endpoints
"""
from math import ceil
from typing import Any, Callable, Dict
from sqlalchemy.orm import Query
from app.schemas.common import PaginatedResponse, PaginationModel


def paginate(page: int, limit: int, total: int) -> PaginationModel:
    total_pages = ceil(total / limit) if limit > 0 else 0
    return PaginationModel(
        currentPage=page,
        totalPages=total_pages,
        totalItems=total,
        itemsPerPage=limit,
        hasNext=page < total_pages,
        hasPrev=page > 1,
    )


def paginate_query(query: Query, page: int, limit: int, serialize: Callable[[Any], Any]) -> Dict[str, Any]:
    """Run `query` for one page; ordering is the caller's"""
    total = query.count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return PaginatedResponse(
        items=[serialize(row) for row in rows],
        pagination=paginate(page, limit, total),
    ).model_dump()
