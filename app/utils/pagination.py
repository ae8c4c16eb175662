# app/utils/pagination.py
import math

from starlette.datastructures import URL

from app.schemas.common import PageLinks, PageMeta


def build_page_meta(url: URL, total: int, page: int, limit: int) -> PageMeta:
    """
    分頁資訊 + 連結；連結保留原本的其他 query 參數（例如 search），只改 page / limit。
    沒有資料時 totalPages = 0，first / last 都指向第 1 頁。
    """
    total_pages = math.ceil(total / limit) if limit else 0
    last_page = max(total_pages, 1)

    def link(p: int) -> str:
        return str(url.include_query_params(page=p, limit=limit))

    links = PageLinks(
        first=link(1),
        last=link(last_page),
        prev=link(page - 1) if page > 1 else None,
        next=link(page + 1) if page < total_pages else None,
    )
    return PageMeta(total=total, page=page, limit=limit, total_pages=total_pages, links=links)
