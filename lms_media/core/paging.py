from dataclasses import dataclass
from urllib.parse import urlencode
from .config import settings

# Offsets past this cannot be bound as a 64-bit integer and hold no rows anyway
MAX_OFFSET = 2**62

@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    per_page: int = settings.DEFAULT_PER_PAGE

    @classmethod
    def build(cls, page: int | None, per_page: int | None) -> "PageRequest":
        per = per_page or settings.DEFAULT_PER_PAGE
        per = max(1, min(per, settings.MAX_PER_PAGE))
        return cls(page=max(1, page or 1), per_page=per)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def out_of_range(self) -> bool:
        return self.offset > MAX_OFFSET

def link_header(base_url: str, params: list[tuple[str, str]], page: PageRequest, has_next: bool) -> str:
    """Build an RFC 5988 Link header for 1-indexed page navigation."""
    kept = [(k, v) for k, v in params if k not in ("page", "per_page")]

    def url(n: int) -> str:
        return f"{base_url}?{urlencode(kept + [('page', str(n)), ('per_page', str(page.per_page))])}"

    links = [f'<{url(page.page)}>; rel="current"']
    if has_next:
        links.append(f'<{url(page.page + 1)}>; rel="next"')
    if page.page > 1:
        links.append(f'<{url(page.page - 1)}>; rel="prev"')
    links.append(f'<{url(1)}>; rel="first"')
    return ",".join(links)
