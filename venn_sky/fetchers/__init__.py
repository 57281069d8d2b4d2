from venn_sky.fetchers.lists import FetchError, ListFetcher

__all__ = ["FetchError", "ListFetcher"]
