from tms.core.interfaces.query_cache import CacheKey
from tms.core.models.requests import ListJobItemsParams, ListTranslationJobsParams


class JobCacheKeys:
    """Hierarchical cache keys for translation job queries.

    Every key starts with `ALL`, so invalidating or cancelling `ALL` reaches
    every job entry; `lists()` covers every list page regardless of params.
    """

    ALL: CacheKey = ("translation-jobs",)

    @classmethod
    def active(cls, project_id: str) -> CacheKey:
        return cls.ALL + ("active", project_id)

    @classmethod
    def lists(cls) -> CacheKey:
        return cls.ALL + ("list",)

    @classmethod
    def list(cls, params: ListTranslationJobsParams) -> CacheKey:
        return cls.lists() + (params,)

    @classmethod
    def detail(cls, job_id: str) -> CacheKey:
        return cls.ALL + ("detail", job_id)

    @classmethod
    def items(cls, job_id: str, params: ListJobItemsParams | None = None) -> CacheKey:
        key = cls.ALL + ("items", job_id)
        return key + (params,) if params is not None else key
