"""Background jobs run by the arq worker."""

from firmsync.core.jobs.registry import (
    close_arq_pool,
    enqueue_provisioning,
    get_arq_pool,
    init_arq_pool,
)


__all__ = [
    "close_arq_pool",
    "enqueue_provisioning",
    "get_arq_pool",
    "init_arq_pool",
]
