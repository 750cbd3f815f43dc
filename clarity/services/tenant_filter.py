from typing import Optional

TENANT_FIELD = "tenantId"


def scope(query: dict, tenant_id: Optional[str]) -> dict:
    """
    Return a copy of `query` constrained to `tenant_id`.

    Every read, write, count and delete on tenant-owned collections goes through
    this function. Without a tenant id the query is returned unchanged, which is
    only legitimate for tenant-agnostic lookups.
    """
    if tenant_id:
        return {**query, TENANT_FIELD: str(tenant_id)}
    return query


def scope_document(doc: dict, tenant_id: Optional[str]) -> dict:
    """Stamp a document about to be inserted with its owning tenant."""
    return scope(doc, tenant_id)
