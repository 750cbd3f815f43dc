from clarity.services.tenant_filter import scope, scope_document


def test_scope_adds_tenant_constraint():
    assert scope({"isVisible": True}, "gym-1") == {"isVisible": True, "tenantId": "gym-1"}


def test_scope_does_not_mutate_input():
    query = {"isVisible": True}
    scope(query, "gym-1")
    assert query == {"isVisible": True}


def test_scope_overrides_caller_supplied_tenant():
    assert scope({"tenantId": "gym-2"}, "gym-1") == {"tenantId": "gym-1"}


def test_scope_without_tenant_returns_query_unchanged():
    query = {"_id": "abc"}
    assert scope(query, None) is query
    assert scope(query, "") is query


def test_scope_document_stamps_tenant():
    assert scope_document({"text": "hi"}, "gym-1") == {"text": "hi", "tenantId": "gym-1"}
