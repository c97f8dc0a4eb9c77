"""
Unit tests for the request tenant context
"""
import uuid

import pytest

from inventory_hub.database.models import SYSTEM_ACTOR
from inventory_hub.tenancy.context import TenantContext
from inventory_hub.utils.exceptions import TenantContextError


class TestTenantContext:
    """Single-write, many-read semantics"""

    def test_get_before_set_raises(self):
        context = TenantContext()

        assert context.is_established is False
        with pytest.raises(TenantContextError, match="not established"):
            context.get()

    def test_set_then_get(self):
        tenant_id = uuid.uuid4()
        context = TenantContext()

        context.set(tenant_id, strategy="header")

        assert context.is_established is True
        assert context.get() == tenant_id
        assert context.strategy == "header"

    def test_set_same_tenant_again_is_noop(self):
        tenant_id = uuid.uuid4()
        context = TenantContext()
        context.set(tenant_id, strategy="subdomain")

        context.set(str(tenant_id), strategy="claim")

        assert context.get() == tenant_id
        assert context.strategy == "subdomain"

    def test_rebinding_to_other_tenant_raises(self):
        first, second = uuid.uuid4(), uuid.uuid4()
        context = TenantContext()
        context.set(first)

        with pytest.raises(TenantContextError) as exc_info:
            context.set(second)

        assert context.get() == first
        assert exc_info.value.details["requested_tenant"] == str(second)

    def test_string_identity_is_parsed(self):
        tenant_id = uuid.uuid4()
        context = TenantContext()

        context.set(str(tenant_id))

        assert context.get() == tenant_id

    @pytest.mark.parametrize("value", ["", None, "not-a-uuid"])
    def test_empty_or_malformed_identity_rejected(self, value):
        context = TenantContext()

        with pytest.raises(TenantContextError):
            context.set(value)

        assert context.is_established is False

    def test_actor_defaults_to_system(self):
        assert TenantContext().actor_id == SYSTEM_ACTOR
        assert TenantContext(actor_id="user-42").actor_id == "user-42"

    def test_contexts_are_independent(self):
        a, b = TenantContext(), TenantContext()
        a.set(uuid.uuid4())

        assert b.is_established is False
