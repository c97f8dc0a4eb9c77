"""
Unit tests for the tenant isolation gate
"""
from decimal import Decimal

import pytest
from sqlalchemy import delete, insert, select, update

from inventory_hub.database.models import Category, Product, Role, UserRole
from inventory_hub.tenancy.context import TenantContext
from inventory_hub.tenancy.isolation import soft_delete
from inventory_hub.utils.exceptions import (
    IsolationViolationError,
    TenantContextError,
    ValidationError,
)


def make_product(sku="W-1", **kwargs):
    kwargs.setdefault("name", f"Widget {sku}")
    kwargs.setdefault("price", Decimal("9.99"))
    return Product(sku=sku, **kwargs)


class TestReadIsolation:
    """Queries only ever see the context tenant's rows"""

    def test_new_rows_are_stamped_with_context_tenant(self, tenant_a, tenant_session):
        session = tenant_session(tenant_a.id, actor_id="user-7")
        product = make_product()
        session.add(product)
        session.commit()

        assert product.tenant_id == tenant_a.id
        assert product.id is not None
        assert product.created_by == "user-7"
        assert product.created_at is not None

    def test_other_tenant_rows_are_invisible(self, tenant_a, tenant_b, tenant_session):
        session_a = tenant_session(tenant_a.id)
        product = make_product("A-1")
        session_a.add(product)
        session_a.commit()
        product_id = product.id

        session_b = tenant_session(tenant_b.id)

        assert session_b.scalars(select(Product)).all() == []
        assert session_b.get(Product, product_id) is None
        assert session_b.scalars(select(Product).where(Product.id == product_id)).first() is None

    def test_each_tenant_sees_only_its_own(self, tenant_a, tenant_b, tenant_session):
        session_a = tenant_session(tenant_a.id)
        session_a.add_all([make_product("A-1"), make_product("A-2")])
        session_a.commit()
        session_b = tenant_session(tenant_b.id)
        session_b.add(make_product("B-1"))
        session_b.commit()

        skus_a = sorted(p.sku for p in tenant_session(tenant_a.id).scalars(select(Product)))
        skus_b = sorted(p.sku for p in tenant_session(tenant_b.id).scalars(select(Product)))

        assert skus_a == ["A-1", "A-2"]
        assert skus_b == ["B-1"]

    def test_unscoped_session_sees_everything(self, db_session, tenant_a, tenant_b, tenant_session):
        for tenant, sku in ((tenant_a, "A-1"), (tenant_b, "B-1")):
            session = tenant_session(tenant.id)
            session.add(make_product(sku))
            session.commit()

        assert len(db_session.scalars(select(Product)).all()) == 2

    def test_relationship_loads_are_filtered(self, tenant_a, tenant_session):
        session = tenant_session(tenant_a.id)
        category = Category(name="Tools")
        session.add(category)
        session.flush()
        kept = make_product("KEEP", category_id=category.id)
        gone = make_product("GONE", category_id=category.id)
        session.add_all([kept, gone])
        session.commit()

        soft_delete(session, gone)
        session.commit()

        fresh = tenant_session(tenant_a.id)
        loaded = fresh.scalars(select(Category)).one()
        assert [p.sku for p in loaded.products] == ["KEEP"]

    def test_session_without_context_refuses_queries(self, session_factories):
        session = session_factories[1]()
        try:
            with pytest.raises(TenantContextError):
                session.execute(select(Product))
        finally:
            session.close()

    def test_unestablished_context_refuses_queries(self, session_factories):
        session = session_factories[1](info={"tenant_context": TenantContext()})
        try:
            with pytest.raises(TenantContextError, match="not established"):
                session.execute(select(Product))
        finally:
            session.close()


class TestWriteIsolation:
    """Writes may never cross or move the tenant boundary"""

    def test_create_for_other_tenant_refused(self, tenant_a, tenant_b, tenant_session, db_session, metric_value):
        before = metric_value("inventory_hub_isolation_violations_total", {"operation": "create"})
        session = tenant_session(tenant_a.id)
        session.add(make_product("EVIL", tenant_id=tenant_b.id))

        with pytest.raises(IsolationViolationError) as exc_info:
            session.commit()
        session.rollback()

        assert exc_info.value.operation == "create"
        assert exc_info.value.details["expected_tenant"] == str(tenant_a.id)
        assert exc_info.value.details["actual_tenant"] == str(tenant_b.id)
        assert db_session.scalars(select(Product)).all() == []
        after = metric_value("inventory_hub_isolation_violations_total", {"operation": "create"})
        assert after == before + 1

    def test_explicit_own_tenant_is_accepted(self, tenant_a, tenant_session):
        session = tenant_session(tenant_a.id)
        product = make_product(tenant_id=str(tenant_a.id))
        session.add(product)
        session.commit()

        assert product.tenant_id == tenant_a.id

    def test_tenant_reassignment_refused(self, tenant_a, tenant_b, tenant_session, db_session):
        session = tenant_session(tenant_a.id)
        product = make_product()
        session.add(product)
        session.commit()

        product.tenant_id = tenant_b.id
        with pytest.raises(IsolationViolationError) as exc_info:
            session.commit()
        session.rollback()

        assert exc_info.value.operation == "update"
        assert db_session.scalars(select(Product)).one().tenant_id == tenant_a.id

    def test_foreign_object_cannot_be_modified(self, tenant_a, tenant_b, tenant_session, db_session):
        session_b = tenant_session(tenant_b.id)
        session_b.add(make_product("B-1"))
        session_b.commit()

        loader = tenant_session(tenant_b.id)
        foreign = loader.scalars(select(Product)).one()
        loader.close()

        session_a = tenant_session(tenant_a.id)
        session_a.add(foreign)
        foreign.name = "Hijacked"

        with pytest.raises(IsolationViolationError) as exc_info:
            session_a.commit()
        session_a.rollback()

        assert exc_info.value.operation == "update"
        assert db_session.scalars(select(Product)).one().name == "Widget B-1"

    def test_foreign_object_cannot_be_deleted(self, tenant_a, tenant_b, tenant_session):
        session_b = tenant_session(tenant_b.id)
        session_b.add(make_product("B-1"))
        session_b.commit()

        loader = tenant_session(tenant_b.id)
        foreign = loader.scalars(select(Product)).one()
        loader.close()

        session_a = tenant_session(tenant_a.id)
        session_a.add(foreign)
        session_a.delete(foreign)

        with pytest.raises(IsolationViolationError) as exc_info:
            session_a.commit()
        session_a.rollback()

        assert exc_info.value.operation == "delete"

    def test_update_stamps_modification_bookkeeping(self, tenant_a, tenant_session):
        session = tenant_session(tenant_a.id, actor_id="editor")
        product = make_product()
        session.add(product)
        session.commit()
        assert product.updated_at is None

        product.name = "Renamed"
        session.commit()

        assert product.updated_by == "editor"
        assert product.updated_at is not None


class TestDeletion:

    def test_hard_delete_of_soft_deletable_refused(self, tenant_a, tenant_session, db_session):
        session = tenant_session(tenant_a.id)
        product = make_product()
        session.add(product)
        session.commit()

        session.delete(product)
        with pytest.raises(ValidationError, match="soft_delete"):
            session.commit()
        session.rollback()

        assert db_session.scalars(select(Product)).one().is_deleted is False

    def test_soft_delete_hides_row(self, tenant_a, tenant_session, db_session):
        session = tenant_session(tenant_a.id, actor_id="remover")
        product = make_product()
        session.add(product)
        session.commit()

        soft_delete(session, product)
        session.commit()

        assert tenant_session(tenant_a.id).scalars(select(Product)).all() == []
        stored = db_session.scalars(select(Product)).one()
        assert stored.is_deleted is True
        assert stored.deleted_by == "remover"
        assert stored.deleted_at is not None

    def test_soft_delete_requires_capability(self, tenant_a, tenant_session):
        session = tenant_session(tenant_a.id)

        with pytest.raises(ValidationError):
            soft_delete(session, UserRole())

    def test_join_rows_can_be_hard_deleted(self, tenant_a, tenant_session, user_factory):
        user = user_factory(tenant_a, "member@acme.example.com")
        session = tenant_session(tenant_a.id)
        role = Role(name="Viewer", permissions=["products:read"])
        session.add(role)
        session.flush()
        assignment = UserRole(user_id=user.id, role_id=role.id)
        session.add(assignment)
        session.commit()

        session.delete(assignment)
        session.commit()

        assert tenant_session(tenant_a.id).scalars(select(UserRole)).all() == []


class TestBulkStatements:

    def test_bulk_update_touches_only_own_tenant(self, tenant_a, tenant_b, tenant_session, db_session):
        for tenant in (tenant_a, tenant_b):
            session = tenant_session(tenant.id)
            session.add(Category(name=f"Tools {tenant.subdomain}"))
            session.commit()

        session_a = tenant_session(tenant_a.id, actor_id="bulk-editor")
        session_a.execute(
            update(Category).values(description="Hand tools"),
            execution_options={"synchronize_session": False},
        )
        session_a.commit()

        stored = {c.name: c for c in db_session.scalars(select(Category))}
        assert stored["Tools acme"].description == "Hand tools"
        assert stored["Tools acme"].updated_by == "bulk-editor"
        assert stored["Tools acme"].updated_at is not None
        assert stored["Tools globex"].description is None
        assert stored["Tools globex"].updated_by is None

    def test_bulk_update_of_audited_entity_refused(self, tenant_a, tenant_session, db_session):
        session = tenant_session(tenant_a.id)
        product = make_product(price=Decimal("10.00"))
        session.add(product)
        session.commit()

        with pytest.raises(ValidationError):
            session.execute(
                update(Product).where(Product.id == product.id).values(price=Decimal("12.50"))
            )
        session.rollback()

        assert db_session.scalars(select(Product.price)).one() == Decimal("10.00")

    def test_bulk_insert_for_other_tenant_refused(self, tenant_a, tenant_b, tenant_session,
                                                  db_session, metric_value):
        before = metric_value("inventory_hub_isolation_violations_total", {"operation": "create"})
        session = tenant_session(tenant_a.id)

        with pytest.raises(IsolationViolationError):
            session.execute(insert(Product), [
                {"tenant_id": tenant_b.id, "name": "Planted", "sku": "X-1", "price": Decimal("1.00")},
            ])
        session.rollback()

        assert db_session.scalars(select(Product)).all() == []
        after = metric_value("inventory_hub_isolation_violations_total", {"operation": "create"})
        assert after == before + 1

    def test_bulk_insert_of_tenant_rows_refused(self, tenant_a, tenant_session, db_session):
        session = tenant_session(tenant_a.id)

        with pytest.raises(ValidationError):
            session.execute(insert(Product), [
                {"name": "Widget", "sku": "W-1", "price": Decimal("1.00")},
            ])
        session.rollback()

        assert db_session.scalars(select(Product)).all() == []

    def test_bulk_delete_of_soft_deletable_refused(self, tenant_a, tenant_session):
        session = tenant_session(tenant_a.id)

        with pytest.raises(ValidationError):
            session.execute(delete(Product))
