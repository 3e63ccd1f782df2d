from pytest_archon import archrule


def test_storage_independent_of_messaging() -> None:
    """
    The storage access layer owns authorization and must not know how
    uploads arrive.
    """
    (
        archrule("storage_independence")
        .match("tenant_gateway.storage*")
        .should_not_import("tenant_gateway.messaging*")
        .should_not_import("tenant_gateway.consumer")
        .should_not_import("tenant_gateway.gateway")
        .check("tenant_gateway")
    )


def test_messaging_independent_of_storage() -> None:
    """
    Messaging moves envelopes; it must not reach into storage or the
    components wired on top of it.
    """
    (
        archrule("messaging_independence")
        .match("tenant_gateway.messaging*")
        .should_not_import("tenant_gateway.storage*")
        .should_not_import("tenant_gateway.consumer")
        .should_not_import("tenant_gateway.gateway")
        .check("tenant_gateway")
    )


def test_observability_is_a_leaf() -> None:
    """Observability may be imported by every layer and imports none of them."""
    (
        archrule("observability_leaf")
        .match("tenant_gateway.observability*")
        .should_not_import("tenant_gateway.messaging*")
        .should_not_import("tenant_gateway.storage*")
        .should_not_import("tenant_gateway.consumer")
        .check("tenant_gateway")
    )


def test_exceptions_have_no_internal_imports() -> None:
    (
        archrule("exceptions_leaf")
        .match("tenant_gateway.exceptions")
        .should_not_import("tenant_gateway.*")
        .check("tenant_gateway")
    )
