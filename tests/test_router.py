"""
Unit tests for the procedure registry and call pipeline.
"""

import pytest
from pydantic import BaseModel

from smartclinic.errors import Forbidden, MethodNotSupported, NotFound, Unauthenticated, ValidationError
from smartclinic.models import AuthUser, CallContext
from smartclinic.procedures.root import app_router
from smartclinic.router import Router, call


class Echo(BaseModel):
    n: int


def build_router():
    router = Router("demo")
    calls = []

    @router.query("echo", tier="protected", schema=Echo)
    def echo(ctx, data):
        calls.append(data)
        return data.n

    @router.mutation("reset", tier="admin")
    def reset(ctx, data):
        calls.clear()
        return True

    return router, calls


def ctx_with(role=None):
    user = AuthUser(id="u-1", name="X", email="x@clinic.test", role=role) if role else None
    return CallContext(engine=None, user=user)


# ── Tests: registry ──────────────────────────────────────────────────

def test_paths_are_namespaced():
    router, _ = build_router()
    assert [p.path for p in router] == ["demo.echo", "demo.reset"]
    assert router.get("demo.echo").kind == "query"
    assert router.get("demo.reset").kind == "mutation"


def test_duplicate_registration_rejected():
    router, _ = build_router()
    with pytest.raises(ValueError, match="registered twice"):
        router.query("echo", tier="public")(lambda ctx, data: None)


def test_merge_rejects_colliding_paths():
    first, _ = build_router()
    second, _ = build_router()
    with pytest.raises(ValueError, match="registered twice"):
        Router().merge(first, second)


def test_app_router_holds_every_namespace():
    namespaces = {p.path.split(".")[0] for p in app_router if "." in p.path}
    assert namespaces == {"patient", "appointment", "immunization", "expense", "clinicalNote", "budget"}
    assert app_router.get("healthCheck").tier == "public"


# ── Tests: call pipeline ─────────────────────────────────────────────

def test_call_unknown_path():
    router, _ = build_router()
    with pytest.raises(NotFound, match="demo.missing"):
        call(router, ctx_with("admin"), "demo.missing")


def test_call_kind_mismatch():
    router, _ = build_router()
    with pytest.raises(MethodNotSupported):
        call(router, ctx_with("admin"), "demo.reset", kind="query")


def test_call_checks_role_before_input():
    router, calls = build_router()
    with pytest.raises(Unauthenticated):
        call(router, ctx_with(None), "demo.echo", {"n": "not-a-number"})
    with pytest.raises(Forbidden):
        call(router, ctx_with("nurse"), "demo.reset")
    assert calls == []


def test_call_validation_details():
    router, calls = build_router()
    with pytest.raises(ValidationError) as e:
        call(router, ctx_with("member"), "demo.echo", {"n": "abc"})
    assert e.value.details[0]["field"] == "n"
    assert e.value.to_dict()["code"] == "VALIDATION_ERROR"
    assert calls == []


def test_call_rejects_non_object_input():
    router, _ = build_router()
    with pytest.raises(ValidationError, match="JSON object"):
        call(router, ctx_with("member"), "demo.echo", [1, 2])


def test_call_runs_handler():
    router, calls = build_router()
    assert call(router, ctx_with("member"), "demo.echo", {"n": 4}) == 4
    assert len(calls) == 1


def test_public_and_private_root_procedures(run):
    assert run(None, "healthCheck") == "OK"
    result = run("nurse", "privateData")
    assert result["message"] == "This is private"
    assert result["user"]["role"] == "nurse"
    assert result["permissions"]["patients"] == ["create", "read", "update"]
    with pytest.raises(Unauthenticated):
        run(None, "privateData")


# ── Tests: tier enforcement across the app router ────────────────────

DENIED = {
    "staff": ("member",),
    "doctor": ("nurse", "member"),
    "admin": ("doctor", "nurse", "member"),
}
DENIALS = [
    (p.path, role)
    for p in app_router
    for role in DENIED.get(p.tier, ())
]
SIGNED_IN_ONLY = [p.path for p in app_router if p.tier != "public"]


def test_admin_only_procedures_are_registered():
    admin_only = {p.path for p in app_router if p.tier == "admin"}
    assert admin_only == {
        "patient.delete", "expense.delete", "expense.getFinancialSummary",
        "budget.create", "budget.update", "budget.delete", "budget.getBudgetUtilization",
    }


@pytest.mark.parametrize("path,role", DENIALS)
def test_roles_below_tier_are_forbidden(run, path, role):
    with pytest.raises(Forbidden, match=f"role '{role}'"):
        run(role, path, {})


@pytest.mark.parametrize("path", SIGNED_IN_ONLY)
def test_anonymous_callers_are_rejected(run, path):
    with pytest.raises(Unauthenticated):
        run(None, path, {})
