"""
Top-level router – merges every resource namespace under one dotted-path table.
"""

from smartclinic.procedures import appointment, budget, clinical_note, expense, immunization, patient
from smartclinic.rbac import allowed_actions
from smartclinic.router import Router

root = Router()


@root.query("healthCheck", tier="public")
def health_check(ctx, data):
    return "OK"


@root.query("privateData", tier="protected")
def private_data(ctx, data):
    return {
        "message": "This is private",
        "user": ctx.user.to_dict(),
        "permissions": allowed_actions(ctx.user.role),
    }


def build_app_router() -> Router:
    """A fresh router holding every procedure in the application."""
    return Router().merge(
        root,
        patient.router,
        appointment.router,
        immunization.router,
        expense.router,
        clinical_note.router,
        budget.router,
    )


app_router = build_app_router()
