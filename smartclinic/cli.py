"""
Interactive CLI for SmartClinic.
Call any procedure as a logged-in user, with the same access rules as the API.
"""

import json

from pydantic_core import to_jsonable_python

from smartclinic.database import init_engine, init_schema
from smartclinic.errors import ProcedureError
from smartclinic.models import CallContext
from smartclinic.procedures.root import app_router
from smartclinic.rbac import load_user_by_api_key
from smartclinic.router import call


def parse_line(line: str):
    """Split ``<procedure> [json]`` into the path and its input payload."""
    path, _, raw = line.strip().partition(" ")
    raw = raw.strip()
    return path, (json.loads(raw) if raw else None)


def main():
    print("=== SmartClinic: procedure console (RBAC enforced) ===\n")

    engine = init_engine()
    init_schema(engine)

    # ── Login ────────────────────────────────────────────────────────
    try:
        api_key = input("Enter access key (or 'quit'): ").strip()
    except (EOFError, KeyboardInterrupt):
        print("\nExiting.")
        return

    if not api_key or api_key.lower() in {"quit", "exit"}:
        print("Goodbye.")
        return

    try:
        user = load_user_by_api_key(engine, api_key)
    except ValueError as e:
        print("\n[ERROR] Login failed.")
        print("Details:", e)
        return

    ctx = CallContext(engine=engine, user=user)
    print(f"\n[auth] Logged in as: {user.name} (role={user.role})")
    print("[auth] Type 'help' to list procedures.")

    # ── REPL ─────────────────────────────────────────────────────────
    while True:
        try:
            line = input("\nprocedure [json input] (or 'quit'): ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            break

        if not line:
            continue
        if line.lower() in {"quit", "exit"}:
            print("Goodbye.")
            break
        if line.lower() == "help":
            for procedure in app_router:
                print(f"  {procedure.kind:<8} {procedure.tier:<9} {procedure.path}")
            continue

        try:
            path, payload = parse_line(line)
        except json.JSONDecodeError as e:
            print("\n[INPUT ERROR] Could not parse the JSON input.")
            print("Details:", e)
            continue

        try:
            result = call(app_router, ctx, path, payload)
        except ProcedureError as e:
            print(f"\n[{e.code}] {e.message}")
            if e.details:
                print(json.dumps(e.details, indent=2))
            continue
        except Exception as e:
            print("\n[DB ERROR] Database error while running the procedure.")
            print("Details:", e)
            continue

        print(json.dumps(to_jsonable_python(result), indent=2))


if __name__ == "__main__":
    main()
