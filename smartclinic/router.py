"""
Procedure registry – dotted-path lookup and the call pipeline.

A call runs: role tier checks -> input validation -> handler. Ownership checks
happen inside handlers, after the target record is loaded.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Type

import pydantic

from smartclinic.errors import MethodNotSupported, NotFound, ValidationError
from smartclinic.gate import authorize, policy_for
from smartclinic.models import CallContext


@dataclass(frozen=True)
class Procedure:
    """A single named RPC operation."""
    path: str
    kind: str                  # "query" or "mutation"
    tier: str
    handler: Callable
    schema: Optional[Type[pydantic.BaseModel]] = None
    policy: Tuple = ()

    def parse(self, payload: Any):
        """Validate *payload* against the input schema."""
        if self.schema is None:
            return None
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValidationError("Input must be a JSON object")
        try:
            return self.schema.model_validate(payload)
        except pydantic.ValidationError as e:
            raise ValidationError("Invalid input", details=_error_details(e)) from e


def _error_details(exc: pydantic.ValidationError) -> list:
    return [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors(include_url=False, include_context=False, include_input=False)
    ]


class Router:
    """A namespace of procedures, e.g. everything under ``patient.``."""

    def __init__(self, namespace: str = ""):
        self.namespace = namespace
        self._procedures: Dict[str, Procedure] = {}

    def _path(self, name: str) -> str:
        return f"{self.namespace}.{name}" if self.namespace else name

    def _register(self, kind: str, name: str, tier: str, schema):
        def decorator(handler):
            path = self._path(name)
            if path in self._procedures:
                raise ValueError(f"Procedure '{path}' registered twice")
            self._procedures[path] = Procedure(
                path=path, kind=kind, tier=tier, handler=handler,
                schema=schema, policy=policy_for(tier),
            )
            return handler
        return decorator

    def query(self, name: str, tier: str, schema=None):
        return self._register("query", name, tier, schema)

    def mutation(self, name: str, tier: str, schema=None):
        return self._register("mutation", name, tier, schema)

    def merge(self, *routers: "Router") -> "Router":
        for other in routers:
            for path, procedure in other._procedures.items():
                if path in self._procedures:
                    raise ValueError(f"Procedure '{path}' registered twice")
                self._procedures[path] = procedure
        return self

    def get(self, path: str) -> Optional[Procedure]:
        return self._procedures.get(path)

    def __iter__(self) -> Iterator[Procedure]:
        return iter(sorted(self._procedures.values(), key=lambda p: p.path))

    def __len__(self) -> int:
        return len(self._procedures)


def call(router: Router, ctx: CallContext, path: str, payload: Any = None,
         kind: Optional[str] = None) -> Any:
    """Resolve *path* on *router* and run it for the caller in *ctx*.

    When *kind* is given, the procedure must be of that kind (a query cannot be
    called as a mutation and vice versa).
    """
    procedure = router.get(path)
    if procedure is None:
        raise NotFound(f"No procedure found on path '{path}'")
    if kind is not None and kind != procedure.kind:
        raise MethodNotSupported(f"'{path}' is a {procedure.kind}, not a {kind}")

    authorize(ctx, procedure)
    data = procedure.parse(payload)
    return procedure.handler(ctx, data)
