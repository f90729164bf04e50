"""The ``/profile`` resource."""

from typing import Final

from pydantic import BaseModel

from waypoint.api.routing import (
    RouteContext,
    RouteDefinition,
    RouteSchema,
    TypeRoute,
    response_data,
)
from waypoint.api.schemas.envelope import ResponseEnvelope
from waypoint.core.audit import DEFAULT_INVOKE, AuditLogFactory

NODE: Final[str] = "client"


class ProfileQuery(BaseModel):
    username: str | None = None


class ProfileBody(BaseModel):
    username: str


class ProfileIdParams(BaseModel):
    id: str


class ProfileController:
    """Profile lookups.

    Args:
        audit: Factory of per-request audit pairs.
    """

    def __init__(self, audit: AuditLogFactory) -> None:
        self.audit = audit

    def routes(self) -> list[RouteDefinition]:
        """Route descriptors of the resource."""
        return [
            TypeRoute.get("/profile", self.get_profile, RouteSchema(query=ProfileQuery)),
            TypeRoute.post(
                "/profile", self.post_profile, RouteSchema(body=ProfileBody)
            ),
            TypeRoute.get(
                "/profile/{id}",
                self.get_profile_by_id,
                RouteSchema(params=ProfileIdParams),
            ),
        ]

    def get_profile(
        self, ctx: RouteContext[ProfileQuery, None, None]
    ) -> ResponseEnvelope:
        """GET /profile"""
        cmd = "get-profile"
        with self.audit.open(ctx.request, scenario=cmd) as audit:
            audit.detail.add_input_request(
                NODE, cmd, DEFAULT_INVOKE, ctx.query.model_dump()
            )
            audit.summary.add_success_block(NODE, cmd, "null", "success")
            return response_data(ResponseEnvelope(data=[]), audit)

    def post_profile(
        self, ctx: RouteContext[None, None, ProfileBody]
    ) -> ResponseEnvelope:
        """POST /profile"""
        cmd = "post-profile"
        with self.audit.open(ctx.request, scenario=cmd) as audit:
            audit.detail.add_input_request(NODE, cmd, DEFAULT_INVOKE, {})
            audit.summary.add_success_block(NODE, cmd, "null", "success")
            return response_data(
                ResponseEnvelope(data={"username": ctx.body.username}), audit
            )

    @staticmethod
    def get_profile_by_id(
        ctx: RouteContext[None, ProfileIdParams, None],
    ) -> ResponseEnvelope:
        """GET /profile/{id}, answered without audit records."""
        return ResponseEnvelope(data={"id": ctx.params.id})
