"""The ``/users`` resource.

Every handler opens the request's audit pair, records the inbound call as
node ``client`` and closes the pair through ``response_data``. Store calls
are recorded by ``UserService``.
"""

from typing import Final

from waypoint.api.routing import (
    RouteContext,
    RouteDefinition,
    RouteSchema,
    TypeRoute,
    response_data,
)
from waypoint.api.schemas.envelope import ResponseEnvelope
from waypoint.core.audit import DEFAULT_INVOKE, AuditLogFactory, AuditLogger
from waypoint.domain.users import (
    UserBody,
    UserIdParams,
    UserQuery,
    UserResponse,
    UserService,
)

NODE: Final[str] = "client"


class UserController:
    """List, create, read, update and delete users.

    Args:
        service: The audited user service.
        audit: Factory of per-request audit pairs.
    """

    def __init__(self, service: UserService, audit: AuditLogFactory) -> None:
        self.service = service
        self.audit = audit

    def routes(self) -> list[RouteDefinition]:
        """Route descriptors of the resource."""
        return [
            TypeRoute.get("/users", self.get_all_users, RouteSchema(query=UserQuery)),
            TypeRoute.post("/users", self.create_user, RouteSchema(body=UserBody)),
            TypeRoute.get(
                "/users/{id}", self.get_user_by_id, RouteSchema(params=UserIdParams)
            ),
            TypeRoute.put(
                "/users/{id}",
                self.update_user,
                RouteSchema(params=UserIdParams, body=UserBody),
            ),
            TypeRoute.delete(
                "/users/{id}", self.delete_user, RouteSchema(params=UserIdParams)
            ),
        ]

    def _open(self, ctx: RouteContext, cmd: str) -> AuditLogger:
        audit = self.audit.open(
            ctx.request, scenario=cmd, invoke=DEFAULT_INVOKE, identity=DEFAULT_INVOKE
        )
        audit.detail.add_input_request(NODE, cmd, DEFAULT_INVOKE, {})
        audit.summary.add_success_block(NODE, cmd, "null", "success")
        return audit

    async def get_all_users(
        self, ctx: RouteContext[UserQuery, None, None]
    ) -> ResponseEnvelope:
        """GET /users"""
        with self._open(ctx, "get-all-user") as audit:
            page = await self.service.get_all_users(ctx.query, audit)
            return response_data(
                ResponseEnvelope(
                    data=[UserResponse.from_record(record) for record in page.data],
                    total=page.total,
                    page=ctx.query.page,
                    page_size=ctx.query.limit,
                ),
                audit,
            )

    async def create_user(
        self, ctx: RouteContext[None, None, UserBody]
    ) -> ResponseEnvelope:
        """POST /users"""
        with self._open(ctx, "post-user") as audit:
            record = await self.service.create_user(ctx.body, audit)
            return response_data(
                ResponseEnvelope(
                    status_code=201,
                    message="Created",
                    data=record.public() if record is not None else [],
                ),
                audit,
            )

    async def get_user_by_id(
        self, ctx: RouteContext[None, UserIdParams, None]
    ) -> ResponseEnvelope:
        """GET /users/{id}"""
        with self._open(ctx, "get-user-by-id") as audit:
            record = await self.service.get_user_by_id(ctx.params.id, audit)
            return response_data(
                ResponseEnvelope(data=UserResponse.from_record(record)), audit
            )

    async def update_user(
        self, ctx: RouteContext[None, UserIdParams, UserBody]
    ) -> ResponseEnvelope:
        """PUT /users/{id}"""
        with self._open(ctx, "put-user") as audit:
            record = await self.service.update_user(ctx.params.id, ctx.body, audit)
            return response_data(ResponseEnvelope(data=record.public()), audit)

    async def delete_user(
        self, ctx: RouteContext[None, UserIdParams, None]
    ) -> ResponseEnvelope:
        """DELETE /users/{id}"""
        with self._open(ctx, "delete-user") as audit:
            await self.service.delete_user(ctx.params.id, audit)
            return response_data(
                ResponseEnvelope(status_code=204, message="Deleted"), audit
            )
