"""
Actor identity handed over by the upstream authentication layer.

Sessions and cookies are handled in front of this service; an authenticated
request arrives with ``X-Actor-Id`` / ``X-Actor-Name`` / ``X-Actor-Role``
headers. Requests without them are anonymous (self-order kiosks).
"""

from fastapi import Header

from pos.schemas.order import Actor


async def get_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_name: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor | None:
    if not x_actor_id:
        return None
    return Actor(id=x_actor_id, name=x_actor_name or x_actor_id, role=x_actor_role)
