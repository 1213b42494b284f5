"""Chat action dispatch.

Each inbound chat action runs as its own asyncio task so the socket's
receive loop never waits on the database. The task is the failure
boundary: whatever an action raises is logged there, counted, and
optionally reported back to the originating connection as an ``error``
frame. Recipients only ever see the results of committed writes.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from chat_service.core.database import RepositoryError
from chat_service.core.exceptions import AppException, ForbiddenException, NotFoundException
from chat_service.core.settings import get_websocket_settings
from chat_service.features.chat.membership import MembershipSynchronizer, ensure_users_exist
from chat_service.features.chat.models import ChatMessage
from chat_service.features.chat.repository import get_group_repository, get_message_repository
from chat_service.features.chat.schemas import (
    ActionErrorOut,
    ClientEvent,
    GroupMessageIn,
    IndividualMessageIn,
    MessageOut,
    ServerEvent,
    parse_payload,
    server_frame,
)
from chat_service.features.users.repository import get_user_repository
from chat_service.infra.database import get_async_session
from chat_service.infra.logging import get_lazy_logger
from chat_service.infra.metrics.prometheus import chat_action_duration_seconds, chat_actions_total

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from uuid import UUID

    from chat_service.core.settings import WebSocketSettings
    from chat_service.features.chat.repository import GroupRepository, MessageRepository
    from chat_service.features.users.repository import UserRepository
    from chat_service.infra.database import SessionFactory
    from chat_service.infra.realtime import ConnectionRegistry

    Handler = Callable[[str, UUID, dict[str, Any]], Awaitable[Any]]

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


class DispatchEngine:
    """Routes chat actions to their handlers and fans results out.

    Example:
        engine = DispatchEngine(registry)
        engine.dispatch(connection_id, user_id, "individual", {...})
        await engine.drain()
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        session_factory: SessionFactory = get_async_session,
        *,
        membership: MembershipSynchronizer | None = None,
        settings: WebSocketSettings | None = None,
        messages: MessageRepository | None = None,
        groups: GroupRepository | None = None,
        users: UserRepository | None = None,
    ) -> None:
        self._registry = registry
        self._session_factory = session_factory
        self._settings = settings or get_websocket_settings()
        self._messages = messages or get_message_repository()
        self._groups = groups or get_group_repository()
        self._users = users or get_user_repository()
        self.membership = membership or MembershipSynchronizer(
            registry, session_factory, groups=self._groups, users=self._users
        )
        self._tasks: set[asyncio.Task[None]] = set()

        self._handlers: dict[str, Handler] = {
            ClientEvent.INDIVIDUAL.value: self.handle_individual,
            ClientEvent.GROUP.value: self.handle_group,
            ClientEvent.CREATE_GROUP.value: self.membership.create_group,
            ClientEvent.ADD_USERS_TO_GROUP.value: self.membership.add_members,
        }

    @property
    def actions(self) -> frozenset[str]:
        """Event names this engine handles."""
        return frozenset(self._handlers)

    @property
    def pending(self) -> int:
        """Number of actions still in flight."""
        return len(self._tasks)

    def dispatch(self, connection_id: str, user_id: UUID, event: str, data: dict[str, Any]) -> asyncio.Task[None]:
        """Schedule ``event`` as an independent task and return it.

        Raises:
            KeyError: If ``event`` is not a chat action
        """
        handler = self._handlers[event]
        task = asyncio.create_task(
            self._run(event, handler, connection_id, user_id, data),
            name=f"chat-action:{event}:{connection_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight action to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(
        self,
        action: str,
        handler: Handler,
        connection_id: str,
        user_id: UUID,
        data: dict[str, Any],
    ) -> None:
        start = time.perf_counter()
        outcome = "ok"
        try:
            await handler(connection_id, user_id, data)
        except AppException as e:
            outcome = e.type
            logger.info(
                "Chat action rejected",
                extra={
                    "action": action,
                    "connection_id": connection_id,
                    "code": e.type,
                    "detail": e.detail,
                    "error_type": type(e).__name__,
                },
            )
            await self._report(connection_id, action, e.type, e.detail)
        except (SQLAlchemyError, RepositoryError) as e:
            outcome = "persistence-error"
            logger.exception(
                "Chat action failed to persist",
                extra={
                    "action": action,
                    "connection_id": connection_id,
                    "error_type": type(e).__name__,
                },
            )
            await self._report(connection_id, action, outcome, "The action could not be stored")
        except Exception as e:
            outcome = "internal-error"
            logger.exception(
                "Chat action failed",
                extra={
                    "action": action,
                    "connection_id": connection_id,
                    "error_type": type(e).__name__,
                },
            )
            await self._report(connection_id, action, outcome, "Internal error")
        finally:
            chat_actions_total.labels(action=action, outcome=outcome).inc()
            chat_action_duration_seconds.labels(action=action).observe(time.perf_counter() - start)

    async def _report(self, connection_id: str, action: str, code: str, message: str) -> None:
        if not self._settings.emit_action_errors:
            return
        error = ActionErrorOut(action=action, code=code, message=message)
        await self._registry.send_to_connection(connection_id, server_frame(ServerEvent.ERROR, error.to_wire()))

    def _check_sender(self, user_id: UUID, sender_id: UUID) -> None:
        if sender_id != user_id:
            raise ForbiddenException(
                detail="senderId does not match the connected user",
                extra={"sender_id": str(sender_id)},
            )

    # ──────────────────────────────────────────────────────────────
    # Message actions
    # ──────────────────────────────────────────────────────────────

    async def handle_individual(self, connection_id: str, user_id: UUID, data: dict[str, Any]) -> MessageOut:
        """Persist a direct message and deliver it to both participants."""
        payload = parse_payload(IndividualMessageIn, data)
        self._check_sender(user_id, payload.sender_id)

        async with self._session_factory() as session:
            await ensure_users_exist(self._users, session, (payload.sender_id, payload.receiver_id))
            stored = await self._messages.create(
                session,
                ChatMessage(
                    sender_id=payload.sender_id,
                    receiver_id=payload.receiver_id,
                    message=payload.message,
                    is_group=False,
                ),
            )
            await session.commit()
            out = MessageOut.model_validate(stored)

        frame = server_frame(ServerEvent.INDIVIDUAL, out.to_wire())
        channels = dict.fromkeys((str(payload.sender_id), str(payload.receiver_id)))
        delivered = await asyncio.gather(*(self._registry.publish(c, frame) for c in channels))

        lazy_logger.debug(lambda: f"individual {out.id} delivered to {sum(delivered)} connections")
        return out

    async def handle_group(self, connection_id: str, user_id: UUID, data: dict[str, Any]) -> MessageOut:
        """Persist a group message and deliver it to every current member."""
        payload = parse_payload(GroupMessageIn, data)
        self._check_sender(user_id, payload.sender_id)

        async with self._session_factory() as session:
            group = await self._groups.get(session, payload.group_id)
            if group is None:
                raise NotFoundException(
                    detail="Chat group not found",
                    type="chat-group-not-found",
                    extra={"group_id": str(payload.group_id)},
                )
            await ensure_users_exist(self._users, session, (payload.sender_id,))
            stored = await self._messages.create(
                session,
                ChatMessage(
                    sender_id=payload.sender_id,
                    group_id=payload.group_id,
                    message=payload.message,
                    is_group=True,
                ),
            )
            await session.commit()
            out = MessageOut.model_validate(stored)
            members = await self._groups.member_ids(session, payload.group_id)

        frame = server_frame(ServerEvent.GROUP, out.to_wire())
        delivered = await asyncio.gather(*(self._registry.publish(str(m), frame) for m in members))

        logger.info(
            "Group message fanned out",
            extra={
                "group_id": str(payload.group_id),
                "message_id": str(out.id),
                "members": len(members),
                "delivered": sum(delivered),
            },
        )
        return out


# Process-wide engine, owned by the application lifespan
_engine: DispatchEngine | None = None


def get_dispatch_engine() -> DispatchEngine:
    """Get the process-wide dispatch engine.

    Raises:
        RuntimeError: If the engine has not been started
    """
    if _engine is None:
        raise RuntimeError("Dispatch engine not initialized. Call start_dispatch_engine() first.")
    return _engine


def start_dispatch_engine(registry: ConnectionRegistry) -> DispatchEngine:
    """Create the process-wide dispatch engine bound to ``registry``."""
    global _engine

    if _engine is None:
        _engine = DispatchEngine(registry)
        logger.info("Dispatch engine started", extra={"actions": sorted(_engine.actions)})
    return _engine


async def stop_dispatch_engine() -> None:
    """Drain in-flight actions and discard the process-wide engine."""
    global _engine

    if _engine is not None:
        pending = _engine.pending
        await _engine.drain()
        _engine = None
        logger.info("Dispatch engine stopped", extra={"drained": pending})
