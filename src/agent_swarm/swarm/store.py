"""Agent runtime store: live instances, hierarchy, task assignments, messages."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol
from uuid import uuid4

from agent_swarm.storage.common import utc_now
from agent_swarm.swarm.models import (
    BROADCAST,
    AgentArchetype,
    AgentInstance,
    AgentStats,
    AgentStatus,
    ModelTier,
    SwarmMessage,
    SwarmMessageType,
)
from agent_swarm.swarm.templates import get_template

if TYPE_CHECKING:
    from agent_swarm.swarm.repository import SwarmStateRepository

logger = logging.getLogger(__name__)


class SwarmStatePersistence(Protocol):
    def save_state(
        self,
        *,
        agents: list[AgentInstance],
        messages: list[SwarmMessage],
        task_assignments: dict[str, str],
        is_running: bool = False,
    ) -> None: ...


def _default_id_factory(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


class SwarmRuntimeStore:
    """Authoritative in-process state of the swarm.

    All mutations and compound queries run under one re-entrant lock so the
    monitor thread never observes a half-applied change. When a state
    repository is attached, every mutation is followed by a snapshot save.
    """

    def __init__(
        self,
        *,
        state_repository: SwarmStatePersistence | None = None,
        message_retention: int = 100,
        id_factory: Callable[[str], str] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if message_retention <= 0:
            raise ValueError("message_retention must be a positive integer")
        self._agents: dict[str, AgentInstance] = {}
        self._messages: list[SwarmMessage] = []
        self._task_assignments: dict[str, str] = {}
        self._running = False
        self._state_repository = state_repository
        self._message_retention = message_retention
        self._id_factory = id_factory or _default_id_factory
        self._clock = clock
        self._lock = threading.RLock()

    @classmethod
    def load(
        cls,
        repository: SwarmStateRepository,
        *,
        message_retention: int = 100,
        id_factory: Callable[[str], str] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> SwarmRuntimeStore:
        """Build a store seeded from the repository snapshot and attached to it."""

        snapshot = repository.load_state()
        store = cls(
            state_repository=repository,
            message_retention=message_retention,
            id_factory=id_factory,
            clock=clock,
        )
        for agent in snapshot.agents:
            store._agents[agent.instance_id] = agent
        store._messages = list(snapshot.messages)
        store._task_assignments = dict(snapshot.task_assignments)
        store._running = snapshot.is_running
        logger.info(
            "Loaded swarm state: agents=%d messages=%d assignments=%d",
            len(store._agents),
            len(store._messages),
            len(store._task_assignments),
        )
        return store

    # -- lifecycle ----------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            self._running = True
            self._persist()
        logger.info("Swarm started")

    def stop(self) -> None:
        """Mark the swarm stopped; running agents become paused."""

        with self._lock:
            self._running = False
            for agent in self._agents.values():
                if agent.status is AgentStatus.RUNNING:
                    agent.status = AgentStatus.PAUSED
            self._persist()
        logger.info("Swarm stopped")

    def reset(self) -> None:
        """Drop every agent, message and assignment."""

        with self._lock:
            self._agents.clear()
            self._messages.clear()
            self._task_assignments.clear()
            self._running = False
            self._persist()
        logger.info("Swarm reset")

    # -- agent mutations ----------------------------------------------------

    def spawn(
        self,
        template_id: str,
        project_id: str | None = None,
        parent_agent_id: str | None = None,
    ) -> AgentInstance | None:
        """Create an idle instance of a template; None for unknown templates."""

        template = get_template(template_id)
        if template is None:
            logger.warning("Cannot spawn unknown template %s", template_id)
            return None

        with self._lock:
            parent = self._agents.get(parent_agent_id) if parent_agent_id is not None else None
            if parent_agent_id is not None and parent is None:
                logger.warning(
                    "Parent agent %s not found; spawning %s without a parent",
                    parent_agent_id,
                    template_id,
                )
                parent_agent_id = None
            instance = AgentInstance(
                template=template,
                instance_id=self._id_factory(template_id),
                project_id=project_id,
                parent_agent_id=parent_agent_id,
            )
            self._agents[instance.instance_id] = instance
            if parent is not None:
                parent.child_agent_ids.append(instance.instance_id)
            self._persist()
        logger.info(
            "Spawned agent %s (%s) project=%s parent=%s",
            instance.instance_id,
            template_id,
            project_id,
            parent_agent_id,
        )
        return instance

    def despawn(self, instance_id: str) -> bool:
        """Remove an instance and every reference to it."""

        with self._lock:
            instance = self._agents.pop(instance_id, None)
            if instance is None:
                return False
            if instance.parent_agent_id is not None:
                parent = self._agents.get(instance.parent_agent_id)
                if parent is not None and instance_id in parent.child_agent_ids:
                    parent.child_agent_ids.remove(instance_id)
            for child_id in instance.child_agent_ids:
                child = self._agents.get(child_id)
                if child is not None:
                    child.parent_agent_id = None
            for task_id in [
                task_id
                for task_id, owner in self._task_assignments.items()
                if owner == instance_id
            ]:
                del self._task_assignments[task_id]
            self._persist()
        logger.info("Despawned agent %s", instance_id)
        return True

    def update_status(
        self,
        instance_id: str,
        status: AgentStatus,
        error: str | None = None,
    ) -> bool:
        with self._lock:
            instance = self._agents.get(instance_id)
            if instance is None:
                return False
            instance.status = status
            if status is AgentStatus.RUNNING and instance.started_at is None:
                instance.started_at = self._clock()
            if status in {AgentStatus.COMPLETED, AgentStatus.ERROR}:
                instance.completed_at = self._clock()
            instance.error = error
            self._persist()
        logger.debug("Agent %s status -> %s", instance_id, status.value)
        return True

    def update_progress(self, instance_id: str, tokens_used: int, estimated_cost: float) -> bool:
        """Accumulate token usage and cost on an instance."""

        with self._lock:
            instance = self._agents.get(instance_id)
            if instance is None:
                return False
            instance.tokens_used += tokens_used
            instance.estimated_cost += estimated_cost
            self._persist()
        return True

    def assign_task(self, instance_id: str, task_id: str) -> bool:
        """Make an instance the single holder of a task and mark it running."""

        with self._lock:
            instance = self._agents.get(instance_id)
            if instance is None:
                return False
            previous_task = instance.current_task_id
            if previous_task is not None and previous_task != task_id:
                if self._task_assignments.get(previous_task) == instance_id:
                    del self._task_assignments[previous_task]
            previous_owner_id = self._task_assignments.get(task_id)
            if previous_owner_id is not None and previous_owner_id != instance_id:
                previous_owner = self._agents.get(previous_owner_id)
                if previous_owner is not None and previous_owner.current_task_id == task_id:
                    previous_owner.current_task_id = None
            instance.current_task_id = task_id
            instance.status = AgentStatus.RUNNING
            instance.started_at = self._clock()
            self._task_assignments[task_id] = instance_id
            self._persist()
        logger.info("Assigned task %s to agent %s", task_id, instance_id)
        return True

    def unassign_task(self, instance_id: str) -> bool:
        """Release the instance's task and return it to idle."""

        with self._lock:
            instance = self._agents.get(instance_id)
            if instance is None:
                return False
            task_id = instance.current_task_id
            if task_id is not None and self._task_assignments.get(task_id) == instance_id:
                del self._task_assignments[task_id]
            instance.current_task_id = None
            instance.status = AgentStatus.IDLE
            self._persist()
        logger.info("Released agent %s from task %s", instance_id, task_id)
        return True

    # -- queries ------------------------------------------------------------

    def get(self, instance_id: str) -> AgentInstance | None:
        with self._lock:
            return self._agents.get(instance_id)

    def agents(self) -> list[AgentInstance]:
        with self._lock:
            return list(self._agents.values())

    def agent_for_task(self, task_id: str) -> AgentInstance | None:
        with self._lock:
            instance_id = self._task_assignments.get(task_id)
            return self._agents.get(instance_id) if instance_id is not None else None

    def task_assignments(self) -> dict[str, str]:
        with self._lock:
            return dict(self._task_assignments)

    def by_archetype(self, archetype: AgentArchetype) -> list[AgentInstance]:
        return self._filter(lambda agent: agent.archetype == archetype)

    def by_tier(self, tier: ModelTier) -> list[AgentInstance]:
        return self._filter(lambda agent: agent.tier == tier)

    def by_status(self, status: AgentStatus) -> list[AgentInstance]:
        return self._filter(lambda agent: agent.status == status)

    def by_project(self, project_id: str) -> list[AgentInstance]:
        return self._filter(lambda agent: agent.project_id == project_id)

    def running(self) -> list[AgentInstance]:
        return self.by_status(AgentStatus.RUNNING)

    def idle(self) -> list[AgentInstance]:
        return self.by_status(AgentStatus.IDLE)

    def find_idle(self, template_id: str, project_id: str | None = None) -> AgentInstance | None:
        """First idle instance of a template, scoped to a project when given."""

        with self._lock:
            for agent in self._agents.values():
                if agent.template_id != template_id or agent.status is not AgentStatus.IDLE:
                    continue
                if project_id is not None and agent.project_id != project_id:
                    continue
                return agent
        return None

    def total_tokens_used(self) -> int:
        with self._lock:
            return sum(agent.tokens_used for agent in self._agents.values())

    def total_estimated_cost(self) -> float:
        with self._lock:
            return sum(agent.estimated_cost for agent in self._agents.values())

    def stats(self) -> AgentStats:
        with self._lock:
            agents = list(self._agents.values())
        by_tier = {tier.value: 0 for tier in ModelTier}
        for agent in agents:
            by_tier[agent.tier.value] += 1
        return AgentStats(
            total=len(agents),
            running=sum(1 for agent in agents if agent.status is AgentStatus.RUNNING),
            idle=sum(1 for agent in agents if agent.status is AgentStatus.IDLE),
            by_tier=by_tier,
        )

    # -- messaging ----------------------------------------------------------

    def send_message(
        self,
        message_type: SwarmMessageType,
        from_agent_id: str,
        to_agent_id: str,
        payload: dict[str, Any],
        task_id: str | None = None,
    ) -> SwarmMessage:
        message = SwarmMessage(
            id=self._id_factory("msg"),
            type=message_type,
            from_agent_id=from_agent_id,
            to_agent_id=to_agent_id,
            payload=dict(payload),
            timestamp=self._clock(),
            task_id=task_id,
        )
        with self._lock:
            self._messages.append(message)
            self._persist()
        logger.debug(
            "Message %s %s -> %s (%s)",
            message.id,
            from_agent_id,
            to_agent_id,
            message_type.value,
        )
        return message

    def messages(self) -> list[SwarmMessage]:
        with self._lock:
            return list(self._messages)

    def messages_for(self, instance_id: str) -> list[SwarmMessage]:
        """Messages addressed to the instance or broadcast."""

        with self._lock:
            return [
                message
                for message in self._messages
                if message.to_agent_id in {instance_id, BROADCAST}
            ]

    def clear_messages(self, instance_id: str | None = None) -> None:
        """Drop all messages, or only those addressed to one instance."""

        with self._lock:
            if instance_id is None:
                self._messages.clear()
            else:
                self._messages = [
                    message for message in self._messages if message.to_agent_id != instance_id
                ]
            self._persist()

    # -- internals ----------------------------------------------------------

    def _filter(self, predicate: Callable[[AgentInstance], bool]) -> list[AgentInstance]:
        with self._lock:
            return [agent for agent in self._agents.values() if predicate(agent)]

    def _persist(self) -> None:
        if self._state_repository is None:
            return
        self._state_repository.save_state(
            agents=list(self._agents.values()),
            messages=_tail(self._messages, self._message_retention),
            task_assignments=dict(self._task_assignments),
            is_running=self._running,
        )


def _tail(items: Iterable[SwarmMessage], size: int) -> list[SwarmMessage]:
    values = list(items)
    return values[-size:]
