"""
Change notifier: pushes clip registry snapshots to WebSocket subscribers

ARCHITECTURE NOTE: Non-blocking broadcast design
- Each subscription has a dedicated send queue and sender task
- Broadcasts only enqueue - they never await a client
- Slow clients won't block fast clients
- Full queues result in dropped messages (logged) rather than blocking
- A client whose send fails is unsubscribed by its own sender task
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Protocol
import asyncio
import json
import logging
from datetime import datetime, timezone

from fastapi import WebSocket, WebSocketDisconnect

from constants import MessageTypes, WebSocketConfig

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Anything that can push a text frame to one client (a WebSocket)"""

    async def send_text(self, data: str) -> None: ...


@dataclass(eq=False)
class Subscription:
    """One live notification channel"""
    client_id: str
    transport: Transport
    queue: asyncio.Queue
    connected_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    sender_task: Optional[asyncio.Task] = None


def build_sounds_message(snapshot: Iterable) -> dict:
    """
    Build the registry message sent to clients.

    Format (what the web frontend expects):
        {"type": "sounds", "sounds": {name: {"filename": ..., "emoji": ...}}}
    """
    return {
        "type": MessageTypes.SOUNDS,
        "sounds": {clip.name: clip.to_mapping() for clip in snapshot},
    }


class ChangeNotifier:
    """
    Manages registry subscribers and broadcasts snapshots to all of them.

    Args:
        snapshot_provider: Callable returning the current registry snapshot,
            used to seed every new subscriber
        queue_size: Per-subscriber backlog before messages get dropped
    """

    def __init__(self, snapshot_provider: Callable[[], List], queue_size: int = WebSocketConfig.SEND_QUEUE_SIZE):
        self._snapshot_provider = snapshot_provider
        self._queue_size = queue_size
        self.subscriptions: Dict[str, Subscription] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self.subscriptions)

    async def subscribe(self, transport: Transport, client_id: Optional[str] = None) -> Subscription:
        """
        Register a subscriber and queue the current snapshot for it.

        Args:
            transport: Accepted WebSocket (or anything with async send_text)
            client_id: Optional client identifier

        Returns:
            Subscription handle for unsubscribe()
        """
        subscription = Subscription(
            client_id=client_id or f"client-{id(transport)}",
            transport=transport,
            queue=asyncio.Queue(maxsize=self._queue_size),
        )
        self.subscriptions[subscription.client_id] = subscription
        subscription.queue.put_nowait(json.dumps(build_sounds_message(self._snapshot_provider())))
        subscription.sender_task = asyncio.create_task(self._sender_loop(subscription))

        logger.info(f"✅ Subscriber connected (ID: {subscription.client_id}). Total subscribers: {self.subscriber_count}")
        return subscription

    def unsubscribe(self, subscription: Subscription):
        """
        Remove a subscriber and cancel its sender task. Safe to call twice.
        """
        if self.subscriptions.get(subscription.client_id) is not subscription:
            return

        del self.subscriptions[subscription.client_id]
        task = subscription.sender_task
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

        logger.info(f"🔌 Subscriber disconnected (ID: {subscription.client_id}). Total subscribers: {self.subscriber_count}")

    async def _sender_loop(self, subscription: Subscription):
        """
        Dedicated sender task for each subscription.
        Pulls messages from its queue and sends without blocking other subscribers.
        """
        try:
            while True:
                message = await subscription.queue.get()
                try:
                    await subscription.transport.send_text(message)
                except Exception as e:
                    logger.warning(f"Failed to send to {subscription.client_id}, dropping subscriber: {e}")
                    self.unsubscribe(subscription)
                    break
        except asyncio.CancelledError:
            # Normal shutdown
            pass

    def broadcast(self, snapshot: Iterable) -> int:
        """
        Non-blocking broadcast of a registry snapshot to every subscriber.

        Args:
            snapshot: Current registry contents (list of clips)

        Returns:
            Number of subscribers the message was queued for
        """
        if not self.subscriptions:
            logger.debug("No subscribers to broadcast registry snapshot to")
            return 0

        # Serialize once for every subscriber
        json_message = json.dumps(build_sounds_message(snapshot))

        queued_count = 0
        full_queues = 0
        for subscription in list(self.subscriptions.values()):
            try:
                subscription.queue.put_nowait(json_message)
                queued_count += 1
            except asyncio.QueueFull:
                full_queues += 1
                logger.warning(f"Send queue full for {subscription.client_id}, dropping registry update")

        if full_queues > 0:
            logger.warning(f"Dropped registry update to {full_queues} subscribers (full queues)")
        else:
            logger.debug(f"Queued registry update to {queued_count} subscribers")
        return queued_count

    async def close(self):
        """Cancel every sender task (application shutdown)"""
        subscriptions = list(self.subscriptions.values())
        for subscription in subscriptions:
            self.unsubscribe(subscription)
        tasks = [s.sender_task for s in subscriptions if s.sender_task]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


async def websocket_endpoint(websocket: WebSocket, notifier: ChangeNotifier):
    """
    WebSocket endpoint handler

    Keeps the subscription alive and answers keepalive pings.
    """
    await websocket.accept()
    subscription = await notifier.subscribe(websocket)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON from client: {data}")
                continue

            message_type = message.get("type") if isinstance(message, dict) else None
            if message_type == MessageTypes.PING:
                try:
                    subscription.queue.put_nowait(json.dumps({"type": MessageTypes.PONG}))
                except asyncio.QueueFull:
                    logger.warning(f"Send queue full for {subscription.client_id}, dropping pong")
            else:
                logger.debug(f"Ignoring client message type: {message_type}")

    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected normally")
    except Exception as e:
        logger.error(f"WebSocket error: {type(e).__name__}: {e}")
    finally:
        notifier.unsubscribe(subscription)
