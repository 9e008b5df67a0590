# In routers/events.py

import asyncio
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from domain.events import event_to_wire
from services.broadcast import BroadcastBus, Subscription

logger = logging.getLogger('uvicorn.error')

router = APIRouter(tags=["events"])


async def _forward(websocket: WebSocket, bus: BroadcastBus, subscription: Subscription) -> None:
    async for event in bus.listen(subscription):
        await websocket.send_json(event_to_wire(event))


@router.websocket("/events")
async def stream_events(websocket: WebSocket):
    """Push every broadcast event to this client until it disconnects.

    Anything the client sends is ignored; reading only serves to notice the
    disconnect while no events are flowing.
    """
    bus: BroadcastBus = getattr(websocket.app.state, 'bus', None)
    if bus is None:
        logger.error("Broadcast bus not initialized; refusing event stream.")
        await websocket.close(code=1011)
        return

    # Subscribe before accepting so nothing published after the handshake is missed.
    subscription = bus.subscribe()
    await websocket.accept()
    logger.info(f"Event stream {subscription.subscription_id} opened ({bus.subscriber_count} connected)")

    sender = asyncio.create_task(_forward(websocket, bus, subscription))
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    finally:
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"Event stream {subscription.subscription_id} sender stopped: {e!r}")
        bus.unsubscribe(subscription)
        logger.info(f"Event stream {subscription.subscription_id} closed ({bus.subscriber_count} connected)")
