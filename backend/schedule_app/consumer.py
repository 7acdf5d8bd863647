"""
RabbitMQ request/response consumer answering "working times of provider P on date D".

Wire contract (kept byte-compatible with existing callers):
- exchange ``healthline.consultation.schedule`` (topic), routing key ``schedule``,
  durable queue ``working_times``;
- request ``{"doctor": "<provider id>", "date": "D/M/YYYY"}``;
- reply is the JSON-encoded working-times string, or ``{"code": 404, "message": ...}``.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterable, Callable

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractIncomingMessage
from pydantic import ValidationError
from sqlmodel import Session

from .config import Settings
from .db import engine
from .errors import InvalidDateFormat, PersistenceUnavailable, ScheduleNotFound
from .schemas import ErrorReply, WorkingTimesRequest
from .services.availability import AvailabilityService

logger = logging.getLogger(__name__)

Lookup = Callable[[str, str], str]


def lookup_working_times(provider_id: str, raw_date: str) -> str:
    with Session(engine) as session:
        return AvailabilityService(session).working_times_for_date(provider_id, raw_date)


def _error(code: int, message: str) -> bytes:
    return ErrorReply(code=code, message=message).model_dump_json().encode()


async def handle_working_times_request(body: bytes, lookup: Lookup, timeout: float) -> bytes:
    try:
        req = WorkingTimesRequest.model_validate_json(body)
    except ValidationError as e:
        logger.warning("Rejected working-times request (%s)", e.errors(include_url=False))
        return _error(400, "invalid_request")

    try:
        result: Any = await asyncio.wait_for(
            asyncio.to_thread(lookup, req.provider_id, req.date), timeout=timeout
        )
    except ScheduleNotFound as e:
        return _error(404, e.message)
    except InvalidDateFormat as e:
        logger.info("Bad date in working-times request for %s (%s)", req.provider_id, e)
        return _error(400, "invalid_request")
    except asyncio.TimeoutError:
        logger.error("Working-times lookup for %s on %s timed out after %.1fs", req.provider_id, req.date, timeout)
        return _error(504, "timeout")
    except PersistenceUnavailable as e:
        logger.error("Working-times lookup failed, store unavailable (%s)", e)
        return _error(503, "unavailable")
    except Exception:
        logger.exception("Working-times lookup for %s on %s failed", req.provider_id, req.date)
        return _error(503, "unavailable")

    return json.dumps(result).encode()


class ScheduleConsumer:
    def __init__(self, settings: Settings, lookup: Lookup = lookup_working_times):
        self.settings = settings
        self.lookup = lookup

    async def run(self) -> None:
        s = self.settings
        connection = await aio_pika.connect_robust(s.amqp_url)
        async with connection:
            channel = await connection.channel()
            await channel.set_qos(prefetch_count=10)
            exchange = await channel.declare_exchange(
                s.schedule_exchange, aio_pika.ExchangeType.TOPIC, durable=True
            )
            queue = await channel.declare_queue(s.schedule_queue, durable=True)
            await queue.bind(exchange, routing_key=s.schedule_routing_key)
            logger.info("Consuming %s (%s -> %s)", s.schedule_queue, s.schedule_exchange, s.schedule_routing_key)

            async with queue.iterator() as messages:
                await self.consume(channel, messages)

    async def consume(self, channel: AbstractChannel, messages: AsyncIterable[AbstractIncomingMessage]) -> None:
        async for message in messages:
            try:
                async with message.process():
                    await self._reply(channel, message)
            except Exception:
                # process() has already settled the message; keep serving the queue
                logger.exception("Failed to answer working-times request %s", message.correlation_id)

    async def _reply(self, channel: AbstractChannel, message: AbstractIncomingMessage) -> None:
        body = await handle_working_times_request(
            message.body, self.lookup, self.settings.rpc_timeout_seconds
        )
        if not message.reply_to:
            logger.warning("Working-times request %s has no reply_to; dropping reply", message.correlation_id)
            return
        await channel.default_exchange.publish(
            aio_pika.Message(
                body=body,
                content_type="application/json",
                correlation_id=message.correlation_id,
            ),
            routing_key=message.reply_to,
        )
