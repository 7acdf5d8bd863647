import asyncio
import json
import time
from contextlib import asynccontextmanager
from datetime import date
from types import SimpleNamespace

from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from schedule_app.config import load_settings
from schedule_app.consumer import ScheduleConsumer, handle_working_times_request, lookup_working_times
from schedule_app.errors import InvalidDateFormat, PersistenceUnavailable, ScheduleNotFound


def _call(body, lookup, timeout=1.0):
    return asyncio.run(handle_working_times_request(body, lookup, timeout))


def test_reply_is_json_encoded_working_times():
    seen = []

    def lookup(provider_id, raw_date):
        seen.append((provider_id, raw_date))
        return "9,13"

    reply = _call(b'{"doctor": "doctor-X", "date": "18/3/2024"}', lookup)

    assert reply == b'"9,13"'
    assert seen == [("doctor-X", "18/3/2024")]


def test_provider_id_field_is_also_accepted():
    reply = _call(b'{"providerId": "doctor-X", "date": "18/3/2024"}', lambda p, d: p)
    assert json.loads(reply) == "doctor-X"


def test_not_found_reply_shape():
    def lookup(provider_id, raw_date):
        raise ScheduleNotFound("working_times_not_found")

    reply = _call(b'{"doctor": "doctor-X", "date": "1/1/2099"}', lookup)

    assert reply == b'{"code":404,"message":"working_times_not_found"}'


def test_invalid_payloads_get_400():
    assert json.loads(_call(b"not json", lambda p, d: "9"))["code"] == 400
    assert json.loads(_call(b'{"date": "1/1/2099"}', lambda p, d: "9"))["code"] == 400

    def bad_date(provider_id, raw_date):
        raise InvalidDateFormat(raw_date)

    assert json.loads(_call(b'{"doctor": "x", "date": "2099-01-01"}', bad_date)) == {
        "code": 400,
        "message": "invalid_request",
    }


def test_slow_lookup_times_out():
    def slow(provider_id, raw_date):
        time.sleep(0.5)
        return "9"

    reply = _call(b'{"doctor": "doctor-X", "date": "1/1/2099"}', slow, timeout=0.05)

    assert json.loads(reply) == {"code": 504, "message": "timeout"}


def test_store_outage_is_unavailable():
    def down(provider_id, raw_date):
        raise PersistenceUnavailable("connection refused")

    reply = _call(b'{"doctor": "doctor-X", "date": "1/1/2099"}', down)

    assert json.loads(reply) == {"code": 503, "message": "unavailable"}


def test_end_to_end_against_the_store(add_provider, add_entry):
    add_provider("doctor-X")
    add_entry("doctor-X", date(2024, 3, 18), working_times="9,13")

    found = _call(b'{"doctor": "doctor-X", "date": "18/3/2024"}', lookup_working_times)
    missing_day = _call(b'{"doctor": "doctor-X", "date": "1/1/2099"}', lookup_working_times)
    missing_provider = _call(b'{"doctor": "doctor-Z", "date": "1/1/2099"}', lookup_working_times)

    assert json.loads(found) == "9,13"
    assert json.loads(missing_day) == {"code": 404, "message": "working_times_not_found"}
    assert json.loads(missing_provider) == {"code": 404, "message": "schedules_not_found"}


def test_unexpected_lookup_error_still_gets_a_reply():
    def pool_exhausted(provider_id, raw_date):
        raise PoolTimeoutError("QueuePool limit of size 5 overflow 10 reached")

    reply = _call(b'{"doctor": "doctor-X", "date": "1/1/2099"}', pool_exhausted)

    assert json.loads(reply) == {"code": 503, "message": "unavailable"}


class _FakeMessage:
    def __init__(self, body, correlation_id, reply_to="amq.rabbitmq.reply-to"):
        self.body = body
        self.correlation_id = correlation_id
        self.reply_to = reply_to
        self.settled = False

    @asynccontextmanager
    async def process(self):
        try:
            yield
        finally:
            self.settled = True


class _FakeExchange:
    def __init__(self, fail_first=0):
        self.fail_first = fail_first
        self.published = []

    async def publish(self, message, routing_key):
        if self.fail_first:
            self.fail_first -= 1
            raise ConnectionError("channel closed")
        self.published.append((message.correlation_id, json.loads(message.body)))


async def _messages(*items):
    for item in items:
        yield item


def test_consume_loop_survives_a_failed_reply():
    exchange = _FakeExchange(fail_first=1)
    channel = SimpleNamespace(default_exchange=exchange)
    consumer = ScheduleConsumer(load_settings(), lookup=lambda p, d: "9,13")
    first = _FakeMessage(b'{"doctor": "doctor-X", "date": "18/3/2024"}', "c-1")
    second = _FakeMessage(b'{"doctor": "doctor-X", "date": "18/3/2024"}', "c-2")

    asyncio.run(consumer.consume(channel, _messages(first, second)))

    assert first.settled and second.settled
    assert exchange.published == [("c-2", "9,13")]
