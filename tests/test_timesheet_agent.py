import asyncio
from pathlib import Path

from smartwork.backend.agent import AgentEvent, TimesheetAgent
from smartwork.backend.config import load_company_config
from smartwork.backend.errors import AIServiceError
from smartwork.backend.server import iter_events
from smartwork.backend.status import TimesheetStatus
from smartwork.backend.store import EntryStore

CONFIG = load_company_config(str(Path(__file__).resolve().parents[1] / "smartwork" / "company.example.json"))


class FakeService:
    def __init__(self, items=None, error=None):
        self.items = items or []
        self.error = error

    async def parse_entries(self, text, reference_date, jobs=()):
        if self.error:
            raise self.error
        return self.items


def _agent(store=None, service=None) -> TimesheetAgent:
    return TimesheetAgent(
        store or EntryStore(),
        "1",
        "2024-04",
        config=CONFIG,
        service=service,
        reference_date="2024-04-10",
    )


def test_offline_flow_confirm_and_finalize():
    agent = _agent()
    started = agent.start()
    assert started.type == "started"
    assert started.payload["locked"] is False

    events = asyncio.run(agent.provide_input("yesterday 4h for web-001"))
    assert [e.type for e in events] == ["user_input", "parsed", "needs_confirmation"]
    proposed = events[-1].payload["proposed"]
    assert proposed[0]["date"] == "2024-04-09"
    assert proposed[0]["project"] == "Website Redesign"
    assert proposed[0]["hours"] == 4.0

    confirmed = agent.confirm()
    assert [e.type for e in confirmed] == ["confirmed", "ready_for_next"]
    assert confirmed[1].payload["count"] == 1
    assert agent.confirm()[0].payload["message"] == "Nothing to confirm yet."

    final = agent.finalize()
    assert final.type == "finalized"
    assert final.payload["total_hours"] == 4.0
    # Seven workdays up to the 10th, Easter Monday excluded; the 9th is short.
    assert final.payload["issue_counts"] == {"error": 6, "warning": 1}


def test_unrecognized_input_needs_revision():
    events = asyncio.run(_agent().provide_input("hello there"))
    assert events[-1].type == "needs_revision"
    assert events[-1].payload["problems"] == ["No entries recognized."]


def test_service_items_are_normalized():
    service = FakeService(
        items=[
            {"date": "2024-04-09", "project": "Website Redesign", "description": "", "hours": 6, "type": "Regular work"},
            {"date": "2024-04-09", "project": "Website Redesign", "description": "", "hours": 2, "type": "Doctor"},
        ]
    )
    agent = _agent(service=service)
    events = asyncio.run(agent.provide_input("6h web, 2h doctor"))
    proposed = events[-1].payload["proposed"]
    assert [p["type"] for p in proposed] == ["Regular work", "Doctor"]
    assert proposed[1]["project"] == ""


def test_invalid_service_items_need_revision():
    service = FakeService(items=[{"date": "2024-04-09", "hours": 30, "type": "Vacation", "project": None}])
    events = asyncio.run(_agent(service=service).provide_input("30h vacation"))
    assert events[-1].type == "needs_revision"
    assert "Hours must not exceed 24 per entry." in events[-1].payload["problems"]


def test_service_failure_emits_error():
    agent = _agent(service=FakeService(error=AIServiceError("timeout")))
    events = asyncio.run(agent.provide_input("4h web"))
    assert [e.type for e in events] == ["user_input", "error"]


def test_locked_month_refuses_confirmation():
    store = EntryStore()
    store.status_book.transition("1", "2024-04", TimesheetStatus.SUBMITTED, block_on_errors=False)
    agent = _agent(store)
    assert agent.start().payload["locked"] is True
    asyncio.run(agent.provide_input("2024-04-09 8h for Internal Tool"))
    assert agent.confirm()[0].type == "locked"
    assert store.all() == []


def test_events_as_sse_frames():
    frames = list(iter_events([AgentEvent("parsed", {"items": [{"hours": 4, "employee": "Jan Novák"}]})]))
    assert frames == [
        "event: parsed\n",
        'data: {"items": [{"hours": 4, "employee": "Jan Novák"}]}\n\n',
    ]
