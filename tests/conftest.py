"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import os
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Tests never touch a real database or external model
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EMBEDDING_ENABLED"] = "false"
os.environ["GEMINI_API_KEY"] = ""
os.environ["LOG_FILE"] = ""

BALANCE_BILLING_PROSE = [
    "Balance billing happens when a provider charges a patient for the difference between the "
    "provider's full fee and the amount the health plan allows for a covered service. Florida law "
    "restricts this practice for members of a health maintenance organization.",
    "An HMO contracts with a network of physicians and hospitals. Those contracts set the allowed "
    "amount for every covered service, and the provider agrees to accept that amount plus any "
    "member copayment as payment in full.",
    "Because of that agreement, a contracted provider may not send the member a bill for the "
    "remaining balance. The member is only responsible for copayments, coinsurance and any "
    "deductible spelled out in the evidence of coverage.",
    "The protection also applies in many emergency situations. When a member receives emergency "
    "care from a provider outside the network, the HMO must pay the claim and the provider may "
    "not bill the member for more than the in-network cost share.",
    "A preferred provider organization works differently. Members may see providers outside the "
    "network, but those providers have not agreed to the allowed amount and can bill the member "
    "for the difference unless a state or federal rule says otherwise.",
    "Agents must explain these differences clearly when comparing plans. A client who chooses a "
    "plan with out-of-network benefits should understand that lower premiums may come with a "
    "higher risk of surprise bills.",
    "Regulators treat misleading statements about balance billing as an unfair trade practice. "
    "An agent who tells a prospect that no out-of-network bill is ever possible may face "
    "administrative penalties from the Department of Financial Services.",
    "Good documentation helps everyone. Agents should keep notes showing which plan features "
    "were discussed, and members should keep copies of explanation of benefits statements so "
    "they can dispute improper bills quickly.",
    "Point of service plans blend both designs. A member who stays inside the network enjoys the "
    "same protection as an HMO member, while a member who self-refers outside the network accepts "
    "higher cost sharing and possible balance bills.",
    "Exclusive provider organizations usually pay nothing for non-emergency care outside the "
    "network. Members in these plans rarely see balance bills for network care, but they may owe "
    "the entire charge when they ignore the network rules.",
    "Complaints about balance billing go to the Division of Consumer Services. Investigators "
    "review the provider contract, the plan documents and the claim history before deciding "
    "whether the member owes anything beyond the normal cost share.",
    "Understanding these rules is part of the licensing exam and part of everyday practice. "
    "Clients remember the agent who warned them about network limits long after they forget the "
    "premium they paid in their first year of coverage.",
]

BALANCE_BILLING_DOC = "\n".join(
    [
        "# Health Insurance & Managed Care",
        "",
        "## HMO/PPO Models",
        "",
        "### HMO Balance Billing",
        "",
        *[p + "\n" for p in BALANCE_BILLING_PROSE],
        "Define Balance billing: charging a member the gap between the provider fee and the allowed amount.",
        "",
        "#### Practice Quiz",
        "",
        "1. Which of the following best describes balance billing in an HMO?",
        "A) Billing the HMO for the full charge",
        "B) Billing the member for the difference between charge and allowed amount",
        "C) Billing the employer for missed premiums",
        "D) Billing Medicare as the secondary payer",
        "Answer: B",
        "",
    ]
)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory SQLite)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def storage():
    """Fresh in-memory SQLite storage with all tables created."""
    from ceprep.db.database import make_engine
    from ceprep.db.storage import Storage

    engine = make_engine("sqlite://")
    store = Storage(engine)
    store.create_all()
    yield store
    engine.dispose()


@pytest.fixture
def parser():
    from ceprep.content.parser import DocumentParser

    return DocumentParser()


@pytest.fixture
def balance_billing_prose():
    return list(BALANCE_BILLING_PROSE)


@pytest.fixture
def balance_billing_doc():
    """Markdown course with one track, module and lesson plus a one-question quiz."""
    return BALANCE_BILLING_DOC


@pytest.fixture
def balance_billing_file(tmp_path, balance_billing_doc):
    path = tmp_path / "hmo-course.md"
    path.write_text(balance_billing_doc, encoding="utf-8")
    return path


@pytest.fixture
def sample_lesson(storage):
    """A persisted track/module/lesson with some readable content."""
    track = storage.add_track(title="Law & Ethics", slug="law-ethics", ce_hours=4, order_index=1)
    module = storage.add_module(track_id=track.id, title="Licensing", slug="licensing", order_index=1)
    content = "\n\n".join(BALANCE_BILLING_PROSE)
    return storage.add_lesson(
        module_id=module.id,
        title="Agent Duties",
        slug="agent-duties",
        description="Duties agents owe to clients",
        content=content,
        objectives=["Explain balance billing rules"],
        order_index=1,
        ce_hours=1,
    )


class FakeEmbedder:
    """Deterministic embedder; records every text it was asked to embed."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("embedding backend offline")
        return [float(len(text)), 0.5, 0.25]


class FakeGenerator:
    """Text generator returning a fixed card payload."""

    def __init__(self, cards: list[dict] | None = None):
        self.cards = cards if cards is not None else [
            {"type": "term", "front": "Balance billing", "back": "Billing the member for the gap above the allowed amount"},
            {
                "type": "mcq",
                "front": "Who may not balance bill an HMO member?",
                "prompt": "Who may not balance bill an HMO member?",
                "options": ["Contracted providers", "The member", "The agent", "The employer"],
                "answer_index": 0,
                "rationale": "Contracted providers accept the allowed amount as payment in full.",
            },
            {"type": "cloze", "front": "An HMO sets the {{c1::allowed amount}} for covered services.", "back": "allowed amount"},
        ]
        self.prompts: list[str] = []

    def generate(self, prompt: str, max_tokens: int = 2000) -> dict:
        self.prompts.append(prompt)
        return {"cards": [dict(card) for card in self.cards]}


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def failing_embedder():
    return FakeEmbedder(fail=True)


@pytest.fixture
def fake_generator():
    return FakeGenerator()
