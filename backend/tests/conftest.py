"""
Shared fixtures.

DATABASE_URL must point at SQLite before anything imports thoreye.database,
which builds its engine at import time.
"""
import os
import sys

os.environ.setdefault("DATABASE_URL", "sqlite://")

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from thoreye.models.ssot import FormDefinition, Section, Question, QuestionType


def make_question(qid, text=None, weightage=0, **kwargs):
    kwargs.setdefault("options", "Yes,No,NA")
    return Question(id=qid, text=text or f"Question {qid}", weightage=weightage, **kwargs)


@pytest.fixture
def call_form():
    """
    Three-section call audit:
    - Opening: greeting (10), verification (fatal, 20), escalation gate (informational)
    - Escalation: only shown when the gate is answered "Yes"
    - Interaction 1: repeatable template with a grazed question and the repeat trigger
    """
    opening = Section(id="s1", name="Opening", questions=[
        make_question("q1", "Greeting given?", weightage=10, mandatory=True),
        make_question("q2", "Customer verified?", weightage=20, mandatory=True, is_fatal=True, options="Yes,No"),
        make_question(
            "q3", "Was escalation needed?", options="Yes,No",
            controls_section=True, controlled_section_id="s2", visible_on_values="Yes",
        ),
    ])
    escalation = Section(id="s2", name="Escalation", controlled_by="q3", questions=[
        make_question("q4", "Escalation handled?", weightage=10, mandatory=True),
    ])
    interaction = Section(id="s3", name="Interaction 1", is_repeatable=True, questions=[
        make_question("q5", "Resolution offered?", weightage=10, mandatory=True,
                      grazing_logic=True, grazing_percentage=50),
        make_question("q6", "Was there another interaction?", options="Yes,No", mandatory=True),
        make_question("q7", "Notes", type=QuestionType.TEXT, options=""),
    ])
    return FormDefinition(name="Inbound Calls", sections=[opening, escalation, interaction])


@pytest.fixture
def complete_answers():
    return {"q1": "Yes", "q2": "Yes", "q3": "No", "q5": "Yes", "q6": "No"}


@pytest.fixture
def db_session():
    """Fresh in-memory database per test."""
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from sqlalchemy.pool import StaticPool

    from thoreye.database import Base
    from thoreye.models import db_models  # noqa: F401

    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
