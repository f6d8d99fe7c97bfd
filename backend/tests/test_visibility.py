"""
Tests for the Visibility Resolver and option parsing.
"""
import pytest

from thoreye.models.ssot import Section, Question, FATAL_OPTION
from thoreye.services.forms import (
    is_section_visible, is_question_visible, visible_layout, parse_options, split_values,
)


class TestSectionVisibility:

    def test_uncontrolled_section_always_visible(self, call_form):
        opening = call_form.sections[0]
        assert is_section_visible(opening, {}, call_form.sections) is True

    def test_controlled_section_hidden_until_gate_answered(self, call_form):
        escalation = call_form.sections[1]
        assert is_section_visible(escalation, {}, call_form.sections) is False
        assert is_section_visible(escalation, {"q3": "No"}, call_form.sections) is False
        assert is_section_visible(escalation, {"q3": "Yes"}, call_form.sections) is True

    def test_missing_controller_fails_open(self):
        orphan = Section(id="x", name="Orphan", controlled_by="gone", questions=[])
        assert is_section_visible(orphan, {}, [orphan]) is True

    def test_visible_on_values_accepts_list(self):
        gate = Question(id="g", text="Gate", controls_section=True, controlled_section_id="t",
                        visible_on_values=["Maybe", "Yes"])
        source = Section(id="src", name="Source", questions=[gate])
        target = Section(id="t", name="Target", controlled_by="g")
        assert is_section_visible(target, {"g": "Maybe"}, [source, target]) is True
        assert is_section_visible(target, {"g": "No"}, [source, target]) is False


class TestQuestionVisibility:

    def _section(self):
        parent = Question(id="p", text="Complaint raised?", options="Yes,No")
        child = Question(id="c", text="Complaint logged?", controlled_by="p", visible_on_values=" Yes , NA ",
                         mandatory=True)
        return Section(id="s", name="S", questions=[parent, child]), parent, child

    def test_uncontrolled_question_visible(self):
        section, parent, _ = self._section()
        assert is_question_visible(parent, section, {}) is True

    def test_controlled_question_uses_own_trimmed_values(self):
        section, _, child = self._section()
        assert is_question_visible(child, section, {"p": "Yes"}) is True
        assert is_question_visible(child, section, {"p": "NA"}) is True
        assert is_question_visible(child, section, {"p": "No"}) is False
        assert is_question_visible(child, section, {}) is False

    def test_controller_outside_section_fails_open(self):
        child = Question(id="c", text="Child", controlled_by="elsewhere", visible_on_values="Yes")
        section = Section(id="s", name="S", questions=[child])
        assert is_question_visible(child, section, {"elsewhere": "No"}) is True

    def test_visibility_is_idempotent(self, call_form):
        answers = {"q3": "Yes"}
        first = visible_layout(call_form.sections, answers)
        second = visible_layout(call_form.sections, answers)
        assert first == second
        assert answers == {"q3": "Yes"}


class TestVisibleLayout:

    def test_hidden_section_is_omitted(self, call_form):
        layout = visible_layout(call_form.sections, {"q3": "No"})
        assert "Escalation" not in layout
        assert layout["Opening"] == ["q1", "q2", "q3"]

    def test_shown_section_lists_questions(self, call_form):
        layout = visible_layout(call_form.sections, {"q3": "Yes"})
        assert layout["Escalation"] == ["q4"]


class TestOptions:

    def test_split_values_trims_and_drops_blanks(self):
        assert split_values(" Yes, No ,,NA ") == ["Yes", "No", "NA"]
        assert split_values(None) == []

    def test_fatal_question_gets_synthetic_option(self):
        question = Question(id="f", text="Verified?", options="Yes,No", is_fatal=True)
        assert parse_options(question) == ["Yes", "No", FATAL_OPTION]

    def test_fatal_option_not_duplicated(self):
        question = Question(id="f", text="Verified?", options="Yes,No,Fatal", is_fatal=True)
        assert parse_options(question).count(FATAL_OPTION) == 1

    @pytest.mark.parametrize("options", ["Yes,No", "A, B, C", ""])
    def test_non_fatal_options_unchanged(self, options):
        question = Question(id="n", text="Plain", options=options)
        assert FATAL_OPTION not in parse_options(question)
