import asyncio

from exam_quest.core.models import Question, QuestionType
from exam_quest.core.question_normalizer import collect_references, resolve_questions
from exam_quest.core.services.collaborators import GatewayError

BANK = {
    "q1": {"type": "short-answer", "prompt": "One", "correctAnswer": "1", "points": 1},
    "q2": {"type": "short-answer", "prompt": "Two", "correctAnswer": "2", "points": 2},
    "q3": {"type": "short-answer", "prompt": "Three", "correctAnswer": "3", "points": 3},
}


def _lookup(question_id):
    doc = BANK.get(question_id)
    return None if doc is None else {"id": question_id, **doc}


def _resolve(raw, lookup=_lookup):
    return asyncio.run(resolve_questions(raw, lookup))


def test_duplicates_collapse_to_first_occurrence():
    questions = _resolve(["q1", "q1", {"id": "q1"}])
    assert [q.id for q in questions] == ["q1"]


def test_comma_separated_string():
    assert [q.id for q in _resolve(" q2, q1 ,,q3")] == ["q2", "q1", "q3"]


def test_boolean_map_keeps_only_included_entries_in_order():
    assert [q.id for q in _resolve({"q3": True, "q1": False, "q2": True})] == ["q3", "q2"]


def test_set_of_ids_is_resolved_deterministically():
    assert [q.id for q in _resolve({"q2", "q1"})] == ["q1", "q2"]


def test_id_carrier_objects_use_any_id_spelling():
    questions = _resolve([{"questionId": "q2"}, {"questionID": "q3"}, {"id": "q1"}])
    assert [q.id for q in questions] == ["q2", "q3", "q1"]


def test_inline_questions_get_positional_keys():
    raw = ["q1", {"type": "short-answer", "prompt": "Inline", "correctAnswer": "x", "points": 4}]
    questions = _resolve(raw)
    assert [q.id for q in questions] == ["q1", "inline-1"]
    assert questions[1].points == 4


def test_inline_question_objects_are_used_as_is():
    inline = Question(id="custom", type=QuestionType.SHORT_ANSWER, prompt="?", correct_answer="x")
    assert _resolve([inline]) == [inline]


def test_unknown_ids_are_dropped(caplog):
    questions = _resolve(["q1", "nope", "q2"])
    assert [q.id for q in questions] == ["q1", "q2"]
    assert "nope" in caplog.text


def test_nothing_to_resolve_is_an_empty_sequence():
    assert _resolve(None) == []
    assert _resolve([]) == []
    assert _resolve(["missing"]) == []


def test_order_follows_references_not_fetch_completion():
    delays = {"q1": 0.03, "q2": 0.0, "q3": 0.01}

    async def slow_lookup(question_id):
        await asyncio.sleep(delays[question_id])
        return _lookup(question_id)

    assert [q.id for q in _resolve(["q1", "q2", "q3"], slow_lookup)] == ["q1", "q2", "q3"]


def test_fetch_failures_drop_only_that_question():
    def flaky_lookup(question_id):
        if question_id == "q2":
            raise GatewayError("timeout")
        return _lookup(question_id)

    assert [q.id for q in _resolve(["q1", "q2", "q3"], flaky_lookup)] == ["q1", "q3"]


def test_transport_errors_drop_only_that_question(caplog):
    async def lookup(question_id):
        if question_id == "q1":
            raise TimeoutError("backend too slow")
        return _lookup(question_id)

    assert [q.id for q in _resolve(["q1", "q2"], lookup)] == ["q2"]
    assert "q1" in caplog.text


def test_numeric_ids_become_strings():
    refs = collect_references([7, "7", "8"])
    assert [ref.key for ref in refs] == ["7", "8"]
