import pytest

from feedback_bot.services.participant_service import register_participant, set_employee
from feedback_bot.services.question_service import add_correspondence, create_question
from feedback_bot.services.replay_service import find_question, replay_correspondence
from feedback_bot.services.telegram_service import DeliveryError

from conftest import CUSTOMER_ID, EMPLOYEE_ID


@pytest.fixture
def thread(db_session):
    customer = register_participant(db_session, CUSTOMER_ID, "anna")
    employee = set_employee(db_session, True, chat_id=EMPLOYEE_ID)
    question = create_question(db_session, customer, "Can I change the delivery address?")
    add_correspondence(db_session, question, customer, 10, is_employee=False)
    add_correspondence(db_session, question, employee, 11, is_employee=True)
    add_correspondence(db_session, question, customer, 12, is_employee=False)
    return question, employee


def test_replay_keeps_order_and_senders(db_session, telegram, thread):
    question, _ = thread

    assert replay_correspondence(db_session, telegram, question, 999) == 3
    assert telegram.of("forwardMessage") == [
        {"chat_id": 999, "from_chat_id": CUSTOMER_ID, "message_id": 10},
        {"chat_id": 999, "from_chat_id": EMPLOYEE_ID, "message_id": 11},
        {"chat_id": 999, "from_chat_id": CUSTOMER_ID, "message_id": 12},
    ]


def test_replay_stops_at_first_failure(db_session, telegram, thread):
    question, _ = thread
    telegram.fail_after["forwardMessage"] = 1

    with pytest.raises(DeliveryError):
        replay_correspondence(db_session, telegram, question, 999)

    assert [data["message_id"] for data in telegram.of("forwardMessage")] == [10]


def test_replay_of_empty_thread(db_session, telegram):
    customer = register_participant(db_session, CUSTOMER_ID, "anna")
    question = create_question(db_session, customer, "Hello?")

    assert replay_correspondence(db_session, telegram, question, 999) == 0
    assert telegram.calls == []


class TestFindQuestion:
    def test_found(self, db_session, telegram, thread):
        question, employee = thread

        assert find_question(db_session, telegram, employee, f" #{question.id} ") is True
        assert telegram.texts_to(EMPLOYEE_ID) == ["Can I change the delivery address?"]
        assert len(telegram.of("forwardMessage")) == 3

    @pytest.mark.parametrize("raw", ["abc", "", "1.5"])
    def test_wrong_format(self, db_session, telegram, thread, raw):
        _, employee = thread

        assert find_question(db_session, telegram, employee, raw) is False
        assert telegram.texts_to(EMPLOYEE_ID) == ["Wrong format"]

    def test_not_found(self, db_session, telegram, thread):
        _, employee = thread

        assert find_question(db_session, telegram, employee, "404") is False
        assert telegram.texts_to(EMPLOYEE_ID) == ["Question not found"]
        assert telegram.of("forwardMessage") == []
