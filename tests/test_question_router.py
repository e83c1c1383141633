import pytest

from feedback_bot.services.participant_service import (
    list_receivers,
    register_participant,
    set_employee,
    set_receiver,
)
from feedback_bot.services.question_router import (
    ALREADY_TAKEN,
    assign_question_to_employees,
    claim_callback_data,
    claim_question,
    offer_open_questions,
    parse_callback_data,
    release_question,
)
from feedback_bot.services.question_service import (
    add_correspondence,
    close_question,
    create_question,
    get_question_by_id,
    list_new_questions,
    set_has_answer,
)
from feedback_bot.services.telegram_service import DeliveryError

from conftest import CUSTOMER_ID, EMPLOYEE_ID, SECOND_EMPLOYEE_ID


def make_employee(db, chat_id, receiving=True):
    employee = set_employee(db, True, chat_id=chat_id)
    set_receiver(db, employee, receiving)
    return employee


@pytest.fixture
def customer(db_session):
    return register_participant(db_session, CUSTOMER_ID, "anna")


@pytest.fixture
def question(db_session, customer):
    return create_question(db_session, customer, "Where is my refund?")


class TestCallbackData:
    def test_claim_data_round_trip(self):
        assert parse_callback_data(claim_callback_data(42)) == (1, "42")

    @pytest.mark.parametrize("data", [None, "", "abc", "x-1"])
    def test_unparsable_key(self, data):
        assert parse_callback_data(data) == (0, "")


class TestFanOut:
    def test_offers_go_to_receivers_only(self, db_session, telegram, question):
        make_employee(db_session, EMPLOYEE_ID)
        make_employee(db_session, SECOND_EMPLOYEE_ID, receiving=False)

        failed = assign_question_to_employees(db_session, telegram, question)

        assert failed == []
        assert [data["chat_id"] for data in telegram.of("sendMessage")] == [EMPLOYEE_ID]

    def test_busy_employee_is_skipped(self, db_session, telegram, customer, question):
        busy = make_employee(db_session, EMPLOYEE_ID)
        make_employee(db_session, SECOND_EMPLOYEE_ID)
        claim_question(db_session, telegram, busy, question.id)
        telegram.reset()

        second = create_question(db_session, customer, "And my invoice?")
        assign_question_to_employees(db_session, telegram, second)

        assert [data["chat_id"] for data in telegram.of("sendMessage")] == [SECOND_EMPLOYEE_ID]

    def test_employee_with_closed_claim_receives_again(self, db_session, telegram, customer, question):
        employee = make_employee(db_session, EMPLOYEE_ID)
        claim_question(db_session, telegram, employee, question.id)
        close_question(db_session, question)

        assert [receiver.chat_id for receiver in list_receivers(db_session)] == [EMPLOYEE_ID]

    def test_failed_delivery_does_not_stop_fan_out(self, db_session, telegram, question):
        make_employee(db_session, EMPLOYEE_ID)
        make_employee(db_session, SECOND_EMPLOYEE_ID)
        telegram.fail_after["sendMessage"] = 0

        failed = assign_question_to_employees(db_session, telegram, question)

        assert failed == [EMPLOYEE_ID, SECOND_EMPLOYEE_ID]

    def test_offer_text_and_button(self, db_session, telegram, question):
        make_employee(db_session, EMPLOYEE_ID)

        assign_question_to_employees(db_session, telegram, question)

        offer = telegram.of("sendMessage")[0]
        assert offer["text"] == f"Question #{question.id}\nWhere is my refund?"
        button = offer["reply_markup"]["inline_keyboard"][0][0]
        assert button == {"text": "Take question", "callback_data": f"1-{question.id}"}


class TestClaim:
    def test_claim_is_exclusive(self, session_factory, telegram, question):
        question_id = question.id
        first_db, second_db = session_factory(), session_factory()
        try:
            first = make_employee(first_db, EMPLOYEE_ID)
            second = make_employee(second_db, SECOND_EMPLOYEE_ID)

            won = claim_question(first_db, telegram, first, question_id)
            lost = claim_question(second_db, telegram, second, question_id)
        finally:
            first_db.close()
            second_db.close()

        assert won.ok
        assert not lost.ok
        assert lost.error == ALREADY_TAKEN
        assert lost.error_code == "already_taken"

    def test_claim_replays_thread(self, db_session, telegram, customer, question):
        add_correspondence(db_session, question, customer, 501, is_employee=False)
        add_correspondence(db_session, question, customer, 502, is_employee=False)
        employee = make_employee(db_session, EMPLOYEE_ID)

        result = claim_question(db_session, telegram, employee, question.id)

        assert result.ok
        assert result.value.answerer_id == employee.id
        assert [data["message_id"] for data in telegram.of("forwardMessage")] == [501, 502]

    def test_released_answered_question_can_be_claimed(self, db_session, telegram, question):
        first = make_employee(db_session, EMPLOYEE_ID)
        second = make_employee(db_session, SECOND_EMPLOYEE_ID)
        claim_question(db_session, telegram, first, question.id)
        set_has_answer(db_session, question, True)
        release_question(db_session, first)

        assert [offered.id for offered in list_new_questions(db_session)] == [question.id]
        result = claim_question(db_session, telegram, second, question.id)
        assert result.ok
        assert result.value.answerer_id == second.id

    def test_closed_question_cannot_be_claimed(self, db_session, telegram, question):
        close_question(db_session, question)
        employee = make_employee(db_session, EMPLOYEE_ID)

        assert claim_question(db_session, telegram, employee, question.id).error_code == "already_taken"

    def test_unknown_question(self, db_session, telegram):
        employee = make_employee(db_session, EMPLOYEE_ID)

        assert claim_question(db_session, telegram, employee, 404).error_code == "already_taken"

    def test_claiming_own_question(self, db_session, telegram, question):
        employee = make_employee(db_session, EMPLOYEE_ID)
        claim_question(db_session, telegram, employee, question.id)

        result = claim_question(db_session, telegram, employee, question.id)

        assert result.error_code == "already_yours"
        assert result.error == f"You are already answering question #{question.id}"

    def test_busy_employee_cannot_claim_another(self, db_session, telegram, customer, question):
        employee = make_employee(db_session, EMPLOYEE_ID)
        claim_question(db_session, telegram, employee, question.id)
        other = create_question(db_session, customer, "Second one")

        result = claim_question(db_session, telegram, employee, other.id)

        assert result.error_code == "busy"
        assert get_question_by_id(db_session, other.id).answerer_id is None

    def test_failed_replay_releases_claim(self, db_session, telegram, customer, question):
        add_correspondence(db_session, question, customer, 501, is_employee=False)
        add_correspondence(db_session, question, customer, 502, is_employee=False)
        employee = make_employee(db_session, EMPLOYEE_ID)
        telegram.fail_after["forwardMessage"] = 1

        with pytest.raises(DeliveryError):
            claim_question(db_session, telegram, employee, question.id)

        assert get_question_by_id(db_session, question.id).answerer_id is None


class TestRelease:
    def test_release_keeps_question_open(self, db_session, telegram, question):
        employee = make_employee(db_session, EMPLOYEE_ID)
        claim_question(db_session, telegram, employee, question.id)

        result = release_question(db_session, employee)

        assert result.ok
        released = get_question_by_id(db_session, question.id)
        assert released.answerer_id is None
        assert released.is_closed is False

    def test_nothing_to_release(self, db_session):
        employee = make_employee(db_session, EMPLOYEE_ID)

        assert release_question(db_session, employee).error_code == "not_found"


class TestOpenQuestions:
    def test_no_questions(self, db_session, telegram):
        employee = make_employee(db_session, EMPLOYEE_ID)

        assert offer_open_questions(db_session, telegram, employee) == 0
        assert telegram.texts_to(EMPLOYEE_ID) == ["No questions"]

    def test_only_unclaimed_questions_are_offered(self, db_session, telegram, customer, question):
        employee = make_employee(db_session, EMPLOYEE_ID)
        claim_question(db_session, telegram, employee, question.id)
        waiting = create_question(db_session, customer, "Still waiting")
        closed = create_question(db_session, customer, "Never mind")
        close_question(db_session, closed)
        telegram.reset()

        assert offer_open_questions(db_session, telegram, employee) == 1
        assert telegram.texts_to(EMPLOYEE_ID) == [f"Question #{waiting.id}\nStill waiting"]
