import itertools
from typing import Optional

import pytest
from sqlalchemy.orm import sessionmaker

from feedback_bot.database import build_engine, init_db
from feedback_bot.models import Participant
from feedback_bot.schemas.telegram import TelegramUpdate
from feedback_bot.services.dispatcher import UpdateDispatcher
from feedback_bot.services.participant_service import get_participant_by_chat_id, set_employee
from feedback_bot.services.telegram_service import DeliveryError

CUSTOMER_ID = 111
EMPLOYEE_ID = 222
SECOND_EMPLOYEE_ID = 333


class FakeTelegram:
    """Records Bot API calls instead of sending them."""

    def __init__(self):
        self.calls = []
        self.fail_methods = set()
        self.fail_after = {}  # method -> number of successful calls before failing
        self.updates = []
        self._message_ids = itertools.count(5000)

    def _record(self, method: str, **data) -> dict:
        done = len(self.of(method))
        if method in self.fail_methods or (method in self.fail_after and done >= self.fail_after[method]):
            raise DeliveryError(method, "Forbidden: bot was blocked by the user")
        self.calls.append((method, data))
        return {"message_id": next(self._message_ids)}

    def send_message(self, chat_id, text, reply_markup=None):
        return self._record("sendMessage", chat_id=chat_id, text=text, reply_markup=reply_markup)

    def forward_message(self, chat_id, from_chat_id, message_id):
        return self._record("forwardMessage", chat_id=chat_id, from_chat_id=from_chat_id, message_id=message_id)

    def copy_message(self, chat_id, from_chat_id, message_id):
        return self._record("copyMessage", chat_id=chat_id, from_chat_id=from_chat_id, message_id=message_id)

    def answer_callback_query(self, callback_query_id, text=None):
        self._record("answerCallbackQuery", callback_query_id=callback_query_id)
        return True

    def get_updates(self, offset, timeout=10, limit=100):
        if "getUpdates" in self.fail_methods:
            raise DeliveryError("getUpdates", "Bad Gateway")
        self.calls.append(("getUpdates", {"offset": offset}))
        return [update for update in self.updates if update.update_id >= offset][:limit]

    def of(self, method: str) -> list[dict]:
        return [data for name, data in self.calls if name == method]

    def texts_to(self, chat_id: int) -> list[str]:
        return [data["text"] for data in self.of("sendMessage") if data["chat_id"] == chat_id]

    def last_text_to(self, chat_id: int) -> Optional[str]:
        texts = self.texts_to(chat_id)
        return texts[-1] if texts else None

    def reset(self):
        self.calls.clear()


class UpdateFactory:
    def __init__(self):
        self._update_ids = itertools.count(1)
        self._message_ids = itertools.count(100)

    def message(self, chat_id: int, text: str, username: Optional[str] = None) -> TelegramUpdate:
        return TelegramUpdate.model_validate(
            {
                "update_id": next(self._update_ids),
                "message": {
                    "message_id": next(self._message_ids),
                    "date": 1702000000,
                    "chat": {"id": chat_id, "type": "private"},
                    "from": {"id": chat_id, "is_bot": False, "first_name": "Test", "username": username},
                    "text": text,
                },
            }
        )

    def callback(self, chat_id: int, data: str) -> TelegramUpdate:
        update_id = next(self._update_ids)
        return TelegramUpdate.model_validate(
            {
                "update_id": update_id,
                "callback_query": {
                    "id": f"cb-{update_id}",
                    "from": {"id": chat_id, "is_bot": False, "first_name": "Test"},
                    "message": {
                        "message_id": next(self._message_ids),
                        "date": 1702000000,
                        "chat": {"id": chat_id, "type": "private"},
                        "text": "Question",
                    },
                    "data": data,
                },
            }
        )


class BotHarness:
    """Drives the dispatcher the way the poller does, one update at a time."""

    def __init__(self, db, telegram: FakeTelegram, updates: UpdateFactory):
        self.db = db
        self.telegram = telegram
        self.updates = updates
        self.last_update = None

    def send(self, chat_id: int, text: str, username: Optional[str] = None):
        self.last_update = self.updates.message(chat_id, text, username)
        return UpdateDispatcher(self.db, self.telegram).dispatch(self.last_update)

    def press(self, chat_id: int, data: str):
        self.last_update = self.updates.callback(chat_id, data)
        return UpdateDispatcher(self.db, self.telegram).dispatch(self.last_update)

    @property
    def last_message_id(self) -> int:
        return self.last_update.message.message_id

    def participant(self, chat_id: int) -> Participant:
        return get_participant_by_chat_id(self.db, chat_id)

    def state_of(self, chat_id: int) -> str:
        participant = self.participant(chat_id)
        self.db.refresh(participant)
        return participant.state

    def add_employee(self, chat_id: int, receiving: bool = True) -> Participant:
        set_employee(self.db, True, chat_id=chat_id)
        self.send(chat_id, "/start")
        if receiving:
            self.send(chat_id, "❓Receive questions")
        return self.participant(chat_id)


@pytest.fixture
def db_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'feedback.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def telegram():
    return FakeTelegram()


@pytest.fixture
def updates():
    return UpdateFactory()


@pytest.fixture
def bot(db_session, telegram, updates):
    return BotHarness(db_session, telegram, updates)
