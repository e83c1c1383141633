from feedback_bot.services.dispatcher import (
    ParticipantNotFoundError,
    UpdateDispatcher,
    process_update,
)
from feedback_bot.services.question_router import (
    assign_question_to_employees,
    claim_question,
    release_question,
)
from feedback_bot.services.replay_service import replay_correspondence
from feedback_bot.services.state_machine import (
    Action,
    EventClass,
    ParticipantState,
    Role,
    Transition,
    lookup,
)
from feedback_bot.services.telegram_service import DeliveryError, TelegramService
