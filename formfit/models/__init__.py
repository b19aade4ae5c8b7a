from formfit.models.order import Order
from formfit.models.message import Message
from formfit.models.conversation import ConversationState
from formfit.models.processed_message import ProcessedMessage
