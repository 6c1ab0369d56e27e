from aide.storage.conversations import ConversationStore
from aide.storage.database import Database
from aide.storage.reminders import Reminder, ReminderLog, ReminderStore
from aide.storage.tokens import StoredToken, TokenStore

__all__ = [
    "ConversationStore",
    "Database",
    "Reminder",
    "ReminderLog",
    "ReminderStore",
    "StoredToken",
    "TokenStore",
]
