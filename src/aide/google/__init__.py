from aide.google.auth import GoogleAuth
from aide.google.calendar import CalendarClient
from aide.google.tasks import TasksClient

__all__ = ["CalendarClient", "GoogleAuth", "TasksClient"]
