from aide.llm.client import ChatCompletionClient, ChatModel

__all__ = ["ChatCompletionClient", "ChatModel"]
