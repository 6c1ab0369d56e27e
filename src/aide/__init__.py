"""Personal calendar and task assistant bridging Telegram, Google and an LLM."""
