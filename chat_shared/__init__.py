"""
Shared module for code used by both the chat gateway and the chat client.

STRUCTURE:
- chat_shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging
- chat_shared.protocol: Wire message builders and decoding

IMPORT EXAMPLES:
    from chat_shared.config.settings import settings
    from chat_shared.config.logging import get_logger
    from chat_shared.protocol import decode_message, text_event
"""
