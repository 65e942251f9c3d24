"""
Chatroom - A shared chat room with a bot that has an attitude.

This package provides a real-time chat backend with:
- Connection and identity tracking for live participants
- Message broadcast with a persisted JSON transcript
- A bot that learns question/answer pairs and answers repeated questions
- Periodic unsolicited commentary from the bot
"""

__version__ = "0.1.0"
__author__ = "Chatroom Team"
