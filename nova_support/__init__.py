"""
Nova Support
============
Customer-support agent backend for the TechNova storefront demo.

Features:
- Text chat with tool calling (catalog search, orders, cart, escalation)
- Real-time voice sessions with barge-in
- Product browser, cart and checkout endpoints
- English and French

Tech Stack:
- FastAPI (async backend)
- Groq API (LLM, Whisper STT, PlayAI TTS)
- NumPy (audio processing)
"""

__version__ = "1.0.0"
