from __future__ import annotations

from typing import Any, Dict

SYSTEM_PROMPT = """You are an empathetic, non-judgmental AI journaling companion. Your role is to:
- Welcome the user warmly and ask them the daily prompt
- After they respond, if their answer is brief or underdeveloped, ask 1-2 thoughtful follow-up questions to help them explore deeper
- If their answer is well-developed, acknowledge it warmly and ask if there's anything else they'd like to explore
- Keep the conversation natural, supportive, and focused on helping them explore their thoughts and emotions
- Maximum conversation time: {max_minutes} minutes
- Be warm, empathetic, and encouraging
- When the conversation feels complete, you can say something like "Thank you for sharing. I think we've covered a lot today. Feel free to end the call whenever you're ready.\""""


def build_assistant_config(prompt: str, *, max_call_seconds: float = 360.0) -> Dict[str, Any]:
    """Assistant definition passed to the vendor when a call starts."""

    max_minutes = max(1, int(round(max_call_seconds / 60)))
    return {
        "transcriber": {
            "provider": "deepgram",
            "model": "nova-2",
            "language": "en-US",
        },
        "model": {
            "provider": "openai",
            "model": "gpt-4o-mini",
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT.format(max_minutes=max_minutes)},
                {"role": "user", "content": f'Welcome the user warmly, then ask them: "{prompt}"'},
            ],
        },
        "voice": {
            "provider": "11labs",
            "voiceId": "21m00Tcm4TlvDq8ikWAM",
        },
        "firstMessage": f"Hi! I'm here to help you reflect today. {prompt}",
        "name": "Voice Journaling Assistant",
    }


__all__ = ["SYSTEM_PROMPT", "build_assistant_config"]
