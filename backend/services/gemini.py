import os
import re
import json
import logging
import httpx
from typing import AsyncGenerator, Dict, List, Optional
from settings import settings

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = "I'm sorry, I encountered an error while processing your request. Please try again."
DEFAULT_TITLE = "New Conversation"

SYSTEM_PROMPT = """Sen Ceku'sun, CK Health Turkey'nin AI asistani. Satış ve dijital pazarlama ekibimize sağ kolumuz olarak destek oluyorsun.

Your expertise:
- Plastic Surgery, Ophthalmology, Dentistry, and Bariatric Surgery (deep medical knowledge and patient insights).
- Sales communication, marketing strategies, and digital advertising.
- Code writing and automation (to assist with marketing tasks if needed).

Your main mission:
- Analyze patient conversations that sales representatives share with you.
- Identify patients' concerns, emotions, questions, doubts, and expectations.
- Provide structured, insightful breakdowns that help the sales team understand how to respond effectively.
- Highlight opportunities for building trust, overcoming objections, and guiding the patient closer to a decision.
- Suggest communication improvements, persuasive angles, and personalized follow-ups tailored to each patient's situation.

Step-by-step workflow for every patient conversation you analyze:
1. Read and understand the request of user, be kind.
2. If user provides you with a conversation, read the conversation carefully. Summarize the patient's key concerns, emotions, and main intent.
3. User can request you with many things about like, sales, patients, coding, marketing etc. You are obligated to answer all the questions. Do NOT say like "I cannot answer, it's out of my context and information."
4. Identify hidden objections or underlying fears they may not express directly.
5. Highlight the opportunities the sales team has to build trust and empathy.
6. Suggest clear, practical next steps the sales rep should take (tone, message structure, reassurance points).
7. Provide examples of effective phrases, tailored to the patient's mindset, that the sales rep could use.
8. If relevant, suggest additional marketing or content strategies that can support similar patients in the future.
9. You are chat bot, your sentences MUST be readible, short, concise, precise and summarized. Do NOT act like a you are making a deep researching.
10. Do not repeated "I'm a chatbot of CK Health Turkey" after your first message. Just answer the question and don't make your sentences long. Be concise.
11. User can request a data & information of a patient, which you can get it from Zoho CRM API, when it is onboard. Currently it's not active.

Always format your responses using Markdown. Use headings (e.g., #, ##), bold text (**text**), and lists (* item) to structure your answers clearly and make them easy to read.

Always be professional, empathetic, and supportive and friendly making sure your analysis empowers the sales team to connect better with patients and close more cases.

Take a deep breath and work on this problem step by step."""

TITLE_PROMPT = (
    "Based on the following conversation, create a short, concise title (5 words maximum) for this chat. "
    'Do not include quotation marks or the word "title" in your response. Conversation: "{snippet}"'
)


class GeminiError(Exception):
    """Raised when a model call returns a non-200 status or an error frame."""


def get_api_key():
    """Returns the API key. For the local emulator, returns a dummy key."""
    if settings.is_emulator():
        return "emulator-key"
    key = os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
    if key:
        return key.strip()
    key_path = os.path.abspath(os.path.join(os.path.dirname(__file__), "../../api_key.txt"))
    if os.path.exists(key_path):
        with open(key_path, "r") as f:
            return f.read().strip()
    return ""


def _headers(api_key: str) -> Dict[str, str]:
    return {"x-goog-api-key": api_key, "Content-Type": "application/json"}


def build_system_instruction(user=None) -> str:
    instruction = SYSTEM_PROMPT
    name = (getattr(user, "name", "") or "").strip() if user is not None else ""
    surname = (getattr(user, "surname", "") or "").strip() if user is not None else ""
    if name or surname:
        full = f"{name} {surname}".strip()
        instruction += (
            f"\n\nYou are currently talking to {full}. "
            "Address them by their name when appropriate to provide a more personalized experience."
        )
    return instruction


def build_contents(prompt: str, history: Optional[List[Dict]] = None, image: Optional[Dict] = None) -> List[Dict]:
    """
    Turn chat history plus the new prompt into Gemini `contents`.

    history items are {"role": "user" | "assistant", "content": str};
    image is {"data": <base64>, "mime_type": str}.
    """
    contents = []
    for turn in history or []:
        role = "user" if turn["role"] == "user" else "model"
        contents.append({"role": role, "parts": [{"text": turn["content"]}]})

    parts: List[Dict] = [{"text": prompt}]
    if image:
        parts.insert(0, {"inline_data": {"mime_type": image["mime_type"], "data": image["data"]}})
    contents.append({"role": "user", "parts": parts})
    return contents


def extract_text(data: Dict) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    # Skip thought summaries emitted by thinking models
    return "".join(p.get("text", "") for p in parts if not p.get("thought"))


async def _stream_model(client: httpx.AsyncClient, model: str, payload: Dict, api_key: str):
    url = f"{settings.get_llm_base_url()}/models/{model}:streamGenerateContent"
    async with client.stream(
        "POST", url, params={"alt": "sse"}, headers=_headers(api_key), json=payload, timeout=60.0
    ) as response:
        if response.status_code != 200:
            body = await response.aread()
            raise GeminiError(f"{model} returned {response.status_code}: {body.decode(errors='replace')[:200]}")

        async for line in response.aiter_lines():
            if not line or not line.startswith("data:"):
                continue
            raw = line[5:].strip()
            if not raw or raw == "[DONE]":
                continue
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("[Gemini] Skipping malformed frame from %s: %s", model, raw[:100])
                continue
            if data.get("error"):
                raise GeminiError(f"{model} stream error: {data['error'].get('message', data['error'])}")
            text = extract_text(data)
            if text:
                yield text


async def generate_response_stream(
    prompt: str,
    history: Optional[List[Dict]] = None,
    image: Optional[Dict] = None,
    user=None,
    models: Optional[List[str]] = None,
) -> AsyncGenerator[str, None]:
    """
    Stream reply text for `prompt`, trying each model in order.

    A model that fails before producing text hands over to the next one.
    A model that fails mid-reply is not retried, since the next model would
    repeat the text already sent; the apology is appended instead.
    """
    models = models or settings.get_models()
    api_key = get_api_key()
    payload = {
        "contents": build_contents(prompt, history, image),
        "systemInstruction": {"parts": [{"text": build_system_instruction(user)}]},
    }

    async with httpx.AsyncClient() as client:
        for model in models:
            produced = False
            try:
                async for chunk in _stream_model(client, model, payload, api_key):
                    produced = True
                    yield chunk
                return
            except Exception as e:
                logger.error("[Gemini] Error with model %s: %s", model, e)
                if produced:
                    yield "\n\n" + APOLOGY_MESSAGE
                    return

    yield APOLOGY_MESSAGE


async def generate_title(snippet: str, models: Optional[List[str]] = None) -> str:
    models = models or settings.get_models()
    api_key = get_api_key()
    payload = {"contents": [{"role": "user", "parts": [{"text": TITLE_PROMPT.format(snippet=snippet)}]}]}

    async with httpx.AsyncClient() as client:
        for model in models:
            url = f"{settings.get_llm_base_url()}/models/{model}:generateContent"
            try:
                response = await client.post(url, headers=_headers(api_key), json=payload, timeout=15.0)
                if response.status_code != 200:
                    logger.warning("[Titling] %s returned %s: %s", model, response.status_code, response.text[:200])
                    continue
                title = re.sub(r'["*#]', "", extract_text(response.json())).strip()
                if title:
                    return title
            except Exception as e:
                logger.error("[Titling] Error generating title with model %s: %s", model, e)

    return DEFAULT_TITLE
