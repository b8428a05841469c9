import json
import logging
from typing import Any, Dict, Optional

from openai import OpenAI
from sqlmodel import Session

from receptionist.models import Business, Call, SummaryAction, utcnow
from receptionist.notification_service import NotificationService

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_TEMPLATE = """You are an AI assistant that summarizes phone call transcripts for a {business_type} called "{business_name}".

Extract key information from the conversation and create a structured summary.

Return a JSON object with:
- intent: The main purpose of the call (e.g., "book appointment", "inquire about services", "cancel booking")
- details: Object containing extracted information (customer name, phone, requested service, preferred time, etc.)
- action: One of: "callback" (needs follow-up), "booking" (appointment made), "quote" (needs pricing), "info" (information only)

Be concise but include all important details."""


def fallback_summary() -> Dict[str, Any]:
    return {"intent": "unknown", "details": {}, "action": SummaryAction.callback.value}

def coerce_summary(data: Any) -> Dict[str, Any]:
    """
    Validates the model's JSON against the summary shape. Fields the model
    got wrong are replaced with their fallback values.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

    intent = data.get("intent")
    if not isinstance(intent, str) or not intent.strip():
        intent = "unknown"

    details = data.get("details")
    if not isinstance(details, dict):
        details = {}

    action = data.get("action")
    valid_actions = {a.value for a in SummaryAction}
    if action not in valid_actions:
        logger.warning(f"Model returned invalid summary action {action!r}; using 'callback'")
        action = SummaryAction.callback.value

    return {"intent": intent.strip(), "details": details, "action": action}


class SummaryGenerator:
    def __init__(
        self,
        engine,
        notifier: NotificationService,
        openai_api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        client: Optional[OpenAI] = None,
    ):
        self.engine = engine
        self.notifier = notifier
        self.openai_api_key = openai_api_key
        self.model = model
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=self.openai_api_key)
        return self._client

    def generate(self, transcript: str, business_id: str) -> Dict[str, Any]:
        """Summarizes a transcript into {intent, details, action}, never raising."""
        try:
            with Session(self.engine) as session:
                business = session.get(Business, business_id)
                if not business:
                    raise LookupError(f"Business not found: {business_id}")
                system_prompt = SYSTEM_PROMPT_TEMPLATE.format(
                    business_type=business.business_type or "business",
                    business_name=business.name,
                )

            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": f"Summarize this call transcript:\n\n{transcript}"},
                ],
                response_format={"type": "json_object"},
                temperature=0.3,
            )

            summary_text = response.choices[0].message.content if response.choices else None
            if not summary_text:
                raise ValueError("No summary generated")

            return coerce_summary(json.loads(summary_text))

        except Exception as e:
            logger.error(f"Error generating call summary: {e}")
            return fallback_summary()

    def generate_and_save(self, call_id: str, transcript: str, business_id: str) -> Dict[str, Any]:
        """
        Generates the summary, stores it on the call and notifies the owner
        unless the call was informational only.
        """
        summary = self.generate(transcript, business_id)

        with Session(self.engine) as session:
            call = session.get(Call, call_id)
            if not call:
                raise LookupError(f"Call not found: {call_id}")
            call.summary = summary
            call.updated_at = utcnow()
            session.add(call)
            session.commit()
            logger.info(f"Summary generated for call {call_id}: action={summary['action']}")

            business = session.get(Business, business_id)

        if business and summary["action"] != SummaryAction.info.value:
            try:
                self.notifier.notify(business, summary, call_id)
            except Exception as e:
                logger.error(f"Notification for call {call_id} failed: {e}")

        return summary
