import json
import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)


class AIServiceError(Exception):
    pass


REMINDER_EMAIL_PROMPT = """You are an expert property manager's assistant, skilled in writing clear, polite, and effective tenant communications.

Compose a rental arrears reminder email. The tone must be professional and firm.

Tenant and Arrears Details:
- Tenant Name: {tenant_name}
- Property: {property_address}
- Total Amount Owed: {amount_owed}
- Days Overdue (since first missed payment): {days_overdue} days
- Sender Name/Company: {company_name}

Arrears Breakdown by Period:
{arrears_breakdown}

Instructions:
1. The subject line must include the words "Urgent: Overdue Rent Reminder".
2. Address the tenant by name, state the property and the total amount owed, and include the breakdown above.
3. Require the balance to be settled within 5 business days.
4. Close with: "If you have already made this payment or believe this notice was sent in error, please contact our office immediately."
5. Sign off with "Regards," followed by {company_name}.

Respond with a JSON object with exactly two string fields: "subject" and "body".
"""

PNL_SUMMARY_PROMPT = """You are an accountant preparing a profit and loss summary for a landlord.

Company: {company_name}
Currency: {currency}
Period: {start} to {end}

Figures (JSON):
{figures}

Write a concise narrative report (plain text, short paragraphs) covering income, collections, expenses by category, net result and anything that needs the landlord's attention. Do not invent figures that are not in the data.
"""


class AIReportService:
    """
    Thin client for the hosted language model. Sends a prompt built from
    structured input and returns the model's text (or parsed JSON).
    """

    def __init__(self, config=None):
        config = config if config is not None else current_app.config

        self.api_key = config.get('AI_API_KEY')
        if not self.api_key:
            raise AIServiceError("AI API key is not configured.")

        self.model = config.get('AI_MODEL')
        self.api_url = config.get('AI_API_URL', '').rstrip('/')
        self.timeout = config.get('AI_TIMEOUT', 30)

    def _endpoint(self):
        return f"{self.api_url}/models/{self.model}:generateContent"

    def generate(self, prompt, json_output=False):
        payload = {'contents': [{'role': 'user', 'parts': [{'text': prompt}]}]}
        if json_output:
            payload['generationConfig'] = {'responseMimeType': 'application/json'}

        try:
            response = requests.post(
                self._endpoint(),
                params={'key': self.api_key},
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            error_msg = f"AI request failed: {e}"
            if e.response is not None:
                try:
                    err_json = e.response.json()
                    error_msg += f" - {err_json.get('error', {}).get('message', e.response.text)}"
                except ValueError:
                    error_msg += f" - {e.response.text}"
            logger.warning(error_msg)
            raise AIServiceError(error_msg) from e

        try:
            data = response.json()
            return data['candidates'][0]['content']['parts'][0]['text']
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AIServiceError("Unexpected response shape from AI service") from e

    def generate_reminder_email(self, tenant_name, property_address, amount_owed,
                                days_overdue, company_name, arrears_breakdown):
        prompt = REMINDER_EMAIL_PROMPT.format(
            tenant_name=tenant_name,
            property_address=property_address,
            amount_owed=amount_owed,
            days_overdue=days_overdue,
            company_name=company_name,
            arrears_breakdown=arrears_breakdown,
        )
        text = self.generate(prompt, json_output=True)

        try:
            result = json.loads(text)
        except ValueError as e:
            raise AIServiceError("AI response was not valid JSON") from e

        if not isinstance(result, dict) or not all(isinstance(result.get(k), str) for k in ('subject', 'body')):
            raise AIServiceError("AI response is missing 'subject' or 'body'")

        return {'subject': result['subject'], 'body': result['body']}

    def generate_pnl_summary(self, report, currency, company_name):
        prompt = PNL_SUMMARY_PROMPT.format(
            company_name=company_name,
            currency=currency,
            start=report['start_date'],
            end=report['end_date'],
            figures=json.dumps(report, indent=2, default=str),
        )
        text = self.generate(prompt)
        if not text or not text.strip():
            raise AIServiceError("AI returned an empty report")
        return {'report': text.strip()}
