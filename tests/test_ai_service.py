"""
Unit tests for the AI report client. HTTP calls are mocked.
"""

import json
from unittest.mock import patch, MagicMock

import pytest
import requests

from services.ai_service import AIReportService, AIServiceError

CONFIG = {
    'AI_API_KEY': 'test-key',
    'AI_MODEL': 'gemini-1.5-flash',
    'AI_API_URL': 'https://example.test/v1beta/',
    'AI_TIMEOUT': 5,
}


def _response(text):
    response = MagicMock()
    response.json.return_value = {'candidates': [{'content': {'parts': [{'text': text}]}}]}
    return response


class TestAIReportService:
    """Request building and response handling."""

    def test_missing_key(self):
        with pytest.raises(AIServiceError, match='not configured'):
            AIReportService({**CONFIG, 'AI_API_KEY': None})

    @patch('services.ai_service.requests.post')
    def test_request_shape(self, mock_post):
        mock_post.return_value = _response('hello')
        service = AIReportService(CONFIG)

        assert service.generate('Say hello', json_output=True) == 'hello'

        args, kwargs = mock_post.call_args
        assert args[0] == 'https://example.test/v1beta/models/gemini-1.5-flash:generateContent'
        assert kwargs['params'] == {'key': 'test-key'}
        assert kwargs['timeout'] == 5
        assert kwargs['json']['contents'][0]['parts'][0]['text'] == 'Say hello'
        assert kwargs['json']['generationConfig'] == {'responseMimeType': 'application/json'}

    @patch('services.ai_service.requests.post')
    def test_plain_text_request_has_no_generation_config(self, mock_post):
        mock_post.return_value = _response('hello')
        AIReportService(CONFIG).generate('Say hello')

        assert 'generationConfig' not in mock_post.call_args.kwargs['json']

    @patch('services.ai_service.requests.post')
    def test_http_error_carries_upstream_message(self, mock_post):
        upstream = MagicMock()
        upstream.json.return_value = {'error': {'message': 'API key not valid'}}
        failed = MagicMock()
        failed.raise_for_status.side_effect = requests.exceptions.HTTPError('400 Bad Request', response=upstream)
        mock_post.return_value = failed

        with pytest.raises(AIServiceError, match='API key not valid'):
            AIReportService(CONFIG).generate('Say hello')

    @patch('services.ai_service.requests.post')
    def test_unexpected_response_shape(self, mock_post):
        response = MagicMock()
        response.json.return_value = {'candidates': []}
        mock_post.return_value = response

        with pytest.raises(AIServiceError, match='Unexpected response shape'):
            AIReportService(CONFIG).generate('Say hello')


class TestReminderEmail:
    """Structured reminder email output."""

    def _generate(self, mock_post, text):
        mock_post.return_value = _response(text)
        return AIReportService(CONFIG).generate_reminder_email(
            tenant_name='Jane Wanjiru',
            property_address='12 Riverside Drive, Nairobi',
            amount_owed='KES 3,100.00',
            days_overdue=45,
            company_name='Acme Lets',
            arrears_breakdown='- Rent: January 2025 (due 2025-01-01): KES 1,000.00',
        )

    @patch('services.ai_service.requests.post')
    def test_returns_subject_and_body(self, mock_post):
        email = self._generate(mock_post, json.dumps({'subject': 'Urgent: Overdue Rent Reminder', 'body': 'Dear Jane'}))
        assert email == {'subject': 'Urgent: Overdue Rent Reminder', 'body': 'Dear Jane'}

        prompt = mock_post.call_args.kwargs['json']['contents'][0]['parts'][0]['text']
        assert 'KES 3,100.00' in prompt
        assert '45 days' in prompt
        assert 'Acme Lets' in prompt

    @patch('services.ai_service.requests.post')
    def test_invalid_json(self, mock_post):
        with pytest.raises(AIServiceError, match='not valid JSON'):
            self._generate(mock_post, 'Dear Jane, please pay.')

    @patch('services.ai_service.requests.post')
    def test_missing_fields(self, mock_post):
        with pytest.raises(AIServiceError, match="missing 'subject' or 'body'"):
            self._generate(mock_post, json.dumps({'subject': 'Hi', 'body': 3}))


class TestPnlSummary:
    """Narrative P&L report."""

    REPORT = {'start_date': '2025-01-01', 'end_date': '2025-03-31', 'net': 3200.0}

    @patch('services.ai_service.requests.post')
    def test_summary(self, mock_post):
        mock_post.return_value = _response('Net profit was 3,200.\n')
        result = AIReportService(CONFIG).generate_pnl_summary(self.REPORT, 'KES', 'Acme Lets')

        assert result == {'report': 'Net profit was 3,200.'}
        prompt = mock_post.call_args.kwargs['json']['contents'][0]['parts'][0]['text']
        assert '"net": 3200.0' in prompt

    @patch('services.ai_service.requests.post')
    def test_empty_summary(self, mock_post):
        mock_post.return_value = _response('   ')
        with pytest.raises(AIServiceError, match='empty report'):
            AIReportService(CONFIG).generate_pnl_summary(self.REPORT, 'KES', 'Acme Lets')
