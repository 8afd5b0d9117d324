"""
Unit tests for the Study Buddy HTTP endpoints.
"""
import json
import unittest
from unittest.mock import patch

# Import the Flask app
from app import app, TUTOR_ROUTES


def _provider_payload(content):
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
    }


QUESTION = {
    'question_text': '2+2=?',
    'option_A': '3',
    'option_B': '4',
    'option_C': '5',
    'option_D': '6',
    'solution': 'Addition gives 4.',
}


class TestHealthEndpoint(unittest.TestCase):
    """Tests for the /health endpoint."""

    def setUp(self):
        """Set up test client."""
        app.testing = True
        self.client = app.test_client()

    def test_health_returns_ok(self):
        """Health endpoint should return status ok."""
        response = self.client.get('/health')
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.data)
        self.assertEqual(data['status'], 'ok')


class TestCorsAndProbe(unittest.TestCase):
    """Tests for OPTIONS preflight and GET probe on the tutor routes."""

    def setUp(self):
        app.testing = True
        self.client = app.test_client()

    def test_options_returns_204_with_cors_headers(self):
        """Preflight should answer 204 with permissive CORS headers and no body."""
        for route in TUTOR_ROUTES:
            response = self.client.options(
                route,
                headers={
                    'Origin': 'http://localhost:3000',
                    'Access-Control-Request-Method': 'POST',
                    'Access-Control-Request-Headers': 'Content-Type',
                },
            )
            self.assertEqual(response.status_code, 204)
            self.assertEqual(response.data, b'')
            self.assertEqual(response.headers.get('Access-Control-Allow-Origin'), '*')
            self.assertIn('POST', response.headers.get('Access-Control-Allow-Methods', ''))

    def test_options_without_origin_still_sends_cors_headers(self):
        """Non-browser preflights get the same open headers."""
        response = self.client.options('/api/motivation')
        self.assertEqual(response.status_code, 204)
        self.assertEqual(response.headers.get('Access-Control-Allow-Origin'), '*')
        self.assertIn('POST', response.headers.get('Access-Control-Allow-Methods', ''))
        self.assertIn('Content-Type', response.headers.get('Access-Control-Allow-Headers', ''))

    def test_get_probe(self):
        """GET should report the route is alive."""
        response = self.client.get('/api/solution')
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.data)
        self.assertTrue(data['ok'])
        self.assertEqual(data['route'], '/api/solution')

    @patch('dispatcher.generate_completion')
    def test_post_carries_cors_header(self, mock_generate):
        """POST responses should also carry the CORS origin header."""
        mock_generate.return_value = (_provider_payload('Keep going!'), None)
        response = self.client.post(
            '/api/motivation',
            data=json.dumps({'message': 'Hello'}),
            content_type='application/json',
            headers={'Origin': 'http://localhost:3000'},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers.get('Access-Control-Allow-Origin'), '*')


class TestTutorEndpoint(unittest.TestCase):
    """Tests for POST dispatching on the tutor routes."""

    def setUp(self):
        """Set up test client."""
        app.testing = True
        self.client = app.test_client()

    def _post(self, body, route='/api/solution', **kwargs):
        return self.client.post(
            route,
            data=json.dumps(body),
            content_type='application/json',
            **kwargs
        )

    @patch('dispatcher.generate_completion')
    def test_determine_answer_success(self, mock_generate):
        """A stub reply of 'B' should come back as the correct answer."""
        mock_generate.return_value = (_provider_payload('B'), None)

        response = self._post(dict(QUESTION, action='determine_answer'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.data), {'correct_answer': 'B', 'raw_response': 'B'})
        self.assertEqual(mock_generate.call_count, 1)
        kwargs = mock_generate.call_args.kwargs
        self.assertEqual(kwargs['temperature'], 0.1)
        self.assertEqual(kwargs['max_tokens'], 10)

    @patch('dispatcher.generate_completion')
    def test_determine_answer_missing_option(self, mock_generate):
        """Missing option_D should be rejected before any provider call."""
        body = dict(QUESTION, action='determine_answer')
        del body['option_D']

        response = self._post(body)
        self.assertEqual(response.status_code, 400)
        data = json.loads(response.data)
        self.assertIn('option_D', data['error'])
        self.assertEqual(data['details']['missing'], ['option_D'])
        mock_generate.assert_not_called()

    @patch('dispatcher.generate_completion')
    def test_dig_deeper_unparseable(self, mock_generate):
        """Prose without JSON should yield the distinct parse-failure error."""
        prose = 'Here is a great follow-up question about addition, but no JSON.'
        mock_generate.return_value = (_provider_payload(prose), None)

        response = self._post({'action': 'dig_deeper', 'question_text': '2+2=?', 'solution': '4'})
        self.assertEqual(response.status_code, 500)
        data = json.loads(response.data)
        self.assertEqual(data['error'], 'Could not parse MCQ JSON from AI response')
        self.assertEqual(data['aiResponse'], prose)

    @patch('dispatcher.generate_completion')
    def test_dig_deeper_success(self, mock_generate):
        """A JSON reply wrapped in prose should be parsed into an MCQ."""
        mcq = {
            'question': 'What is 3+3?',
            'options': ['5', '6', '7', '8'],
            'correctAnswer': 'b',
            'explanation': '3+3 is 6.',
        }
        mock_generate.return_value = (_provider_payload('Sure!\n' + json.dumps(mcq) + '\nGood luck.'), None)

        response = self._post({'action': 'dig_deeper', 'question_text': '2+2=?', 'solution': '4'})
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.data)
        self.assertEqual(len(data['mcq']['options']), 4)
        self.assertEqual(data['mcq']['correctAnswer'], 'B')
        self.assertIn('full_response', data)

    @patch('dispatcher.generate_completion')
    def test_default_forwards_message_verbatim(self, mock_generate):
        """The plain action should forward the message and echo the full payload."""
        payload = _provider_payload('You can do it!')
        mock_generate.return_value = (payload, None)

        response = self._post({'action': 'default', 'message': 'Hello'}, route='/api/motivation')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.data), payload)
        messages = mock_generate.call_args.args[0]
        self.assertEqual(messages, [{'role': 'user', 'content': 'Hello'}])

    @patch('dispatcher.generate_completion')
    def test_unknown_action_falls_back_to_message(self, mock_generate):
        """Unknown actions should be treated as the plain message forward."""
        response = self._post({'action': 'sing_a_song'})
        self.assertEqual(response.status_code, 400)
        data = json.loads(response.data)
        self.assertEqual(data['details']['action'], 'default')
        self.assertIn('message', data['error'])
        mock_generate.assert_not_called()

    @patch('dispatcher.generate_completion')
    def test_overflowing_max_tokens_is_validation_error(self, mock_generate):
        """A JSON number too large for a float should be a 400, not a crash."""
        body = dict(QUESTION, action='determine_answer')
        raw = json.dumps(body)[:-1] + ', "max_tokens": 1e999}'

        response = self.client.post('/api/solution', data=raw, content_type='application/json')
        self.assertEqual(response.status_code, 400)
        data = json.loads(response.data)
        self.assertIn('max_tokens', data['error'])
        mock_generate.assert_not_called()

    @patch('dispatcher.generate_completion')
    def test_malformed_json_is_validation_error(self, mock_generate):
        """An unparseable body should be reported as a 400, not crash."""
        response = self.client.post('/api/solution', data='{not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)
        data = json.loads(response.data)
        self.assertIn('JSON', data['error'])
        mock_generate.assert_not_called()

    @patch('dispatcher.generate_completion')
    def test_provider_status_is_propagated(self, mock_generate):
        """Upstream HTTP status and details should pass through."""
        err = {'message': 'AI provider HTTP error', 'status': 429, 'body': {'error': {'message': 'rate limited'}}}
        mock_generate.return_value = (None, err)

        response = self._post({'message': 'Hello'})
        self.assertEqual(response.status_code, 429)
        data = json.loads(response.data)
        self.assertEqual(data['error'], 'AI provider error')
        self.assertEqual(data['details'], err)

    @patch('dispatcher.generate_completion')
    def test_provider_failure_without_status_is_500(self, mock_generate):
        """Transport failures without an upstream status should be a 500."""
        mock_generate.return_value = (None, {'message': 'AI provider request timed out.'})

        response = self._post({'message': 'Hello'})
        self.assertEqual(response.status_code, 500)

    @patch('dispatcher.generate_completion')
    def test_request_id_is_echoed(self, mock_generate):
        """The X-Request-Id header should be echoed back."""
        mock_generate.return_value = (_provider_payload('Hi'), None)

        response = self._post({'message': 'Hello'}, headers={'X-Request-Id': 'req-123'})
        self.assertEqual(response.headers.get('X-Request-Id'), 'req-123')

    @patch('app.handle')
    def test_unhandled_exception_is_500(self, mock_handle):
        """Unexpected errors should be caught and reported generically."""
        mock_handle.side_effect = RuntimeError('boom')

        response = self._post({'message': 'Hello'})
        self.assertEqual(response.status_code, 500)
        data = json.loads(response.data)
        self.assertEqual(data['error'], 'Internal server error.')


class TestModuleIntegration(unittest.TestCase):
    """Integration tests for module connectivity."""

    def test_app_imports_from_config(self):
        """App should successfully import from config module."""
        from config import CORS_ORIGINS, REQUEST_TIMEOUT_S, logger
        self.assertIsNotNone(CORS_ORIGINS)
        self.assertIsNotNone(logger)
        self.assertGreater(REQUEST_TIMEOUT_S, 0)

    def test_app_imports_from_dispatcher(self):
        """App should successfully import from dispatcher module."""
        from dispatcher import ACTIONS, handle
        self.assertTrue(callable(handle))
        self.assertIn('default', ACTIONS)


if __name__ == '__main__':
    unittest.main()
