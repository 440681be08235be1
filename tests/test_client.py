import unittest
import sys
import os
from unittest import mock
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from client import CoachClient


def _response(payload):
    resp = mock.Mock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


class ClientTest(unittest.TestCase):
    def setUp(self) -> None:
        self.client = CoachClient(base_url='http://testserver/')

    def test_create_plan(self) -> None:
        with mock.patch('client.requests.post', return_value=_response({'id': 3})) as post:
            pid = self.client.create_plan({'plan_name': 'A'}, '2024-01-01')
        self.assertEqual(pid, 3)
        post.assert_called_once_with(
            'http://testserver/plans',
            json={'plan_name': 'A'},
            params={'start_date': '2024-01-01'},
        )

    def test_session_action(self) -> None:
        with mock.patch('client.requests.post', return_value=_response({'phase': 'performing'})) as post:
            snap = self.client.session_action(4, 'start_set')
        self.assertEqual(snap['phase'], 'performing')
        post.assert_called_once_with('http://testserver/workouts/4/session/start_set')

    def test_update_log(self) -> None:
        with mock.patch('client.requests.put', return_value=_response({'weight_used': 50.0})) as put:
            self.client.update_log(4, 9, 'weight_used', 50)
        put.assert_called_once_with(
            'http://testserver/workouts/4/session/logs/9',
            params={'field': 'weight_used', 'value': 50},
        )

    def test_finish_session(self) -> None:
        payload = {'id': 1, 'workout_fully_completed': True, 'dropped_exercise_ids': []}
        with mock.patch('client.requests.post', return_value=_response(payload)) as post:
            result = self.client.finish_session(4, 'easy', session_date='2024-01-02')
        self.assertTrue(result['workout_fully_completed'])
        self.assertEqual(
            post.call_args[1]['params'],
            {'feeling': 'easy', 'notes': '', 'session_date': '2024-01-02'},
        )

    def test_errors_raise(self) -> None:
        resp = _response({})
        resp.raise_for_status.side_effect = Exception('404')
        with mock.patch('client.requests.get', return_value=resp):
            with self.assertRaises(Exception):
                self.client.session(4)

if __name__ == '__main__':
    unittest.main()
