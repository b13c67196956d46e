"""Tests for the schedule driver; HTTP calls are mocked."""

from unittest import mock

import requests

from driver import driver


def ok_response():
    resp = mock.Mock()
    resp.raise_for_status.return_value = None
    return resp


def test_burn_params_skips_empty_columns():
    row = {"seconds": " 30 ", "workers": "", "mem_mb": None, "concurrency": "2"}
    assert driver.burn_params(row) == {"seconds": "30"}


def test_expected_seconds():
    assert driver.expected_seconds({}) == 20
    assert driver.expected_seconds({"seconds": "5"}) == 5
    assert driver.expected_seconds({"seconds": "-2"}) == 1
    assert driver.expected_seconds({"seconds": "x"}) == 20


def test_call_burn_timeout_includes_slack():
    with mock.patch("driver.driver.requests.get", return_value=ok_response()) as get:
        driver.call_burn({"seconds": "30"}, endpoint="http://svc/burn", slack=5)
    get.assert_called_once_with("http://svc/burn", params={"seconds": "30"}, timeout=35)


def test_replay_row_fires_concurrent_calls():
    row = {"seconds": "1", "workers": "2", "mem_mb": "0", "concurrency": "3"}
    with mock.patch("driver.driver.requests.get", return_value=ok_response()) as get:
        assert driver.replay_row(row, endpoint="http://svc/burn") == (3, 0)
    assert get.call_count == 3


def test_replay_row_counts_failures():
    responses = [ok_response(), requests.ConnectionError("refused")]
    with mock.patch("driver.driver.requests.get", side_effect=responses):
        assert driver.replay_row({"seconds": "1", "concurrency": "2"}) == (1, 1)


def test_replay_once(tmp_path):
    schedule = tmp_path / "schedule.csv"
    schedule.write_text(
        "seconds,workers,mem_mb,concurrency,pause\n"
        "1,1,0,1,0\n"
        "2,,,2,\n"
    )
    with mock.patch("driver.driver.requests.get", return_value=ok_response()) as get:
        assert driver.replay_once(str(schedule), endpoint="http://svc/burn") == (3, 0)
    sent = [c.kwargs["params"] for c in get.call_args_list]
    assert sent == [{"seconds": "1", "workers": "1", "mem_mb": "0"}, {"seconds": "2"}, {"seconds": "2"}]


def test_replay_once_missing_schedule(tmp_path):
    assert driver.replay_once(str(tmp_path / "missing.csv")) == (0, 0)
