from unittest.mock import MagicMock, call, patch

from jobs import scheduled_tasks


@patch("jobs.scheduled_tasks.schedule")
def test_init(schedule_mock, settings_factory):
    """Test that init schedules the sweep, the cleanup and the heartbeat."""
    settings = settings_factory(RETRY_INTERVAL_MINUTES=2, NOTIFICATIONS_CLEANUP_AT="04:30")
    service = MagicMock()

    scheduled_tasks.init(service, settings)

    schedule_mock.every().day.at.assert_called_once_with("04:30")
    schedule_mock.every.assert_has_calls(
        calls=[call(2), call(5)],
        any_order=True,
    )

    # Jobs are tagged, so match the .do() call itself rather than its chain
    do_calls = [c for c in schedule_mock.mock_calls if c[0].endswith(".do")]
    assert len(do_calls) == 3
    assert len([c for c in do_calls if "service" in c.kwargs]) == 2


@patch("jobs.scheduled_tasks.schedule")
def test_clear_removes_tagged_jobs(schedule_mock):
    scheduled_tasks.clear()
    schedule_mock.clear.assert_called_once_with(scheduled_tasks.JOB_TAG)


@patch("jobs.scheduled_tasks.logger")
def test_safe_run(mock_logger):
    """Test that safe_run properly handles exceptions."""

    def test_job(service=None):
        raise RuntimeError("Test exception")

    wrapper = scheduled_tasks.safe_run(test_job)
    wrapper(service="svc")

    assert wrapper.__name__ == "test_job"
    mock_logger.error.assert_called_once_with(
        "safe_run_error",
        error="Test exception",
        function="test_job",
        module=test_job.__module__,
        job_args=(),
        job_kwargs={"service": "svc"},
    )


@patch("jobs.scheduled_tasks.logger")
def test_retry_failed_notifications(mock_logger):
    service = MagicMock()
    service.retry_failed.return_value = {"selected": 1, "delivered": 1}

    scheduled_tasks.retry_failed_notifications(service)

    service.retry_failed.assert_called_once_with()
    mock_logger.info.assert_called_once_with(
        "retry_job_completed", selected=1, delivered=1
    )


@patch("jobs.scheduled_tasks.logger")
def test_cleanup_notifications(mock_logger):
    service = MagicMock()
    service.cleanup.return_value = 3

    scheduled_tasks.cleanup_notifications(service)

    mock_logger.info.assert_called_once_with("cleanup_job_completed", removed=3)


@patch("jobs.scheduled_tasks.logger")
@patch("jobs.scheduled_tasks.time")
def test_scheduler_heartbeat(mock_time, mock_logger):
    """Test that scheduler_heartbeat logs the current time."""
    mock_time.ctime.return_value = "Thu Mar 17 14:30:00 2025"

    scheduled_tasks.scheduler_heartbeat()

    mock_logger.info.assert_called_once_with(
        "running_scheduler_heartbeat",
        module="scheduled_tasks",
        time=mock_time.ctime.return_value,
    )


@patch("jobs.scheduled_tasks.schedule")
@patch("jobs.scheduled_tasks.threading")
@patch("jobs.scheduled_tasks.time")
def test_run_continuously(_time_mock, threading_mock, _schedule_mock):
    cease_continuous_run = MagicMock()
    cease_continuous_run.is_set.return_value = True
    threading_mock.Event.return_value = cease_continuous_run
    result = scheduled_tasks.run_continuously(interval=1)
    assert result == cease_continuous_run
