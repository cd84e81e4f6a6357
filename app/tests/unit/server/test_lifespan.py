import asyncio
from unittest.mock import MagicMock, patch

from fastapi import FastAPI

from server import lifespan as lifespan_module


@patch("server.lifespan.scheduled_tasks")
def test_start_scheduled_tasks_skipped_when_disabled(mock_tasks, settings_factory):
    settings = settings_factory(RETRY_ENABLED=False)
    logger = MagicMock()

    result = lifespan_module._start_scheduled_tasks(MagicMock(), settings, logger)

    assert result is None
    mock_tasks.init.assert_not_called()
    logger.info.assert_called_once_with("scheduled_tasks_skipped", reason="retry_disabled")


@patch("server.lifespan.scheduled_tasks")
def test_start_scheduled_tasks(mock_tasks, settings):
    service = MagicMock()

    result = lifespan_module._start_scheduled_tasks(service, settings, MagicMock())

    mock_tasks.init.assert_called_once_with(service, settings)
    assert result is mock_tasks.run_continuously.return_value


@patch("server.lifespan.scheduled_tasks")
def test_stop_scheduled_tasks(mock_tasks):
    event = MagicMock()
    lifespan_module._stop_scheduled_tasks(event)
    event.set.assert_called_once()
    mock_tasks.clear.assert_called_once()


@patch("server.lifespan.scheduled_tasks")
def test_stop_without_event_is_noop(mock_tasks):
    lifespan_module._stop_scheduled_tasks(None)
    mock_tasks.clear.assert_not_called()


def test_list_configs_logs_sections(settings):
    logger = MagicMock()
    lifespan_module._list_configs(settings, logger)
    loaded = [c.kwargs["config_setting"] for c in logger.info.call_args_list[1:]]
    assert set(loaded) == {"aws", "notify", "notifications", "retry"}


@patch("server.lifespan.shutdown_executor")
@patch("server.lifespan._start_scheduled_tasks")
@patch("server.lifespan.get_notification_service")
@patch("server.lifespan.get_settings")
def test_lifespan_wires_state(
    mock_get_settings, mock_get_service, mock_start, mock_shutdown, settings
):
    mock_get_settings.return_value = settings
    stop_event = MagicMock()
    mock_start.return_value = stop_event
    app = FastAPI()

    async def run():
        async with lifespan_module.lifespan(app):
            assert app.state.settings is settings
            assert app.state.notification_service is mock_get_service.return_value

    asyncio.run(run())

    stop_event.set.assert_called_once()
    mock_shutdown.assert_called_once_with(wait=False)
