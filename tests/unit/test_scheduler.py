"""
Unit tests for scheduler (backy/scheduler.py).

Tests APScheduler configuration and scheduled command execution.
"""

import logging
from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest

from backy import scheduler as scheduler_module
from backy.commands import Command
from backy.config import ScheduleSettings
from backy.errors import SyncFailed


class TestSchedulerInitialization:
    """Test scheduler initialization."""

    def teardown_method(self):
        """Reset global scheduler"""
        scheduler_module.scheduler = None

    @patch('backy.scheduler.BlockingScheduler')
    def test_init_scheduler(self, mock_scheduler_class, app, settings):
        mock_scheduler = MagicMock()
        mock_scheduler_class.return_value = mock_scheduler

        result = scheduler_module.init_scheduler(app, settings)

        assert result == mock_scheduler
        assert scheduler_module.scheduler == mock_scheduler

        call_kwargs = mock_scheduler_class.call_args[1]
        assert call_kwargs['timezone'] == 'UTC'
        assert call_kwargs['job_defaults']['max_instances'] == 1

        # update and clean are scheduled, remote is not
        job_ids = [c.kwargs['id'] for c in mock_scheduler.add_job.call_args_list]
        assert job_ids == ['backy_update', 'backy_clean']
        first_args = mock_scheduler.add_job.call_args_list[0].kwargs['args']
        assert first_args == [app, settings, Command.UPDATE]

    @patch('backy.scheduler.BlockingScheduler')
    def test_init_scheduler_only_once(self, mock_scheduler_class, app, settings):
        result1 = scheduler_module.init_scheduler(app, settings)
        result2 = scheduler_module.init_scheduler(app, settings)

        assert result1 == result2
        mock_scheduler_class.assert_called_once()

    def test_real_scheduler_jobs(self, app, settings):
        settings = replace(settings, schedule=ScheduleSettings(remote='0 4 * * 0'))

        scheduler_module.init_scheduler(app, settings)
        jobs = scheduler_module.get_scheduled_jobs()

        assert [job['id'] for job in jobs] == ['backy_remote']
        assert jobs[0]['name'] == 'Backy: remote'


class TestSchedulerLifecycle:
    """Test scheduler start/stop operations."""

    def setup_method(self):
        self.mock_scheduler = MagicMock()
        self.mock_scheduler.running = False
        scheduler_module.scheduler = self.mock_scheduler

    def teardown_method(self):
        scheduler_module.scheduler = None

    def test_start_scheduler(self):
        self.mock_scheduler.get_jobs.return_value = [MagicMock()]

        scheduler_module.start_scheduler()

        self.mock_scheduler.start.assert_called_once()

    def test_start_logs_job_list(self, caplog):
        job = MagicMock(id='backy_update', next_run_time=None)
        job.name = 'Backy: update'
        self.mock_scheduler.get_jobs.return_value = [job]

        with caplog.at_level(logging.INFO, logger='backy.scheduler'):
            scheduler_module.start_scheduler()

        assert 'backy_update: Backy: update' in caplog.text
        self.mock_scheduler.start.assert_called_once()

    def test_start_without_jobs(self):
        self.mock_scheduler.get_jobs.return_value = []

        scheduler_module.start_scheduler()

        self.mock_scheduler.start.assert_not_called()

    def test_start_not_initialized(self):
        scheduler_module.scheduler = None

        with pytest.raises(RuntimeError):
            scheduler_module.start_scheduler()

    def test_stop_scheduler(self):
        self.mock_scheduler.running = True

        scheduler_module.stop_scheduler()

        self.mock_scheduler.shutdown.assert_called_once_with(wait=False)
        assert scheduler_module.scheduler is None


class TestScheduledExecution:

    @patch('backy.scheduler.execute_command')
    def test_wrapper_runs_command(self, mock_execute, app, settings):
        scheduler_module._execute_command_wrapper(app, settings, Command.CLEAN)

        mock_execute.assert_called_once_with(app.Session, settings, Command.CLEAN)

    @patch('backy.scheduler.execute_command', side_effect=SyncFailed('docs', 23))
    def test_wrapper_survives_failures(self, mock_execute, app, settings):
        scheduler_module._execute_command_wrapper(app, settings, Command.UPDATE)

        mock_execute.assert_called_once()

    @patch('backy.scheduler.execute_command', side_effect=RuntimeError('boom'))
    def test_wrapper_survives_crashes(self, mock_execute, app, settings):
        scheduler_module._execute_command_wrapper(app, settings, Command.UPDATE)

        mock_execute.assert_called_once()
