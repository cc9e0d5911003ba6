"""Tests for service wiring."""

from unittest.mock import AsyncMock, patch

import pytest

from shelfspot import dependencies
from shelfspot.alerts.service import AlertService
from shelfspot.projects.service import ProjectService
from shelfspot.recompute.worker import RecomputeWorker


@pytest.fixture(autouse=True)
def reset_singletons():
    yield
    dependencies._alert_service = None
    dependencies._scoring_service = None
    dependencies._project_service = None
    dependencies._recompute_queue = None
    dependencies._recompute_worker = None


class TestBuilders:
    def test_build_alert_service(self, mock_db):
        service = dependencies.build_alert_service(mock_db)
        assert isinstance(service, AlertService)

    def test_build_project_service_publishes_to_queue(self, mock_db):
        queue = dependencies.get_recompute_queue()
        service = dependencies.build_project_service(mock_db, queue)
        assert isinstance(service, ProjectService)


class TestSingletons:
    @pytest.mark.asyncio
    async def test_worker_and_projects_share_queue(self, mock_db):
        with patch("shelfspot.dependencies.get_database", AsyncMock(return_value=mock_db)):
            worker = await dependencies.get_recompute_worker()
            projects = await dependencies.get_project_service()

        assert isinstance(worker, RecomputeWorker)
        assert projects._invalidator is dependencies.get_recompute_queue()
        assert worker is await dependencies.get_recompute_worker()

    @pytest.mark.asyncio
    async def test_cleanup(self, mock_db):
        with patch("shelfspot.dependencies.get_database", AsyncMock(return_value=mock_db)):
            await dependencies.get_recompute_worker()

        with patch("shelfspot.dependencies.close_database", AsyncMock()) as close:
            await dependencies.cleanup_dependencies()

        close.assert_awaited_once()
        assert dependencies._recompute_worker is None
