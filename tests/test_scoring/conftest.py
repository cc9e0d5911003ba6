"""Pytest fixtures for scoring tests."""

from unittest.mock import AsyncMock

import pytest

from shelfspot.scoring.config import ScoringConfig
from shelfspot.scoring.repository import ScoringRepository


@pytest.fixture
def scoring_config() -> ScoringConfig:
    return ScoringConfig(
        top_items_limit=2,
        default_top_limit=20,
        critical_max_quantity=5,
        critical_limit=3,
    )


@pytest.fixture
def mock_scoring_repo():
    repo = AsyncMock(spec=ScoringRepository)
    repo.persist_importance_score.return_value = True
    return repo
