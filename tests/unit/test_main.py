from unittest.mock import MagicMock, patch

import pytest

from refurb_workflow.main import main


class TestMain:
    @patch("refurb_workflow.main.close_pool")
    @patch("refurb_workflow.main.ensure_schema")
    @patch("refurb_workflow.main.init_pool")
    def test_memory_backend_skips_database(
        self,
        mock_init: MagicMock,
        mock_schema: MagicMock,
        mock_close: MagicMock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        main()
        mock_init.assert_not_called()
        mock_schema.assert_not_called()
        mock_close.assert_not_called()

    @patch("refurb_workflow.main.build_engine")
    @patch("refurb_workflow.main.close_pool")
    @patch("refurb_workflow.main.ensure_schema")
    @patch("refurb_workflow.main.init_pool")
    def test_postgres_backend_prepares_and_closes_pool(
        self,
        mock_init: MagicMock,
        mock_schema: MagicMock,
        mock_close: MagicMock,
        mock_build: MagicMock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("STORAGE_BACKEND", "postgres")
        mock_build.return_value.get_stats.return_value = MagicMock(total=0, completed_today=0)
        main()
        mock_init.assert_called_once()
        mock_schema.assert_called_once()
        mock_close.assert_called_once()

    @patch("refurb_workflow.main.build_engine")
    @patch("refurb_workflow.main.close_pool")
    @patch("refurb_workflow.main.ensure_schema")
    @patch("refurb_workflow.main.init_pool")
    def test_pool_closed_when_startup_fails(
        self,
        mock_init: MagicMock,
        mock_schema: MagicMock,
        mock_close: MagicMock,
        mock_build: MagicMock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("STORAGE_BACKEND", "postgres")
        mock_schema.side_effect = RuntimeError("db down")
        with pytest.raises(RuntimeError, match="db down"):
            main()
        mock_build.assert_not_called()
        mock_close.assert_called_once()
