import pytest

from critline.models import Task


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run in an empty directory with the default store location."""
    monkeypatch.delenv("CRITLINE_DB", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def chain_tasks():
    return [
        Task("1", "Design", "2023-01-01", "2023-01-03"),
        Task("2", "Build", "2023-01-03", "2023-01-04", ["1"]),
        Task("3", "Ship", "2023-01-04", "2023-01-07", ["2"]),
    ]
