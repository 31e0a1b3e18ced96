"""Test that the project setup is working correctly."""

import kol_tracker


def test_version() -> None:
    """Test that version is defined."""
    assert kol_tracker.__version__ == "0.1.0"


def test_import_modules() -> None:
    """Test that all submodules can be imported."""
    from kol_tracker import detector
    from kol_tracker import ledger
    from kol_tracker import performance
    from kol_tracker import pnl
    from kol_tracker import profiler
    from kol_tracker import storage

    # Just verify imports work
    assert detector is not None
    assert ledger is not None
    assert performance is not None
    assert pnl is not None
    assert profiler is not None
    assert storage is not None


def test_errors_exported() -> None:
    assert issubclass(kol_tracker.InvalidTransaction, kol_tracker.KolTrackerError)
    assert issubclass(kol_tracker.DuplicateTransaction, kol_tracker.KolTrackerError)
    assert issubclass(kol_tracker.StorageUnavailable, kol_tracker.KolTrackerError)
