"""Global test fixtures and configuration."""

import os
import sys
from unittest import mock

import pytest

# Make sure the package is importable without installation
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from request_validator.models.validation import UploadedFile, ValidationRequest
from request_validator.validation.context import ValidationContext


@pytest.fixture
def mock_lookup():
    """Query capability whose rows report a configurable count (default 0)."""
    lookup = mock.MagicMock()
    lookup.query = mock.AsyncMock(return_value=[{"count": 0}])
    return lookup


@pytest.fixture
def mock_cleanup():
    """File cleanup capability that records the paths it was asked to remove."""
    cleanup = mock.MagicMock()
    cleanup.unlink = mock.AsyncMock(return_value=None)
    return cleanup


@pytest.fixture
def make_upload():
    """Create an upload descriptor shaped like the upload middleware's output."""
    def _make(path, mimetype, fieldname=None):
        name = os.path.basename(path)
        return UploadedFile(
            fieldname=fieldname,
            originalname=name,
            mimetype=mimetype,
            filename=name,
            path=path,
            size=1234,
        )
    return _make


@pytest.fixture
def make_context(mock_lookup, mock_cleanup):
    """Build a ValidationContext for exercising single checks."""
    def _make(body=None, files=None, lookup=mock_lookup, file_cleanup=mock_cleanup):
        request = ValidationRequest(body=body or {}, files=files or {})
        return ValidationContext(request, lookup, file_cleanup)
    return _make
