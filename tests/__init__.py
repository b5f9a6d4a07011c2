"""
Test suite for the freight RFQ allocation backend.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_finalization_service.py -v
"""
