"""
Clarion Tests
=============

Unit tests for the speech pipeline components.

Test Structure:
- test_config.py: Tests for configuration management
- test_chunker.py / test_language.py: Tests for text preparation
- test_player.py / test_sink.py / test_wav.py: Tests for audio output
- test_session.py / test_rest.py: Tests for the Deepgram clients
- test_speech.py: Tests for the speech orchestrator
- conftest.py: Shared test fixtures and fakes

To run tests:
    pytest tests/

To run specific test file:
    pytest tests/test_session.py
"""
